# src/taskvault/calendar/slots.py

"""
Calendar lane assignment.

Date-ranged items (plannedStart..plannedEnd, inclusive) are laid out in a
window of consecutive days. Every item gets the lowest display lane in which
none of its clipped days is taken yet; longer items are placed first so they
end up in the upper lanes. This is a greedy first fit, not a minimal packing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta

from ..tasks.models import TaskItem

logger = logging.getLogger(__name__)

WINDOW_DAYS = 5
MAX_LANES = 20
SUNDAY = 6  # date.weekday() numbering: Monday=0 .. Sunday=6
MIN_BAR_HEIGHT = 18
MAX_BAR_HEIGHT = 28

START_KEY = "plannedStart"
END_KEY = "plannedEnd"


def parse_day(raw: object) -> date | None:
    if raw is None:
        return None
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    if len(s) < 10:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def week_start(day: date, first_weekday: int = SUNDAY) -> date:
    """The most recent `first_weekday` on or before `day`."""
    return day - timedelta(days=(day.weekday() - first_weekday) % 7)


def window_days(start: date, days: int = WINDOW_DAYS) -> list[date]:
    return [start + timedelta(days=i) for i in range(days)]


@dataclass(frozen=True, slots=True)
class DatedSpan:
    key: str
    start: date
    end: date

    @property
    def duration(self) -> int:
        return (self.end - self.start).days

    def covers(self, day: date) -> bool:
        return self.start <= day <= self.end


def spans_of(
    items: Iterable[TaskItem],
    *,
    start_key: str = START_KEY,
    end_key: str = END_KEY,
) -> list[DatedSpan]:
    """Items with both dates set and parseable, as spans keyed by path."""
    out: list[DatedSpan] = []
    for it in items:
        s = parse_day(it.metadata.get(start_key))
        e = parse_day(it.metadata.get(end_key))
        if s is None or e is None:
            continue
        out.append(DatedSpan(it.path, s, e))
    return out


def spans_in_window(spans: Iterable[DatedSpan], start: date, days: int = WINDOW_DAYS) -> list[DatedSpan]:
    last = start + timedelta(days=days - 1)
    return [sp for sp in spans if sp.start <= last and sp.end >= start]


def _clip(span: DatedSpan, start: date, days: int) -> tuple[int, int] | None:
    first = (span.start - start).days
    last = (span.end - start).days
    first = max(0, first)
    last = min(days - 1, last)
    if first > days - 1 or last < 0 or first > last:
        return None
    return first, last


def assign_lanes(
    spans: Iterable[DatedSpan],
    start: date,
    *,
    days: int = WINDOW_DAYS,
    max_lanes: int = MAX_LANES,
) -> dict[str, int]:
    """
    Map span key -> lane index.

    Spans outside the window are skipped. A span that fits in none of the
    `max_lanes` lanes stays unassigned; it is still counted by overflow_counts().
    """
    ordered = sorted(spans, key=lambda sp: (-sp.duration, sp.start))
    occupied = [[False] * days for _ in range(max_lanes)]
    lanes: dict[str, int] = {}

    for sp in ordered:
        cols = _clip(sp, start, days)
        if cols is None:
            continue
        first, last = cols
        for lane in range(max_lanes):
            row = occupied[lane]
            if any(row[i] for i in range(first, last + 1)):
                continue
            for i in range(first, last + 1):
                row[i] = True
            lanes[sp.key] = lane
            break
        else:
            logger.debug("No free lane for %s in week of %s", sp.key, start)

    return lanes


def overflow_counts(
    spans: Sequence[DatedSpan],
    start: date,
    visible_lanes: int,
    *,
    days: int = WINDOW_DAYS,
) -> list[int]:
    """Per day: items covering that day beyond the visible lane budget."""
    out: list[int] = []
    for day in window_days(start, days):
        covering = sum(1 for sp in spans if sp.covers(day))
        out.append(max(0, covering - visible_lanes))
    return out


def visible_lane_budget(
    lanes_needed: int,
    available_height: float,
    *,
    min_bar: int = MIN_BAR_HEIGHT,
    max_bar: int = MAX_BAR_HEIGHT,
) -> tuple[int, int]:
    """
    Bar height and visible lane count for a week row of `available_height`.

    When even the minimum bar height cannot show every lane, one bar's worth of
    height is kept free for the "+N more" indicator.
    """
    if lanes_needed <= 0:
        return max_bar, 0
    bar = int(available_height // lanes_needed)
    if bar > max_bar:
        bar = max_bar
    visible = lanes_needed
    if bar < min_bar:
        bar = min_bar
        visible = max(1, int((available_height - min_bar) // min_bar))
    return bar, visible


@dataclass(frozen=True, slots=True)
class Bar:
    key: str
    lane: int
    first_col: int
    last_col: int
    continues_before: bool
    continues_after: bool


@dataclass(slots=True)
class WeekLayout:
    start: date
    days: list[date]
    lanes: dict[str, int] = field(default_factory=dict)
    bars: list[Bar] = field(default_factory=list)
    lanes_needed: int = 0
    bar_height: int = MAX_BAR_HEIGHT
    visible_lanes: int = 0
    overflow: list[int] = field(default_factory=list)


def layout_week(
    items: Iterable[TaskItem],
    start: date,
    *,
    days: int = WINDOW_DAYS,
    max_lanes: int = MAX_LANES,
    available_height: float | None = None,
    visible_lanes: int | None = None,
    start_key: str = START_KEY,
    end_key: str = END_KEY,
) -> WeekLayout:
    """
    Full layout of one calendar row.

    The visible lane budget is either given directly, derived from
    `available_height`, or defaults to every lane in use.
    """
    spans = spans_in_window(spans_of(items, start_key=start_key, end_key=end_key), start, days)
    lanes = assign_lanes(spans, start, days=days, max_lanes=max_lanes)
    needed = max(lanes.values(), default=-1) + 1

    bar_height = MAX_BAR_HEIGHT
    if visible_lanes is None:
        if available_height is not None:
            bar_height, visible_lanes = visible_lane_budget(needed, available_height)
        else:
            visible_lanes = needed

    last_day = start + timedelta(days=days - 1)
    bars: list[Bar] = []
    for sp in spans:
        lane = lanes.get(sp.key)
        if lane is None or lane >= visible_lanes:
            continue
        cols = _clip(sp, start, days)
        if cols is None:
            continue
        bars.append(
            Bar(
                key=sp.key,
                lane=lane,
                first_col=cols[0],
                last_col=cols[1],
                continues_before=sp.start < start,
                continues_after=sp.end > last_day,
            )
        )
    bars.sort(key=lambda b: (b.lane, b.first_col))

    return WeekLayout(
        start=start,
        days=window_days(start, days),
        lanes=lanes,
        bars=bars,
        lanes_needed=needed,
        bar_height=bar_height,
        visible_lanes=visible_lanes,
        overflow=overflow_counts(spans, start, visible_lanes, days=days),
    )

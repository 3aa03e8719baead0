# src/taskvault/cli/commands.py

from __future__ import annotations

import logging
import shlex
from collections.abc import Awaitable, Callable
from datetime import date

from ..calendar.slots import layout_week, parse_day, week_start
from ..core.state import AppState

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /board, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Arguments are shell-quoted, so "In Progress" is one argument.
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Cannot parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(state, args, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    s = state.settings
    rec = state.reconciler
    watching = "ON" if state.watcher is not None else "OFF"
    return (
        "Status:\n"
        f"  Vault: {s.vault_root}\n"
        f"  Folders: {s.task_folder} | {s.cr_folder}\n"
        f"  Items tracked: {len(state.projection)} (version {state.projection.version})\n"
        f"  Reloads: {rec.reload_count} (pending={rec.pending_reload}, suppressed={rec.is_suppressed})\n"
        f"  Watcher: {watching}"
    )


async def cmd_board(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    lines: list[str] = []
    for label, items in state.board.buckets().items():
        lines.append(f"{label} ({len(items)})")
        for it in items:
            order = "-" if it.order is None else str(it.order)
            lines.append(f"  [{order}] {it.title}  <{it.path}>")
    return "\n".join(lines) if lines else "No columns configured."


async def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /list          -> every tracked item
    /list <folder> -> items directly inside one folder
    """
    folder = args[0].strip("/") if args else None
    items = [
        it
        for it in state.projection.items
        if folder is None or it.path.rsplit("/", 1)[0] == folder
    ]
    if not items:
        return "No items."
    return "\n".join(f"{it.path}  status={it.status or '-'}" for it in items)


async def cmd_move(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/move <path> <status> [index]"""
    if len(args) < 2:
        return "Usage: /move <path> <status> [index]"

    path, to_status = args[0], args[1]
    index: int | None = None
    if len(args) > 2:
        try:
            index = int(args[2])
        except ValueError:
            return f"Invalid index: {args[2]}"

    item = state.projection.get(path)
    from_status = (item.status if item is not None else "") or to_status
    try:
        result = await state.board.move_item(path, from_status, to_status, index=index)
    except ValueError as e:
        return str(e)

    if result.noop:
        return "Nothing to move."
    if not result.ok:
        return f"Move failed ({len(result.outcome.failures)}/{result.writes} writes)."
    return f"Moved {path} to {to_status} at {result.index} ({result.writes} writes)."


async def cmd_columns(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /columns                      -> list columns
    /columns add <label>
    /columns remove <label>
    /columns rename <old> <new>
    /columns move <from> <to>
    """
    usage = (
        "Usage:\n"
        "  /columns add <label>\n"
        "  /columns remove <label>\n"
        "  /columns rename <old> <new>\n"
        "  /columns move <from> <to>"
    )
    if not args:
        return "Columns: " + ", ".join(state.statuses.labels)

    sub, rest = args[0].lower(), args[1:]
    try:
        if sub == "add" and len(rest) == 1:
            state.board.add_status(rest[0])
        elif sub == "remove" and len(rest) == 1:
            state.board.remove_status(rest[0])
        elif sub == "rename" and len(rest) == 2:
            outcome = await state.board.rename_status(rest[0], rest[1])
            if not outcome.ok:
                return f"Renamed, but {len(outcome.failures)} item(s) failed to update."
        elif sub == "move" and len(rest) == 2:
            state.board.move_status(int(rest[0]), int(rest[1]))
        else:
            return usage
    except ValueError as e:
        return str(e)
    return "Columns: " + ", ".join(state.statuses.labels)


async def cmd_tags(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    tags = await state.repository.all_tags(state.settings.task_folder)
    return ", ".join(tags) if tags else "No tags."


async def cmd_next_cr(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return await state.repository.next_number(state.settings.cr_folder, "CR")


async def cmd_new_cr(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/new-cr <title> [number]"""
    if not args:
        return "Usage: /new-cr <title> [number]"
    data = {"title": args[0]}
    if len(args) > 1:
        data["number"] = args[1]
    ref = await state.service.create_change_request(data)
    return f"Created {ref.path}"


async def cmd_new_task(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/new-task <service> [crNumber] [taskNumber]"""
    if not args:
        return "Usage: /new-task <service> [crNumber] [taskNumber]"
    data = {"service": args[0]}
    if len(args) > 1:
        data["crNumber"] = args[1]
    if len(args) > 2:
        data["taskNumber"] = args[2]
    ref = await state.service.create_task(data)
    return f"Created {ref.path}"


async def cmd_archive(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 1:
        return "Usage: /archive <path>"
    ok = await state.service.archive(args[0])
    return "Archived." if ok else "Archive failed."


async def cmd_week(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/week [YYYY-MM-DD] -> lane layout of the week containing the date"""
    day = date.today()
    if args:
        parsed = parse_day(args[0])
        if parsed is None:
            return f"Invalid date: {args[0]}"
        day = parsed

    s = state.settings
    start = week_start(day, s.calendar_first_weekday)
    layout = layout_week(
        state.projection.items,
        start,
        days=s.calendar_days,
        max_lanes=s.calendar_max_lanes,
        available_height=s.calendar_row_height,
    )

    lines = [f"Week of {start.isoformat()} ({layout.lanes_needed} lanes, {layout.visible_lanes} visible)"]
    for bar in layout.bars:
        first = layout.days[bar.first_col].isoformat()
        last = layout.days[bar.last_col].isoformat()
        lines.append(f"  lane {bar.lane}: {first}..{last}  {bar.key}")
    hidden = [f"{d.isoformat()}: +{n}" for d, n in zip(layout.days, layout.overflow) if n]
    if hidden:
        lines.append("  more: " + ", ".join(hidden))
    return "\n".join(lines)


async def cmd_schedule(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/schedule <path> <YYYY-MM-DD>"""
    if len(args) != 2:
        return "Usage: /schedule <path> <YYYY-MM-DD>"
    day = parse_day(args[1])
    if day is None:
        return f"Invalid date: {args[1]}"
    ok = await state.planner.schedule_on(args[0], day)
    return "Scheduled." if ok else "Schedule failed."


async def cmd_reload(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("[VAULT] Reloading...")
    await state.reconciler.reload_now()
    return f"Reloaded {len(state.projection)} items."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show vault, projection and reload state.")
registry.register("board", cmd_board, help_text="Show the board grouped by status.", aliases=["b"])
registry.register("list", cmd_list, help_text="List tracked items: /list [folder].", aliases=["ls"])
registry.register("move", cmd_move, help_text="Move an item: /move <path> <status> [index].")
registry.register(
    "columns",
    cmd_columns,
    help_text="Manage columns: /columns add|remove|rename|move ...",
)
registry.register("tags", cmd_tags, help_text="List every tag used by tasks.")
registry.register("next-cr", cmd_next_cr, help_text="Show the next free change-request number.")
registry.register("new-cr", cmd_new_cr, help_text="Create a change request: /new-cr <title> [number].")
registry.register(
    "new-task", cmd_new_task, help_text="Create a task: /new-task <service> [crNumber] [taskNumber]."
)
registry.register("archive", cmd_archive, help_text="Archive a task: /archive <path>.")
registry.register("week", cmd_week, help_text="Show calendar lanes: /week [YYYY-MM-DD].")
registry.register(
    "schedule", cmd_schedule, help_text="Put an item on the calendar: /schedule <path> <date>."
)
registry.register("reload", cmd_reload, help_text="Rebuild the projection from disk.")

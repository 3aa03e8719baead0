"""Calendar week view: lane assignment and planned-date edits."""

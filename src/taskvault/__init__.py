"""
taskvault: a Markdown vault used as a task and change-request tracker.

Subpackages:
- metadata: front-matter codec, field kinds, parsed-metadata cache
- storage: document store over a folder of .md files
- tasks: task items, repository, lifecycle service
- sync: in-memory projection, reload reconciler, filesystem watcher
- board: status columns and move transactions
- calendar: week layout (lane assignment) and date-range edits
- cli: composition root, commands, console
"""

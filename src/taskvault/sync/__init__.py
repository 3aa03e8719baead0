"""
Keeping the in-memory view in step with the files on disk.

Components:
- projection.py: versioned item view with optimistic updates
- reconciler.py: debounced reloads and suppression windows
- watcher.py: watchdog observer feeding change notifications
"""

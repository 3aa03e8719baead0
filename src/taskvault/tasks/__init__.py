"""
Task subsystem.

Components:
- models.py: data structures (TaskItem, Subtask)
- repository.py: list/find/number/patch documents in a folder
- service.py: create, edit, archive, delete and copy operations
"""

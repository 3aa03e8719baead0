"""Kanban board: status columns, ordered buckets and move transactions."""

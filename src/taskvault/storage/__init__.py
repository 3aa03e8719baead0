"""Document storage (a folder tree of Markdown files)."""

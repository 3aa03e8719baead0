"""
Front-matter metadata.

Components:
- codec.py: serialize and merge YAML front-matter blocks
- cache.py: parse blocks (dates stay strings) and memoize per file
- fields.py: field kinds and the default task / CR field sets
"""

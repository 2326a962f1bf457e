"""Version information."""

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)

# Version history
CHANGELOG = """
# Changelog

## v1.0.0

**Transactional editing**

- Undo/redo with nested batches and rollback
- Rename and move fix-up of DAX references
- Span-based rewrites (string literals and comments are never touched)
- Dependency index with transitive dependents

**CLI**

- --rename / --move commands
- --undo / --redo replay
- --dependents listing
- Export to JSON

### Known Limitations

- Role filter expressions are not indexed
- Calculated tables are not supported
"""

"""
Formula fix-up module.

This package contains the FixupEngine, which rewrites dependent expressions
after a referenced object is renamed or moved.
"""

from semantic_editor.fixup.fixup_engine import FixupEngine, FixupResult, FixupTrigger

__all__ = [
    "FixupEngine",
    "FixupResult",
    "FixupTrigger",
]

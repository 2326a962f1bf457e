"""
Undo/redo module.

This package contains the UndoManager, which groups recorded actions into
transactions and replays them.
"""

from semantic_editor.undo.undo_manager import UndoManager, UndoState

__all__ = [
    "UndoManager",
    "UndoState",
]

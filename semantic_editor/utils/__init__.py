"""
Utility functions and helpers for the editor.

This package contains the warning collector and the helpers that write
object names back into formula text.
"""

from semantic_editor.utils.naming import bracket_name, needs_quoting, quote_table_name
from semantic_editor.utils.warnings import EditorWarning, WarningCollector

__all__ = [
    "bracket_name",
    "needs_quoting",
    "quote_table_name",
    "EditorWarning",
    "WarningCollector",
]

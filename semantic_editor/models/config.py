"""
Configuration model for the semantic model editor.

This module defines the EditorConfig class and ErrorMode enum, which control
the behavior of an editing session: automatic formula fix-up, undo history
depth, reference quoting and how unresolved references and fix-up failures
are reported.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorMode(str, Enum):
    """Enumeration of error handling modes.

    Attributes:
        FAIL: Raise an exception immediately when the condition is detected.
        WARN: Record a warning and continue.
        IGNORE: Continue silently (error markers are still set on nodes).

    Example:
        >>> ErrorMode.values()
        ['fail', 'warn', 'ignore']
    """

    FAIL = "fail"
    WARN = "warn"
    IGNORE = "ignore"

    @classmethod
    def values(cls) -> list[str]:
        """Return a list of all possible error mode values."""
        return [member.value for member in cls]


@dataclass
class EditorConfig:
    """Configuration settings for an editing session.

    Attributes:
        fixup_enabled: If True, renaming or moving a table, column or measure
            rewrites every formula that references it. Defaults to True.
        max_undo_levels: Maximum number of transactions kept on the undo
            stack; the oldest are evicted first. None keeps everything.
        always_quote_table_names: If True, table names are always written as
            ``'Name'`` by fix-up; otherwise quotes are only added when the
            name requires them. Defaults to False.
        max_name_length: Longest accepted object name.
        on_unresolved: What ``set_expression`` does when the new text
            references unknown objects. Defaults to ErrorMode.WARN.
        on_fixup_failure: What happens when a dependent expression cannot be
            tokenized during fix-up. FAIL is not accepted: a fix-up failure
            never blocks the rename. Defaults to ErrorMode.WARN.

    Example:
        >>> config = EditorConfig(max_undo_levels=100)
        >>> config.on_unresolved
        <ErrorMode.WARN: 'warn'>
    """

    fixup_enabled: bool = True
    max_undo_levels: Optional[int] = None
    always_quote_table_names: bool = False
    max_name_length: int = 512
    on_unresolved: ErrorMode = ErrorMode.WARN
    on_fixup_failure: ErrorMode = ErrorMode.WARN

    def __post_init__(self) -> None:
        """Validate configuration settings."""
        if not isinstance(self.fixup_enabled, bool):
            raise TypeError("fixup_enabled must be a boolean")
        if not isinstance(self.always_quote_table_names, bool):
            raise TypeError("always_quote_table_names must be a boolean")
        if self.max_undo_levels is not None:
            if isinstance(self.max_undo_levels, bool) or not isinstance(self.max_undo_levels, int):
                raise TypeError("max_undo_levels must be an integer or None")
            if self.max_undo_levels < 1:
                raise ValueError("max_undo_levels must be at least 1")
        if not isinstance(self.max_name_length, int) or self.max_name_length < 1:
            raise ValueError("max_name_length must be a positive integer")
        if not isinstance(self.on_unresolved, ErrorMode):
            raise TypeError("on_unresolved must be an ErrorMode instance")
        if not isinstance(self.on_fixup_failure, ErrorMode):
            raise TypeError("on_fixup_failure must be an ErrorMode instance")
        if self.on_fixup_failure == ErrorMode.FAIL:
            raise ValueError("on_fixup_failure cannot be FAIL; fix-up failures are never fatal")

"""
Warning system for editing sessions.

This module defines warning collection for the editor: unresolved formula
references and formula fix-up failures are collected here rather than raised,
so an edit can complete while the problem stays visible to the user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class EditorWarning:
    """Warning or error message raised during an edit.

    Attributes:
        level: Severity level ("INFO", "WARNING", "ERROR").
        message: Warning or error message text.
        node_id: Id of the object the warning is about, if any.
        context: Optional context (for example the formula text).

    Example:
        >>> warning = EditorWarning(level="WARNING", message="Unresolved [X]", node_id=4)
        >>> warning.level
        'WARNING'
    """

    level: str
    message: str
    node_id: Optional[int] = None
    context: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate warning level."""
        valid_levels = ["INFO", "WARNING", "ERROR"]
        if self.level not in valid_levels:
            raise ValueError(
                f"Invalid warning level: {self.level}. "
                f"Must be one of {valid_levels}"
            )


class WarningCollector:
    """Collects warnings and errors during an editing session.

    Attributes:
        warnings: List of EditorWarning objects collected so far.

    Example:
        >>> collector = WarningCollector()
        >>> collector.add("WARNING", "Unresolved reference")
        >>> collector.has_errors()
        False
        >>> collector.add("ERROR", "Fix-up skipped")
        >>> collector.has_errors()
        True
    """

    def __init__(self) -> None:
        """Initialize a WarningCollector."""
        self.warnings: list[EditorWarning] = []

    def add(
        self,
        level: str,
        message: str,
        node_id: Optional[int] = None,
        context: Optional[str] = None,
    ) -> None:
        """Add a warning or error message.

        Args:
            level: Severity level ("INFO", "WARNING", "ERROR").
            message: Warning or error message text.
            node_id: Optional id of the object concerned.
            context: Optional context information (e.g., formula text).
        """
        self.warnings.append(
            EditorWarning(level=level, message=message, node_id=node_id, context=context)
        )

    def has_errors(self) -> bool:
        """Check if any error-level warnings exist."""
        return any(warning.level == "ERROR" for warning in self.warnings)

    def get_all(self) -> list[EditorWarning]:
        """Get all collected warnings and errors, in the order added."""
        return self.warnings.copy()

    def get_by_level(self, level: str) -> list[EditorWarning]:
        """Get warnings and errors by severity level."""
        return [warning for warning in self.warnings if warning.level == level]

    def get_for_node(self, node_id: int) -> list[EditorWarning]:
        return [warning for warning in self.warnings if warning.node_id == node_id]

    def clear(self) -> None:
        """Clear all collected warnings and errors."""
        self.warnings.clear()

    def add_unresolved_warning(
        self,
        owner_name: str,
        references: list[str],
        node_id: Optional[int] = None,
        context: Optional[str] = None,
    ) -> None:
        """Add a warning for references that do not resolve to any object.

        Example:
            >>> collector = WarningCollector()
            >>> collector.add_unresolved_warning("Total", ["[Missing]"], node_id=5)
            >>> collector.get_all()[0].message
            "Expression of 'Total' references unknown object(s): [Missing]"
        """
        message = (
            f"Expression of '{owner_name}' references unknown object(s): "
            f"{', '.join(references)}"
        )
        self.add("WARNING", message, node_id, context)

    def add_fixup_failure(
        self,
        owner_name: str,
        target_name: str,
        reason: str,
        node_id: Optional[int] = None,
        context: Optional[str] = None,
    ) -> None:
        """Add an error for a dependent expression that fix-up had to skip."""
        message = (
            f"Expression of '{owner_name}' was not updated after '{target_name}' "
            f"changed: {reason}"
        )
        self.add("ERROR", message, node_id, context)

    def get_summary(self) -> dict[str, int]:
        """Get a summary of warnings by level.

        Example:
            >>> collector = WarningCollector()
            >>> collector.add("INFO", "Info 1")
            >>> collector.add("ERROR", "Error 1")
            >>> collector.get_summary() == {"INFO": 1, "WARNING": 0, "ERROR": 1}
            True
        """
        summary: dict[str, int] = {"INFO": 0, "WARNING": 0, "ERROR": 0}
        for warning in self.warnings:
            summary[warning.level] = summary.get(warning.level, 0) + 1
        return summary

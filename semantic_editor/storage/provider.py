"""
Abstract storage provider interface.

This module defines the StorageProvider abstract base class: the
authoritative store that validates and holds primitive property values. The
editor core layers notification, undo and fix-up around these calls and never
writes a property without going through the provider.
"""

from abc import ABC, abstractmethod
from typing import Any

from semantic_editor.models.node import Node
from semantic_editor.models.node_kind import NodeKind


class StorageProvider(ABC):
    """Abstract interface for property storage.

    Implementations may back the values by an in-memory record (see
    DictStorageProvider) or by a live modeling API. Validation must reject
    illegal values with InvalidValueError before anything is written, so that
    no notification fires and no undo entry is recorded for a rejected write.

    Example:
        >>> class ReadOnlyProvider(DictStorageProvider):
        ...     def validate(self, kind, property_name, value):
        ...         raise InvalidValueError("read-only", property_name, value)
    """

    @abstractmethod
    def validate(self, kind: NodeKind, property_name: str, value: Any) -> Any:
        """Validate a value for a property of a node kind.

        Args:
            kind: Kind of the node being written.
            property_name: Property name (``name`` included).
            value: Proposed value.

        Returns:
            The value as it will be stored (enum members coerced from their
            string values, lists frozen to tuples, ...).

        Raises:
            InvalidValueError: If the value is illegal for the property.
        """

    @abstractmethod
    def read(self, node: Node, property_name: str) -> Any:
        """Return the stored value of a property (None when unset)."""

    @abstractmethod
    def write(self, node: Node, property_name: str, value: Any) -> None:
        """Store an already validated value."""

    def properties_for(self, kind: NodeKind) -> list[str]:
        """Return the editable property names for a node kind.

        The default implementation returns an empty list; providers with a
        schema override it.
        """
        return []

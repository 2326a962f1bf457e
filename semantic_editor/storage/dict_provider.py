"""
In-memory storage provider.

This module provides DictStorageProvider, the default StorageProvider, which
keeps property values on the Node records themselves and validates them
against the per-kind property schema.
"""

from enum import Enum
from typing import Any

from semantic_editor.exceptions import InvalidValueError
from semantic_editor.models.node import Node
from semantic_editor.models.node_kind import PROPERTY_SCHEMA, NodeKind
from semantic_editor.storage.provider import StorageProvider


class DictStorageProvider(StorageProvider):
    """Storage provider backed by the node records.

    Name rules: a non-empty string without leading or trailing whitespace,
    without control characters, no longer than ``max_name_length``.

    Attributes:
        max_name_length: Longest accepted name.

    Example:
        >>> provider = DictStorageProvider()
        >>> provider.validate(NodeKind.MEASURE, "format_string", "0.00")
        '0.00'
        >>> provider.validate(NodeKind.MEASURE, "name", " padded ")
        Traceback (most recent call last):
        ...
        InvalidValueError: Name cannot start or end with whitespace: ' padded '
    """

    def __init__(self, max_name_length: int = 512) -> None:
        """Initialize a DictStorageProvider.

        Args:
            max_name_length: Longest accepted object name.
        """
        self.max_name_length = max_name_length

    def validate(self, kind: NodeKind, property_name: str, value: Any) -> Any:
        if property_name == "name":
            return self._validate_name(value)

        schema = PROPERTY_SCHEMA.get(kind, {})
        if property_name not in schema:
            raise InvalidValueError(
                f"{kind.value.capitalize()} has no property '{property_name}'",
                property_name,
                value,
            )
        if value is None:
            # Clearing a property is always allowed
            return None

        expected = schema[property_name]
        if isinstance(expected, type) and issubclass(expected, Enum):
            try:
                return expected(value)
            except ValueError as e:
                raise InvalidValueError(
                    f"Invalid value {value!r} for '{property_name}'. "
                    f"Expected one of {[m.value for m in expected]}",
                    property_name,
                    value,
                ) from e
        if expected is tuple:
            if not isinstance(value, (list, tuple)):
                raise InvalidValueError(
                    f"'{property_name}' must be a sequence", property_name, value
                )
            return tuple(value)
        if expected is int and isinstance(value, bool):
            raise InvalidValueError(
                f"'{property_name}' must be an integer", property_name, value
            )
        if not isinstance(value, expected):
            raise InvalidValueError(
                f"'{property_name}' must be of type {expected.__name__}, "
                f"got {type(value).__name__}",
                property_name,
                value,
            )
        return value

    def read(self, node: Node, property_name: str) -> Any:
        if property_name == "name":
            return node.name
        return node.properties.get(property_name)

    def write(self, node: Node, property_name: str, value: Any) -> None:
        if property_name == "name":
            node.name = value
        elif value is None:
            node.properties.pop(property_name, None)
        else:
            node.properties[property_name] = value

    def properties_for(self, kind: NodeKind) -> list[str]:
        return list(PROPERTY_SCHEMA.get(kind, {}))

    def _validate_name(self, value: Any) -> str:
        if not isinstance(value, str):
            raise InvalidValueError("Name must be a string", "name", value)
        if not value.strip():
            raise InvalidValueError("Name cannot be empty", "name", value)
        if value != value.strip():
            raise InvalidValueError(
                f"Name cannot start or end with whitespace: {value!r}", "name", value
            )
        if any(ord(c) < 32 for c in value):
            raise InvalidValueError(
                f"Name cannot contain control characters: {value!r}", "name", value
            )
        if len(value) > self.max_name_length:
            raise InvalidValueError(
                f"Name is longer than {self.max_name_length} characters", "name", value
            )
        return value

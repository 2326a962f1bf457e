"""
Node kind enumeration.

This module defines the NodeKind and ColumnType enums, which tag every object
of the semantic model, and the per-kind structural rules (allowed parents,
name scopes, editable properties).
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class NodeKind(str, Enum):
    """Semantic model object kind.

    Classification rules:
    - MODEL: The single root object
    - TABLE: Table of the model
    - COLUMN: Data or calculated column of a table
    - MEASURE: Measure owned by a table
    - RELATIONSHIP: Relationship between two columns
    - HIERARCHY: Hierarchy of a table (levels reference columns by id)
    - PERSPECTIVE: Named subset of the model
    - ROLE: Security role
    - ANNOTATION: Name/value pair attached to any other object
    """

    MODEL = "model"
    TABLE = "table"
    COLUMN = "column"
    MEASURE = "measure"
    RELATIONSHIP = "relationship"
    HIERARCHY = "hierarchy"
    PERSPECTIVE = "perspective"
    ROLE = "role"
    ANNOTATION = "annotation"

    @classmethod
    def values(cls) -> list[str]:
        """Return a list of all node kind values.

        Example:
            >>> NodeKind.values()[:3]
            ['model', 'table', 'column']
        """
        return [member.value for member in cls]

    def is_reference_target(self) -> bool:
        """Check if objects of this kind can be referenced from formula text.

        Returns:
            True for tables, columns and measures.
        """
        return self in (NodeKind.TABLE, NodeKind.COLUMN, NodeKind.MEASURE)

    def allowed_parents(self) -> tuple[NodeKind, ...]:
        """Return the kinds that may own an object of this kind.

        Annotations may be attached to anything except another annotation.
        The model has no parent.
        """
        if self == NodeKind.MODEL:
            return ()
        if self in (NodeKind.COLUMN, NodeKind.MEASURE, NodeKind.HIERARCHY):
            return (NodeKind.TABLE,)
        if self == NodeKind.ANNOTATION:
            return tuple(k for k in NodeKind if k != NodeKind.ANNOTATION)
        return (NodeKind.MODEL,)

    def is_model_scoped(self) -> bool:
        """Check if names of this kind are unique across the whole model.

        Measures live in tables but share one namespace, because an
        unqualified ``[Measure]`` reference must be unambiguous.
        """
        return self in (
            NodeKind.TABLE,
            NodeKind.MEASURE,
            NodeKind.RELATIONSHIP,
            NodeKind.PERSPECTIVE,
            NodeKind.ROLE,
        )


class ColumnType(str, Enum):
    """Column type, fixed when the column is created."""

    DATA = "data"
    CALCULATED = "calculated"


class DataType(str, Enum):
    """Column data types accepted by the default storage provider."""

    STRING = "string"
    INT64 = "int64"
    DOUBLE = "double"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    VARIANT = "variant"


class CrossFilteringBehavior(str, Enum):
    """Relationship cross filtering direction."""

    ONE_DIRECTION = "one_direction"
    BOTH_DIRECTIONS = "both_directions"


class ModelPermission(str, Enum):
    """Model permission of a role."""

    NONE = "none"
    READ = "read"
    READ_REFRESH = "read_refresh"
    ADMINISTRATOR = "administrator"


# Editable properties per kind and their expected Python types / enums.
# ``name`` and ``parent_id`` are handled separately by the object graph.
PROPERTY_SCHEMA: dict[NodeKind, dict[str, Any]] = {
    NodeKind.MODEL: {
        "description": str,
        "culture": str,
    },
    NodeKind.TABLE: {
        "description": str,
        "is_hidden": bool,
    },
    NodeKind.COLUMN: {
        "column_type": ColumnType,
        "data_type": DataType,
        "expression": str,
        "source_column": str,
        "format_string": str,
        "display_folder": str,
        "description": str,
        "is_hidden": bool,
    },
    NodeKind.MEASURE: {
        "expression": str,
        "format_string": str,
        "display_folder": str,
        "description": str,
        "is_hidden": bool,
    },
    NodeKind.RELATIONSHIP: {
        "from_column": int,
        "to_column": int,
        "is_active": bool,
        "cross_filtering": CrossFilteringBehavior,
    },
    NodeKind.HIERARCHY: {
        "levels": tuple,
        "description": str,
        "is_hidden": bool,
    },
    NodeKind.PERSPECTIVE: {
        "description": str,
    },
    NodeKind.ROLE: {
        "model_permission": ModelPermission,
        "description": str,
    },
    NodeKind.ANNOTATION: {
        "value": str,
    },
}

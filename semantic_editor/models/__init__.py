"""
Data models for the semantic model editor.

This package contains the core data structures: node kinds, the node record
and its snapshots, undoable actions, transactions and configuration.
"""

from semantic_editor.models.action import (
    Action,
    AddNodeAction,
    MoveNodeAction,
    RemoveNodeAction,
    SetPropertyAction,
)
from semantic_editor.models.config import EditorConfig, ErrorMode
from semantic_editor.models.node import Node, NodeSnapshot, has_expression, is_reference_target
from semantic_editor.models.node_kind import (
    ColumnType,
    CrossFilteringBehavior,
    DataType,
    ModelPermission,
    NodeKind,
)
from semantic_editor.models.transaction import Transaction

__all__ = [
    "Action",
    "AddNodeAction",
    "ColumnType",
    "CrossFilteringBehavior",
    "DataType",
    "EditorConfig",
    "ErrorMode",
    "ModelPermission",
    "MoveNodeAction",
    "Node",
    "NodeKind",
    "NodeSnapshot",
    "RemoveNodeAction",
    "SetPropertyAction",
    "Transaction",
    "has_expression",
    "is_reference_target",
]

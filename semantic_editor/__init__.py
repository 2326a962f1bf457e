"""
Semantic Model Editor v1.0

Transactional editing of tabular semantic models: every edit is undoable,
and renaming or moving a table, column or measure rewrites the DAX formulas
that reference it inside the same undo transaction.

Example:
    >>> from semantic_editor import ModelSession
    >>> session = ModelSession()
    >>> sales = session.add_table("Sales")
    >>> m1 = session.add_measure(sales, "M1", "1")
    >>> m2 = session.add_measure(sales, "M2", "[M1] + 1")
    >>> session.rename(m1, "M1Renamed").name
    'M1Renamed'
    >>> m2.expression
    '[M1Renamed] + 1'
"""

from semantic_editor.version import __version__, __version_info__

__author__ = "Semantic Editor Contributors"

from semantic_editor.exceptions import (
    EditorError,
    InvalidMoveError,
    InvalidValueError,
    NameConflictError,
    NodeNotFoundError,
    TokenizationError,
    UndoStateError,
    UnresolvedReferenceError,
)
from semantic_editor.fixup.fixup_engine import FixupEngine, FixupResult, FixupTrigger
from semantic_editor.graph.dependency_index import DependencyIndex
from semantic_editor.graph.object_graph import ChangeEvent, ChangeType, ObjectGraph
from semantic_editor.loader.dict_loader import DictModelLoader, model_to_dict
from semantic_editor.models.action import (
    Action,
    AddNodeAction,
    MoveNodeAction,
    RemoveNodeAction,
    SetPropertyAction,
)
from semantic_editor.models.config import EditorConfig, ErrorMode
from semantic_editor.models.node import Node, NodeSnapshot, has_expression, is_reference_target
from semantic_editor.models.node_kind import ColumnType, DataType, NodeKind
from semantic_editor.models.transaction import Transaction
from semantic_editor.parser.tokenizer import DaxTokenizer, Token, TokenKind, Tokenizer
from semantic_editor.session import ModelSession
from semantic_editor.storage.dict_provider import DictStorageProvider
from semantic_editor.storage.provider import StorageProvider
from semantic_editor.undo.undo_manager import UndoManager, UndoState
from semantic_editor.utils.warnings import EditorWarning, WarningCollector

__all__ = [
    # Version info
    "__version__",
    "__version_info__",
    # Session
    "ModelSession",
    "DictModelLoader",
    "model_to_dict",
    # Configuration
    "EditorConfig",
    "ErrorMode",
    # Data models
    "Node",
    "NodeSnapshot",
    "NodeKind",
    "ColumnType",
    "DataType",
    "has_expression",
    "is_reference_target",
    # Undo
    "Action",
    "AddNodeAction",
    "MoveNodeAction",
    "RemoveNodeAction",
    "SetPropertyAction",
    "Transaction",
    "UndoManager",
    "UndoState",
    # Graph
    "ObjectGraph",
    "ChangeEvent",
    "ChangeType",
    "DependencyIndex",
    # Fix-up
    "FixupEngine",
    "FixupResult",
    "FixupTrigger",
    # Parser
    "DaxTokenizer",
    "Token",
    "TokenKind",
    "Tokenizer",
    # Storage
    "StorageProvider",
    "DictStorageProvider",
    # Warnings
    "EditorWarning",
    "WarningCollector",
    # Exceptions
    "EditorError",
    "NameConflictError",
    "InvalidValueError",
    "InvalidMoveError",
    "NodeNotFoundError",
    "TokenizationError",
    "UnresolvedReferenceError",
    "UndoStateError",
]

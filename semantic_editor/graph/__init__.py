"""
Object graph and dependency index module.

This package contains the ObjectGraph, which owns the model objects, and the
DependencyIndex, which tracks formula references between them.
"""

from semantic_editor.graph.dependency_index import DependencyIndex, EdgeOccurrence, ReferencePart
from semantic_editor.graph.object_graph import ChangeEvent, ChangeType, ObjectGraph

__all__ = [
    "ChangeEvent",
    "ChangeType",
    "DependencyIndex",
    "EdgeOccurrence",
    "ObjectGraph",
    "ReferencePart",
]

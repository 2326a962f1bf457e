"""
Node model.

This module defines the Node record shared by every object of the semantic
model, the NodeSnapshot used by add/remove actions, and the capability checks
the dependency index and the fixup engine dispatch on. There is deliberately
one record type for all kinds: kind-specific fields live in ``properties``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from semantic_editor.models.node_kind import ColumnType, NodeKind


@dataclass(eq=False)
class Node:
    """One object of the semantic model.

    Identity is the immutable ``id`` assigned by the object graph. Edges and
    undo actions only ever refer to that id, so a rename does not touch any
    internal structure apart from the dependent expressions' text.

    Attributes:
        id: Stable identity assigned at creation.
        kind: Node kind tag.
        name: Display name (mutable).
        parent_id: Id of the owning node, None for the model root.
        properties: Kind-specific property values.
        error: Error marker set by indexing or fixup (derived, not recorded
            in the undo history).

    Example:
        >>> node = Node(id=3, kind=NodeKind.MEASURE, name="Total", parent_id=2)
        >>> node.properties["expression"] = "SUM(Sales[Amount])"
        >>> has_expression(node)
        True
    """

    id: int
    kind: NodeKind
    name: str
    parent_id: Optional[int] = None
    properties: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def expression(self) -> Optional[str]:
        """Formula text, or None for nodes without the capability."""
        if not has_expression(self):
            return None
        return self.properties.get("expression", "")

    @property
    def column_type(self) -> Optional[ColumnType]:
        if self.kind != NodeKind.COLUMN:
            return None
        return self.properties.get("column_type", ColumnType.DATA)

    def __repr__(self) -> str:
        return f"Node(id={self.id}, kind={self.kind.value}, name={self.name!r})"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Enum values are exported by value so the result is JSON-friendly.
        """
        props: dict[str, Any] = {}
        for key, value in sorted(self.properties.items()):
            if hasattr(value, "value"):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            props[key] = value
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "parent_id": self.parent_id,
            "properties": props,
            "error": self.error,
        }


@dataclass(frozen=True)
class NodeSnapshot:
    """Immutable copy of a node and its whole subtree.

    Used by add/remove actions so that a removed table can be restored with
    the same ids, names, properties and child order.

    Attributes:
        id: Node id.
        kind: Node kind.
        name: Node name at the time of the snapshot.
        parent_id: Owning node id.
        properties: Sorted tuple of (property, value) pairs.
        children: Snapshots of the children, in child order.
    """

    id: int
    kind: NodeKind
    name: str
    parent_id: Optional[int]
    properties: tuple[tuple[str, Any], ...] = ()
    children: tuple[NodeSnapshot, ...] = ()

    def iter_ids(self) -> list[int]:
        """Return the ids of this node and all descendants, parents first."""
        ids = [self.id]
        for child in self.children:
            ids.extend(child.iter_ids())
        return ids

    def to_node(self) -> Node:
        return Node(
            id=self.id,
            kind=self.kind,
            name=self.name,
            parent_id=self.parent_id,
            properties=dict(self.properties),
        )


def has_expression(node: Node) -> bool:
    """Check if a node carries a formula expression.

    Measures and calculated columns do; everything else does not.
    """
    if node.kind == NodeKind.MEASURE:
        return True
    if node.kind == NodeKind.COLUMN:
        return node.properties.get("column_type", ColumnType.DATA) == ColumnType.CALCULATED
    return False


def is_reference_target(node: Node) -> bool:
    """Check if a node's name can appear inside another object's formula."""
    return node.kind.is_reference_target()

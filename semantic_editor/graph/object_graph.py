"""
Object graph of a semantic model.

This module defines the ObjectGraph class, which owns every node of one model,
maintains parent/child order, enforces the structural invariants (parent
kinds, sibling name uniqueness) and emits change notifications. The mutation
primitives here are only meant to be driven by undoable actions; editing code
goes through ModelSession.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Optional

from semantic_editor.exceptions import (
    InvalidMoveError,
    NameConflictError,
    NodeNotFoundError,
    UndoStateError,
)
from semantic_editor.models.node import Node, NodeSnapshot
from semantic_editor.models.node_kind import NodeKind
from semantic_editor.storage.provider import StorageProvider

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """Kind of change notification."""

    PROPERTY = "property"
    MOVED = "moved"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class ChangeEvent:
    """Change notification emitted after a mutation was applied.

    Attributes:
        change_type: What happened.
        node: The node changed (for REMOVED, the detached node record).
        property_name: Property written (PROPERTY), ``parent_id`` (MOVED).
        old_value: Value before the change.
        new_value: Value after the change.
        snapshot: Subtree added or removed (ADDED/REMOVED).
    """

    change_type: ChangeType
    node: Node
    property_name: Optional[str] = None
    old_value: Any = None
    new_value: Any = None
    snapshot: Optional[NodeSnapshot] = None


ChangeListener = Callable[[ChangeEvent], None]


class ObjectGraph:
    """Object graph: owns all nodes of one model.

    Responsibilities:
    1. Assign stable ids and keep parent/child order
    2. Look nodes up by id, kind and (case-insensitive) name
    3. Validate names and parents before a mutation is built
    4. Apply primitive mutations on behalf of actions and notify listeners

    Usage:
        graph = ObjectGraph(DictStorageProvider())
        graph.check_name_available(NodeKind.TABLE, graph.model.id, "Sales")
        table = graph.find_table("sales")
    """

    def __init__(self, storage: StorageProvider, model_name: str = "Model") -> None:
        """Initialize an ObjectGraph with its model root.

        Args:
            storage: Provider that validates and stores property values.
            model_name: Name of the model root.
        """
        self.storage = storage
        self.nodes: dict[int, Node] = {}
        self._children: dict[int, list[int]] = {}
        # Records of removed nodes, reused when an undo re-attaches them
        self._detached: dict[int, Node] = {}
        self._listeners: list[ChangeListener] = []
        self._next_id = 1

        root = Node(id=self.allocate_id(), kind=NodeKind.MODEL, name=model_name)
        self.nodes[root.id] = root
        self._children[root.id] = []
        self.model: Node = root

    # Listeners

    def add_listener(self, callback: ChangeListener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: ChangeListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, event: ChangeEvent) -> None:
        for callback in list(self._listeners):
            callback(event)

    # Lookups

    def allocate_id(self) -> int:
        """Return a fresh node id. Ids are never reused."""
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def get(self, node_id: int) -> Node:
        """Get a node by id.

        Raises:
            NodeNotFoundError: If no node has this id.
        """
        node = self.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(f"Node {node_id} does not exist", node_id)
        return node

    def has_node(self, node_id: int) -> bool:
        return node_id in self.nodes

    def children(self, node_id: int, kind: Optional[NodeKind] = None) -> list[Node]:
        """Get the children of a node in child order, optionally by kind."""
        result = [self.nodes[i] for i in self._children.get(node_id, [])]
        if kind is not None:
            result = [n for n in result if n.kind == kind]
        return result

    def position_of(self, node_id: int) -> int:
        node = self.get(node_id)
        if node.parent_id is None:
            return 0
        return self._children[node.parent_id].index(node_id)

    def parent(self, node: Node) -> Optional[Node]:
        if node.parent_id is None:
            return None
        return self.nodes.get(node.parent_id)

    def iter_nodes(self, kind: Optional[NodeKind] = None) -> Iterator[Node]:
        """Iterate over nodes in tree order (parents before children)."""
        stack = [self.model.id]
        while stack:
            node = self.nodes[stack.pop()]
            if kind is None or node.kind == kind:
                yield node
            stack.extend(reversed(self._children.get(node.id, [])))

    def table_of(self, node: Node) -> Optional[Node]:
        """Return the table owning a node (the node itself for a table)."""
        current: Optional[Node] = node
        while current is not None and current.kind != NodeKind.TABLE:
            current = self.parent(current)
        return current

    def find_table(self, name: str) -> Optional[Node]:
        """Find a table by name (case-insensitive)."""
        return self._find_named(self.children(self.model.id, NodeKind.TABLE), name)

    def find_measure(self, name: str, table: Optional[Node] = None) -> Optional[Node]:
        """Find a measure by name (case-insensitive), optionally within a table."""
        if table is not None:
            return self._find_named(self.children(table.id, NodeKind.MEASURE), name)
        return self._find_named(self.iter_nodes(NodeKind.MEASURE), name)

    def find_column(self, table: Node, name: str) -> Optional[Node]:
        """Find a column of a table by name (case-insensitive)."""
        return self._find_named(self.children(table.id, NodeKind.COLUMN), name)

    @staticmethod
    def _find_named(candidates: Any, name: str) -> Optional[Node]:
        key = name.lower()
        for node in candidates:
            if node.name.lower() == key:
                return node
        return None

    # Validation

    def scope_members(self, kind: NodeKind, parent_id: int) -> list[Node]:
        """Return the nodes whose names must differ from a node of ``kind``.

        Model-scoped kinds (tables, measures, ...) compete with every node of
        the same kind; other kinds only with same-kind siblings.
        """
        if kind.is_model_scoped():
            return list(self.iter_nodes(kind))
        return self.children(parent_id, kind)

    def check_name_available(
        self,
        kind: NodeKind,
        parent_id: int,
        name: str,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Validate that ``name`` is free in the scope of ``kind`` under a parent.

        Raises:
            NameConflictError: If another node already holds the name.
        """
        key = name.lower()
        for other in self.scope_members(kind, parent_id):
            if other.id != exclude_id and other.name.lower() == key:
                raise NameConflictError(
                    f"A {kind.value} named '{other.name}' already exists",
                    name=name,
                    kind=kind.value,
                    existing_id=other.id,
                )

    def check_parent(self, kind: NodeKind, parent: Node) -> None:
        """Validate that a node of ``kind`` may be owned by ``parent``.

        Raises:
            InvalidMoveError: If the parent kind is not allowed.
        """
        if parent.kind not in kind.allowed_parents():
            raise InvalidMoveError(
                f"A {kind.value} cannot be placed under a {parent.kind.value}"
            )

    # Snapshots

    def snapshot_of(self, node_id: int) -> NodeSnapshot:
        """Build an immutable snapshot of a node and its subtree."""
        node = self.get(node_id)
        return NodeSnapshot(
            id=node.id,
            kind=node.kind,
            name=node.name,
            parent_id=node.parent_id,
            properties=tuple(sorted(node.properties.items())),
            children=tuple(self.snapshot_of(c) for c in self._children.get(node_id, [])),
        )

    # Primitive mutations (driven by actions)

    def replace_value(self, node_id: int, property_name: str, expected: Any, value: Any) -> None:
        """Write a property whose current value must equal ``expected``.

        Raises:
            UndoStateError: If the current value differs from ``expected``.
        """
        node = self._get_for_action(node_id)
        current = self.storage.read(node, property_name)
        if current != expected:
            raise UndoStateError(
                f"Node {node_id} '{property_name}' is {current!r}, expected {expected!r}"
            )
        self.storage.write(node, property_name, value)
        self._notify(
            ChangeEvent(
                ChangeType.PROPERTY,
                node,
                property_name=property_name,
                old_value=expected,
                new_value=value,
            )
        )

    def relocate(self, node_id: int, expected_parent_id: int, parent_id: int, position: int) -> None:
        """Move a node whose current parent must be ``expected_parent_id``."""
        node = self._get_for_action(node_id)
        if node.parent_id != expected_parent_id:
            raise UndoStateError(
                f"Node {node_id} is under {node.parent_id}, expected {expected_parent_id}"
            )
        if parent_id not in self.nodes:
            raise UndoStateError(f"Target parent {parent_id} does not exist")
        self._children[expected_parent_id].remove(node_id)
        siblings = self._children[parent_id]
        siblings.insert(min(position, len(siblings)), node_id)
        node.parent_id = parent_id
        self._notify(
            ChangeEvent(
                ChangeType.MOVED,
                node,
                property_name="parent_id",
                old_value=expected_parent_id,
                new_value=parent_id,
            )
        )

    def attach(self, snapshot: NodeSnapshot, position: Optional[int] = None) -> None:
        """Insert a subtree from a snapshot, keeping its ids."""
        for node_id in snapshot.iter_ids():
            if node_id in self.nodes:
                raise UndoStateError(f"Cannot attach node {node_id}: id already in use")
        if snapshot.parent_id not in self.nodes:
            raise UndoStateError(
                f"Cannot attach node {snapshot.id}: parent {snapshot.parent_id} does not exist"
            )
        self._insert(snapshot)
        siblings = self._children[snapshot.parent_id]
        if position is None or position >= len(siblings):
            siblings.append(snapshot.id)
        else:
            siblings.insert(position, snapshot.id)
        self._next_id = max(self._next_id, max(snapshot.iter_ids()) + 1)
        logger.debug("Attached %s '%s' (%d)", snapshot.kind.value, snapshot.name, snapshot.id)
        self._notify(ChangeEvent(ChangeType.ADDED, self.nodes[snapshot.id], snapshot=snapshot))

    def _insert(self, snapshot: NodeSnapshot) -> None:
        node = self._detached.pop(snapshot.id, None)
        if node is None:
            node = snapshot.to_node()
        else:
            node.name = snapshot.name
            node.parent_id = snapshot.parent_id
            node.properties = dict(snapshot.properties)
            node.error = None
        self.nodes[snapshot.id] = node
        self._children[snapshot.id] = []
        for child in snapshot.children:
            self._insert(child)
            self._children[snapshot.id].append(child.id)

    def detach(self, snapshot: NodeSnapshot) -> None:
        """Remove the subtree described by ``snapshot``.

        Raises:
            UndoStateError: If the graph does not hold exactly that subtree.
        """
        node = self._get_for_action(snapshot.id)
        if node.kind != snapshot.kind or node.parent_id != snapshot.parent_id:
            raise UndoStateError(f"Node {snapshot.id} does not match the recorded snapshot")
        current_ids = self.snapshot_of(snapshot.id).iter_ids()
        if sorted(current_ids) != sorted(snapshot.iter_ids()):
            raise UndoStateError(
                f"Subtree of node {snapshot.id} changed since it was recorded"
            )
        self._children[snapshot.parent_id].remove(snapshot.id)
        for node_id in current_ids:
            self._children.pop(node_id, None)
            self._detached[node_id] = self.nodes.pop(node_id)
        logger.debug("Detached %s '%s' (%d)", snapshot.kind.value, snapshot.name, snapshot.id)
        self._notify(ChangeEvent(ChangeType.REMOVED, node, snapshot=snapshot))

    def _get_for_action(self, node_id: int) -> Node:
        node = self.nodes.get(node_id)
        if node is None:
            raise UndoStateError(f"Action refers to missing node {node_id}")
        return node

    # Export

    def to_dict(self) -> dict[str, Any]:
        """Export the observable model state (error markers excluded)."""
        nodes = []
        for node in self.iter_nodes():
            data = node.to_dict()
            data.pop("error")
            data["children"] = list(self._children.get(node.id, []))
            nodes.append(data)
        return {"model": self.model.name, "nodes": nodes}

    def get_statistics(self) -> dict[str, int]:
        """Count nodes per kind."""
        stats = {kind.value: 0 for kind in NodeKind}
        for node in self.nodes.values():
            stats[node.kind.value] += 1
        stats["total_nodes"] = len(self.nodes)
        return stats

"""
Undoable action records.

Each action is an immutable record of one primitive mutation carrying enough
data to apply it forward and to invert it. Actions refer to nodes by id only.
Applying an action whose expected "before" state does not match the graph is
an internal invariant violation and raises UndoStateError from the graph.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from semantic_editor.models.node import NodeSnapshot

if TYPE_CHECKING:
    from semantic_editor.graph.object_graph import ObjectGraph


class Action(ABC):
    """Base class for undoable primitive mutations."""

    @abstractmethod
    def apply(self, graph: ObjectGraph) -> None:
        """Apply the mutation forward."""

    @abstractmethod
    def revert(self, graph: ObjectGraph) -> None:
        """Apply the inverse mutation."""

    @abstractmethod
    def describe(self) -> str:
        """Return a short label used for single-action transactions."""


@dataclass(frozen=True)
class SetPropertyAction(Action):
    """Property write, including renames (``property_name == "name"``).

    Attributes:
        node_id: Id of the node written.
        property_name: Property written.
        old_value: Value before the write.
        new_value: Value after the write.
    """

    node_id: int
    property_name: str
    old_value: Any
    new_value: Any

    def apply(self, graph: ObjectGraph) -> None:
        graph.replace_value(self.node_id, self.property_name, self.old_value, self.new_value)

    def revert(self, graph: ObjectGraph) -> None:
        graph.replace_value(self.node_id, self.property_name, self.new_value, self.old_value)

    def describe(self) -> str:
        if self.property_name == "name":
            return f"Rename '{self.old_value}' to '{self.new_value}'"
        return f"Set {self.property_name}"


@dataclass(frozen=True)
class MoveNodeAction(Action):
    """Write of ``parent_id``; also records sibling positions on both sides.

    Attributes:
        node_id: Id of the moved node.
        old_parent_id: Parent before the move.
        old_position: Index among the old parent's children.
        new_parent_id: Parent after the move.
        new_position: Index among the new parent's children.
    """

    node_id: int
    old_parent_id: int
    old_position: int
    new_parent_id: int
    new_position: int

    def apply(self, graph: ObjectGraph) -> None:
        graph.relocate(self.node_id, self.old_parent_id, self.new_parent_id, self.new_position)

    def revert(self, graph: ObjectGraph) -> None:
        graph.relocate(self.node_id, self.new_parent_id, self.old_parent_id, self.old_position)

    def describe(self) -> str:
        return "Move"


@dataclass(frozen=True)
class AddNodeAction(Action):
    """Creation of a node (with its subtree, if any).

    Attributes:
        snapshot: The created subtree.
        position: Index among the parent's children.
    """

    snapshot: NodeSnapshot
    position: Optional[int] = None

    def apply(self, graph: ObjectGraph) -> None:
        graph.attach(self.snapshot, self.position)

    def revert(self, graph: ObjectGraph) -> None:
        graph.detach(self.snapshot)

    def describe(self) -> str:
        return f"Add {self.snapshot.kind.value} '{self.snapshot.name}'"


@dataclass(frozen=True)
class RemoveNodeAction(Action):
    """Removal of a node together with its subtree.

    Attributes:
        snapshot: The removed subtree as it was before removal.
        position: Index the node had among its parent's children.
    """

    snapshot: NodeSnapshot
    position: Optional[int] = None

    def apply(self, graph: ObjectGraph) -> None:
        graph.detach(self.snapshot)

    def revert(self, graph: ObjectGraph) -> None:
        graph.attach(self.snapshot, self.position)

    def describe(self) -> str:
        return f"Delete {self.snapshot.kind.value} '{self.snapshot.name}'"

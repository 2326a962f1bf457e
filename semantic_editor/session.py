"""
Editing session.

This module defines ModelSession, the single entry point through which the
UI, scripts and loaders edit a model. A session owns one object graph, one
undo manager and one dependency index; nothing is shared between sessions.

Every mutation follows the same path: validate, record the action in the
undo manager, apply it to the object graph, and let the change notification
update the dependency index. Renames and moves of tables, columns and
measures additionally run the fixup engine from that notification, inside
the same transaction, unless the undo manager is replaying.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Union

from semantic_editor.exceptions import (
    InvalidMoveError,
    InvalidValueError,
    NodeNotFoundError,
    TokenizationError,
    UnresolvedReferenceError,
)
from semantic_editor.fixup.fixup_engine import FixupEngine, FixupResult, FixupTrigger
from semantic_editor.graph.dependency_index import DependencyIndex
from semantic_editor.graph.object_graph import ChangeEvent, ChangeType, ObjectGraph
from semantic_editor.models.action import (
    Action,
    AddNodeAction,
    MoveNodeAction,
    RemoveNodeAction,
    SetPropertyAction,
)
from semantic_editor.models.config import EditorConfig, ErrorMode
from semantic_editor.models.node import Node, NodeSnapshot, has_expression, is_reference_target
from semantic_editor.models.node_kind import ColumnType, NodeKind
from semantic_editor.parser.reference_parser import parse_references
from semantic_editor.parser.tokenizer import Tokenizer, default_tokenizer
from semantic_editor.storage.dict_provider import DictStorageProvider
from semantic_editor.storage.provider import StorageProvider
from semantic_editor.undo.undo_manager import UndoManager
from semantic_editor.utils.warnings import WarningCollector

logger = logging.getLogger(__name__)

NodeRef = Union[Node, int, str]

# Kinds that may change parent after creation
MOVABLE_KINDS = (NodeKind.MEASURE,)


class ModelSession:
    """Editing session over one semantic model.

    Attributes:
        config: Session configuration.
        storage: Storage provider validating and holding property values.
        tokenizer: Formula tokenizer.
        graph: Object graph of the model.
        undo_manager: Undo/redo stacks of this session.
        index: Dependency index of formula references.
        fixup: Fixup engine.
        warnings: Collected warnings (unresolved references, fix-up failures).
        last_fixup: Result of the most recent fix-up pass, if any.

    Example:
        >>> session = ModelSession()
        >>> sales = session.add_table("Sales")
        >>> m1 = session.add_measure(sales, "M1", "1")
        >>> m2 = session.add_measure(sales, "M2", "[M1] + 1")
        >>> _ = session.rename(m1, "M1Renamed")
        >>> m2.expression
        '[M1Renamed] + 1'
        >>> session.undo()
        True
        >>> m2.expression
        '[M1] + 1'
    """

    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        storage: Optional[StorageProvider] = None,
        tokenizer: Optional[Tokenizer] = None,
        model_name: str = "Model",
    ) -> None:
        """Initialize a session with an empty model.

        Args:
            config: Session configuration (defaults to EditorConfig()).
            storage: Storage provider (defaults to DictStorageProvider).
            tokenizer: Formula tokenizer (defaults to DaxTokenizer).
            model_name: Name of the model root.
        """
        self.config = config or EditorConfig()
        self.storage = storage or DictStorageProvider(self.config.max_name_length)
        self.tokenizer = tokenizer or default_tokenizer()
        self.warnings = WarningCollector()
        self.graph = ObjectGraph(self.storage, model_name)
        self.undo_manager = UndoManager(self.graph, self.config.max_undo_levels)
        self.index = DependencyIndex(self.graph, self.tokenizer)
        self.fixup = FixupEngine(self.graph, self.index, self.tokenizer, self.config, self.warnings)
        self.last_fixup: Optional[FixupResult] = None
        self.graph.add_listener(self._on_graph_change)

    def __enter__(self) -> ModelSession:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Tear the session down: detach listeners and drop the history."""
        self.graph.remove_listener(self._on_graph_change)
        if self.undo_manager.batch_depth == 0:
            self.undo_manager.clear()

    @property
    def model(self) -> Node:
        return self.graph.model

    # Batches and history

    def begin_batch(self, label: str) -> None:
        self.undo_manager.begin_batch(label)

    def end_batch(self) -> None:
        self.undo_manager.end_batch()

    @contextmanager
    def batch(self, label: str) -> Iterator[None]:
        """Group every edit made inside the block into one undo transaction.

        The batch is closed even if the block raises; edits applied before
        the exception stay applied. Call ``undo()`` afterwards to unwind them,
        or ``rollback()`` inside the block to discard them.
        """
        self.undo_manager.begin_batch(label)
        try:
            yield
        finally:
            # rollback() inside the block already closed every open batch
            if self.undo_manager.batch_depth > 0:
                self.undo_manager.end_batch()

    def undo(self) -> bool:
        """Undo the last transaction. Returns False when there is nothing to undo."""
        return self.undo_manager.undo()

    def redo(self) -> bool:
        """Redo the last undone transaction. Returns False when there is nothing to redo."""
        return self.undo_manager.redo()

    def rollback(self) -> None:
        """Close the open batch and revert the edits it applied."""
        self.undo_manager.rollback()

    def clear_history(self) -> None:
        """Reset the undo and redo stacks (after loading a model)."""
        self.undo_manager.clear()

    @property
    def can_undo(self) -> bool:
        return self.undo_manager.can_undo

    @property
    def can_redo(self) -> bool:
        return self.undo_manager.can_redo

    # Lookups

    def get_node(self, node_id: int) -> Node:
        return self.graph.get(node_id)

    def find_table(self, name: str) -> Optional[Node]:
        return self.graph.find_table(name)

    def find_measure(self, name: str) -> Optional[Node]:
        return self.graph.find_measure(name)

    def find_column(self, table: NodeRef, name: str) -> Optional[Node]:
        return self.graph.find_column(self._node(table), name)

    def resolve_path(self, path: str) -> Node:
        """Resolve an object path written the way formulas reference objects.

        Accepted forms: ``Table``, ``'Table Name'``, ``Table[Column]``,
        ``'Table Name'[Measure]`` and ``[Measure]``.

        Raises:
            NodeNotFoundError: If the path is malformed or nothing matches.
        """
        try:
            references = parse_references(self.tokenizer.tokenize(path.strip()))
        except TokenizationError as e:
            raise NodeNotFoundError(f"Invalid object path '{path}': {e.message}", path) from e
        if len(references) != 1:
            raise NodeNotFoundError(f"Invalid object path '{path}'", path)
        reference = references[0]

        found: Optional[Node] = None
        if reference.table_name is not None:
            table = self.graph.find_table(reference.table_name)
            if table is not None and reference.object_name is None:
                found = table
            elif table is not None:
                found = self.graph.find_column(
                    table, reference.object_name
                ) or self.graph.find_measure(reference.object_name, table)
        elif reference.object_name is not None:
            found = self.graph.find_measure(reference.object_name)

        if found is None:
            raise NodeNotFoundError(f"Object '{path}' not found", path)
        return found

    def get_dependents(self, node: NodeRef) -> set[Node]:
        """Get the formula-bearing nodes referencing ``node``."""
        return self.index.get_dependents(self._node(node))

    def get_dependencies(self, node: NodeRef) -> set[Node]:
        """Get the nodes referenced by the expression of ``node``."""
        return self.index.get_dependencies(self._node(node))

    def get_transitive_dependents(self, node: NodeRef) -> set[Node]:
        return self.index.get_transitive_dependents(self._node(node))

    def snapshot(self) -> dict[str, Any]:
        """Return the full observable model state."""
        return self.graph.to_dict()

    # Additions

    def add_node(
        self,
        kind: Union[NodeKind, str],
        name: str,
        parent: Optional[NodeRef] = None,
        properties: Optional[dict[str, Any]] = None,
        position: Optional[int] = None,
    ) -> Node:
        """Create a node under ``parent`` (the model when omitted).

        Raises:
            InvalidMoveError: If ``kind`` cannot be placed under ``parent``.
            InvalidValueError: If the name or a property value is illegal.
            NameConflictError: If a sibling already holds the name.
        """
        kind = NodeKind(kind)
        if kind == NodeKind.MODEL:
            raise InvalidMoveError("A model cannot be added to another model")
        owner = self._node(parent) if parent is not None else self.model
        self.graph.check_parent(kind, owner)
        name = self.storage.validate(kind, "name", name)
        self.graph.check_name_available(kind, owner.id, name)

        values: dict[str, Any] = {}
        for key, value in (properties or {}).items():
            if value is None:
                continue
            values[key] = self.storage.validate(kind, key, value)
        if kind == NodeKind.COLUMN:
            values.setdefault("column_type", ColumnType.DATA)
            if "expression" in values and values["column_type"] != ColumnType.CALCULATED:
                raise InvalidValueError(
                    "Only calculated columns have an expression", "expression", values["expression"]
                )
        for key, value in values.items():
            self._check_semantics(kind, owner, key, value)

        snapshot = NodeSnapshot(
            id=self.graph.allocate_id(),
            kind=kind,
            name=name,
            parent_id=owner.id,
            properties=tuple(sorted(values.items())),
        )
        with self.batch(f"Add {kind.value} '{name}'"):
            self._commit(AddNodeAction(snapshot, position))
        return self.graph.get(snapshot.id)

    def add_table(self, name: str, **properties: Any) -> Node:
        return self.add_node(NodeKind.TABLE, name, self.model, properties)

    def add_column(
        self,
        table: NodeRef,
        name: str,
        data_type: Any = None,
        expression: Optional[str] = None,
        **properties: Any,
    ) -> Node:
        """Add a column; passing an expression makes it a calculated column."""
        properties["data_type"] = data_type
        if expression is not None:
            properties["column_type"] = ColumnType.CALCULATED
            properties["expression"] = expression
        return self.add_node(NodeKind.COLUMN, name, table, properties)

    def add_measure(self, table: NodeRef, name: str, expression: str = "", **properties: Any) -> Node:
        properties["expression"] = expression
        return self.add_node(NodeKind.MEASURE, name, table, properties)

    def add_relationship(
        self,
        from_column: NodeRef,
        to_column: NodeRef,
        name: Optional[str] = None,
        **properties: Any,
    ) -> Node:
        """Add a relationship between two columns (referenced by id)."""
        source = self._node(from_column)
        target = self._node(to_column)
        if name is None:
            name = f"{self.fixup.canonical_reference(source)} -> {self.fixup.canonical_reference(target)}"
        properties["from_column"] = source.id
        properties["to_column"] = target.id
        return self.add_node(NodeKind.RELATIONSHIP, name, self.model, properties)

    def add_hierarchy(self, table: NodeRef, name: str, levels: Any = (), **properties: Any) -> Node:
        properties["levels"] = tuple(self._node(level).id for level in levels)
        return self.add_node(NodeKind.HIERARCHY, name, table, properties)

    def add_perspective(self, name: str, **properties: Any) -> Node:
        return self.add_node(NodeKind.PERSPECTIVE, name, self.model, properties)

    def add_role(self, name: str, **properties: Any) -> Node:
        return self.add_node(NodeKind.ROLE, name, self.model, properties)

    def add_annotation(self, owner: NodeRef, name: str, value: str = "") -> Node:
        return self.add_node(NodeKind.ANNOTATION, name, owner, {"value": value})

    # Edits

    def rename(self, node: NodeRef, new_name: str) -> Node:
        """Rename a node; references to it in other formulas are fixed up.

        Raises:
            InvalidValueError: If the name is illegal.
            NameConflictError: If a sibling already holds the name.
        """
        target = self._node(node)
        new_name = self.storage.validate(target.kind, "name", new_name)
        if target.parent_id is not None:
            self.graph.check_name_available(target.kind, target.parent_id, new_name, exclude_id=target.id)
        if new_name == target.name:
            return target
        label = f"Rename {target.kind.value} '{target.name}' to '{new_name}'"
        with self.batch(label):
            self._commit(SetPropertyAction(target.id, "name", target.name, new_name))
        return target

    def move(self, node: NodeRef, new_parent: NodeRef, position: Optional[int] = None) -> Node:
        """Move a node to another parent; qualified references are fixed up.

        Raises:
            InvalidMoveError: If the node cannot be moved there.
            NameConflictError: If the new scope already holds the name.
        """
        target = self._node(node)
        parent = self._node(new_parent)
        if target.kind not in MOVABLE_KINDS:
            raise InvalidMoveError(f"A {target.kind.value} cannot be moved")
        self.graph.check_parent(target.kind, parent)
        if parent.id == target.parent_id:
            return target
        self.graph.check_name_available(target.kind, parent.id, target.name, exclude_id=target.id)

        old_position = self.graph.position_of(target.id)
        new_position = len(self.graph.children(parent.id)) if position is None else position
        with self.batch(f"Move {target.kind.value} '{target.name}' to '{parent.name}'"):
            self._commit(
                MoveNodeAction(target.id, target.parent_id, old_position, parent.id, new_position)
            )
        return target

    def set_expression(self, node: NodeRef, text: str) -> Node:
        """Replace the expression of a measure or calculated column.

        Raises:
            InvalidValueError: If the node has no expression or ``text`` is
                not a string.
            UnresolvedReferenceError: If ``text`` references unknown objects
                and ``on_unresolved`` is FAIL.
        """
        target = self._node(node)
        if not has_expression(target):
            raise InvalidValueError(
                f"{target.kind.value.capitalize()} '{target.name}' has no expression",
                "expression",
                text,
            )
        text = self.storage.validate(target.kind, "expression", text)
        if self.config.on_unresolved == ErrorMode.FAIL:
            unresolved = self.index.find_unresolved(target, text)
            if unresolved:
                raise UnresolvedReferenceError(
                    f"Expression of '{target.name}' references unknown object(s): "
                    f"{', '.join(unresolved)}",
                    unresolved,
                )
        if text == self.storage.read(target, "expression"):
            return target
        with self.batch(f"Set expression of '{target.name}'"):
            self._write_expression(target, text)
        return target

    def set_property(self, node: NodeRef, property_name: str, value: Any) -> Node:
        """Write any property; ``name`` and ``expression`` take their dedicated paths."""
        target = self._node(node)
        if property_name == "name":
            return self.rename(target, value)
        if property_name == "expression":
            return self.set_expression(target, value)
        if property_name == "parent_id":
            return self.move(target, value)
        if property_name == "column_type":
            raise InvalidValueError("The column type is fixed when a column is created", property_name, value)

        value = self.storage.validate(target.kind, property_name, value)
        owner = self.graph.parent(target) or self.model
        self._check_semantics(target.kind, owner, property_name, value)
        old_value = self.storage.read(target, property_name)
        if value == old_value:
            return target
        with self.batch(f"Set {property_name} of '{target.name}'"):
            self._commit(SetPropertyAction(target.id, property_name, old_value, value))
        return target

    def remove_node(self, node: NodeRef) -> None:
        """Delete a node and its subtree in one transaction.

        Relationships using a deleted column are deleted too, and deleted
        columns are dropped from the levels of hierarchies outside the
        subtree. Expressions referencing deleted objects are left as they are
        and show up as unresolved.
        """
        target = self._node(node)
        if target.kind == NodeKind.MODEL:
            raise InvalidMoveError("The model cannot be deleted")

        removed_ids = set(self.graph.snapshot_of(target.id).iter_ids())
        with self.batch(f"Delete {target.kind.value} '{target.name}'"):
            for relationship in list(self.graph.iter_nodes(NodeKind.RELATIONSHIP)):
                if relationship.id in removed_ids:
                    continue
                ends = {relationship.properties.get("from_column"), relationship.properties.get("to_column")}
                if ends & removed_ids:
                    self._remove(relationship)
            for hierarchy in list(self.graph.iter_nodes(NodeKind.HIERARCHY)):
                if hierarchy.id in removed_ids:
                    continue
                levels = hierarchy.properties.get("levels") or ()
                kept = tuple(level for level in levels if level not in removed_ids)
                if kept != levels:
                    self._commit(SetPropertyAction(hierarchy.id, "levels", levels, kept))
            self._remove(target)

    # Internals

    def _node(self, ref: NodeRef) -> Node:
        if isinstance(ref, Node):
            if self.graph.nodes.get(ref.id) is not ref:
                raise NodeNotFoundError(f"{ref!r} is not part of this model", ref.id)
            return ref
        if isinstance(ref, int) and not isinstance(ref, bool):
            return self.graph.get(ref)
        if isinstance(ref, str):
            return self.resolve_path(ref)
        raise NodeNotFoundError(f"Cannot resolve {ref!r} to a node", ref)

    def _commit(self, action: Action) -> None:
        # Recorded before it is applied: edits triggered by its notification
        # (fix-ups) must come after it in the transaction.
        self.undo_manager.add(action)
        action.apply(self.graph)

    def _write_expression(self, node: Node, text: str) -> None:
        old_text = self.storage.read(node, "expression")
        self._commit(SetPropertyAction(node.id, "expression", old_text, text))

    def _remove(self, node: Node) -> None:
        snapshot = self.graph.snapshot_of(node.id)
        position = self.graph.position_of(node.id)
        self._commit(RemoveNodeAction(snapshot, position))

    def _check_semantics(self, kind: NodeKind, owner: Node, property_name: str, value: Any) -> None:
        """Checks that need the graph (ids must point at suitable nodes)."""
        if kind == NodeKind.RELATIONSHIP and property_name in ("from_column", "to_column"):
            column = self.graph.nodes.get(value)
            if column is None or column.kind != NodeKind.COLUMN:
                raise InvalidValueError(f"'{property_name}' must be a column id", property_name, value)
        elif kind == NodeKind.HIERARCHY and property_name == "levels":
            table = self.graph.table_of(owner)
            for level in value:
                column = self.graph.nodes.get(level)
                if column is None or column.kind != NodeKind.COLUMN or column.parent_id != getattr(table, "id", None):
                    raise InvalidValueError(
                        "Hierarchy levels must be columns of the hierarchy's table", property_name, value
                    )

    # Notifications

    def _on_graph_change(self, event: ChangeEvent) -> None:
        node = event.node
        if event.change_type == ChangeType.PROPERTY:
            if event.property_name == "expression":
                unresolved = self.index.on_expression_changed(node, event.old_value, event.new_value)
                self._report_unresolved(node, unresolved)
            elif event.property_name == "name":
                self._on_target_changed(event, FixupTrigger.RENAME)
        elif event.change_type == ChangeType.MOVED:
            self._on_target_changed(event, FixupTrigger.MOVE)
        elif event.change_type == ChangeType.ADDED and event.snapshot is not None:
            ids = event.snapshot.iter_ids()
            for node_id in ids:
                added = self.graph.nodes[node_id]
                if has_expression(added):
                    text = added.expression
                    self._report_unresolved(added, self.index.on_expression_changed(added, None, text))
            self.index.refresh_names(
                [self.graph.nodes[i].name for i in ids], exclude=ids
            )
        elif event.change_type == ChangeType.REMOVED and event.snapshot is not None:
            dependents = self.index.forget(event.snapshot.iter_ids())
            self.index.reindex(dependents)

    def _on_target_changed(self, event: ChangeEvent, trigger: FixupTrigger) -> None:
        node = event.node
        if not is_reference_target(node):
            return

        failed: set[int] = set()
        if self.config.fixup_enabled and not self.undo_manager.is_replaying:
            if trigger == FixupTrigger.RENAME:
                old_reference = self.fixup.canonical_reference(node, name=event.old_value)
            else:
                old_reference = self.fixup.canonical_reference(
                    node, table=self.graph.nodes.get(event.old_value)
                )
            result = self.fixup.run(node, trigger, old_reference, self._write_expression)
            self.last_fixup = result
            failed = set(result.failed)
            logger.info(
                "%s %s -> %s: %d reference(s) updated in %d expression(s)",
                trigger.value.capitalize(),
                result.old_reference,
                result.new_reference,
                result.references_updated,
                len(result.rewritten),
            )

        dependents = {n.id for n in self.index.get_dependents(node)} - failed
        self.index.reindex(dependents)
        names = [node.name]
        if trigger == FixupTrigger.RENAME:
            names.append(event.old_value)
        self.index.refresh_names(names, exclude=failed)

    def _report_unresolved(self, node: Node, unresolved: list[str]) -> None:
        if not unresolved or self.undo_manager.is_replaying:
            return
        if self.config.on_unresolved != ErrorMode.IGNORE:
            self.warnings.add_unresolved_warning(node.name, unresolved, node.id, node.expression)

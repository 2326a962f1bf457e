"""
Dependency index for formula references.

This module defines the DependencyIndex class, which uses networkx to keep a
directed graph from every formula-bearing node to the nodes its expression
references. Edges carry the reference occurrences (text spans) that produced
them, which is what the fixup engine rewrites.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

import networkx as nx

from semantic_editor.exceptions import TokenizationError
from semantic_editor.graph.object_graph import ObjectGraph
from semantic_editor.models.node import Node, has_expression
from semantic_editor.models.node_kind import NodeKind
from semantic_editor.parser.reference_parser import ReferenceOccurrence, parse_references
from semantic_editor.parser.tokenizer import Tokenizer

logger = logging.getLogger(__name__)


class ReferencePart(str, Enum):
    """Which part of a reference an edge was produced by."""

    TABLE = "table"
    OBJECT = "object"


@dataclass(frozen=True)
class EdgeOccurrence:
    """One reference occurrence backing an edge.

    Attributes:
        part: TABLE when the edge targets the table part of the reference,
            OBJECT when it targets the ``[Name]`` part.
        reference: The parsed reference.
    """

    part: ReferencePart
    reference: ReferenceOccurrence

    @property
    def span(self) -> tuple[int, int]:
        if self.part == ReferencePart.TABLE:
            return self.reference.table_span  # type: ignore[return-value]
        return self.reference.object_span  # type: ignore[return-value]


class DependencyIndex:
    """Index of formula references between model objects.

    Edges go from the dependent (the node whose expression contains the
    reference) to the referenced node. Cycles are valid data and are stored
    as-is.

    Attributes:
        graph: networkx DiGraph of node ids with an ``occurrences`` edge
            attribute (list of EdgeOccurrence).

    Example:
        >>> index = DependencyIndex(object_graph, DaxTokenizer())
        >>> index.on_expression_changed(m2, "", "[M1] + 1")
        >>> index.get_dependents(m1) == {m2}
        True
    """

    def __init__(self, objects: ObjectGraph, tokenizer: Tokenizer) -> None:
        """Initialize a DependencyIndex.

        Args:
            objects: Object graph names are resolved against.
            tokenizer: Tokenizer used to scan expressions.
        """
        self.objects = objects
        self.tokenizer = tokenizer
        self.graph = nx.DiGraph()
        self._references: dict[int, list[ReferenceOccurrence]] = {}
        self._unresolved: dict[int, list[ReferenceOccurrence]] = {}

    # Indexing

    def on_expression_changed(self, node: Node, old_text: Optional[str], new_text: Optional[str]) -> list[str]:
        """Rebuild the outgoing edges of ``node`` from its new expression text.

        All previous edges of the node are dropped, even for references that
        did not change, because resolution depends on current names.

        Args:
            node: Formula-bearing node whose expression changed.
            old_text: Previous expression text (informational).
            new_text: New expression text.

        Returns:
            Display texts of references that did not resolve.
        """
        self._clear_outgoing(node.id)
        self._references.pop(node.id, None)
        self._unresolved.pop(node.id, None)
        node.error = None

        if not has_expression(node) or not new_text:
            return []

        try:
            tokens = self.tokenizer.tokenize(new_text)
        except TokenizationError as e:
            node.error = e.message
            logger.warning("Cannot index expression of '%s': %s", node.name, e.message)
            return []

        references = parse_references(tokens)
        self._references[node.id] = references
        self.graph.add_node(node.id)

        unresolved: list[ReferenceOccurrence] = []
        for reference in references:
            targets, resolved = self._resolve(node, reference)
            for target, part in targets:
                self._add_edge(node.id, target.id, EdgeOccurrence(part, reference))
            if not resolved and not reference.bare:
                unresolved.append(reference)

        if unresolved:
            self._unresolved[node.id] = unresolved
        logger.debug(
            "Indexed '%s': %d reference(s), %d unresolved",
            node.name,
            len(references),
            len(unresolved),
        )
        return [r.display() for r in unresolved]

    def find_unresolved(self, node: Node, text: str) -> list[str]:
        """Return the references of ``text`` that would not resolve for ``node``.

        Nothing is stored. Text that cannot be tokenized yields no
        unresolved references; the tokenization error surfaces when the
        expression is actually written.
        """
        try:
            tokens = self.tokenizer.tokenize(text)
        except TokenizationError:
            return []
        unresolved = []
        for reference in parse_references(tokens):
            _, resolved = self._resolve(node, reference)
            if not resolved and not reference.bare:
                unresolved.append(reference.display())
        return unresolved

    def reindex(self, node_ids: Iterable[int]) -> None:
        """Re-resolve the expressions of the given nodes against current names."""
        for node_id in sorted(set(node_ids)):
            node = self.objects.nodes.get(node_id)
            if node is not None and has_expression(node):
                text = node.expression
                self.on_expression_changed(node, text, text)

    def refresh_names(self, names: Iterable[str], exclude: Iterable[int] = ()) -> None:
        """Re-resolve every expression that mentions one of ``names``.

        Used after a node is added, renamed or moved, when a reference that
        previously resolved elsewhere (or nowhere) may now resolve to it.

        Args:
            names: Names that changed meaning.
            exclude: Ids of nodes to leave as they are.
        """
        keys = {name.lower() for name in names}
        skipped = set(exclude)
        affected = [
            node_id
            for node_id, references in self._references.items()
            if node_id not in skipped
            and any(self._mentions(reference, keys) for reference in references)
        ]
        self.reindex(affected)

    def forget(self, node_ids: Iterable[int]) -> set[int]:
        """Drop removed nodes from the index.

        Returns:
            Ids of surviving nodes that referenced any of the removed nodes.
        """
        removed = set(node_ids)
        dependents: set[int] = set()
        for node_id in removed:
            if node_id in self.graph:
                dependents.update(self.graph.predecessors(node_id))
        for node_id in removed:
            if node_id in self.graph:
                self.graph.remove_node(node_id)
            self._references.pop(node_id, None)
            self._unresolved.pop(node_id, None)
        return dependents - removed

    # Queries

    def get_dependents(self, node: Node) -> set[Node]:
        """Get the formula-bearing nodes whose expression references ``node``."""
        if node.id not in self.graph:
            return set()
        return {self.objects.nodes[i] for i in self.graph.predecessors(node.id)}

    def get_dependencies(self, node: Node) -> set[Node]:
        """Get the nodes referenced by the expression of ``node``."""
        if node.id not in self.graph:
            return set()
        return {self.objects.nodes[i] for i in self.graph.successors(node.id)}

    def get_transitive_dependents(self, node: Node) -> set[Node]:
        """Get every node that depends on ``node`` directly or indirectly."""
        if node.id not in self.graph:
            return set()
        return {self.objects.nodes[i] for i in nx.ancestors(self.graph, node.id)}

    def get_occurrences(self, dependent: Node, target: Node) -> list[EdgeOccurrence]:
        """Get the reference occurrences of ``target`` inside ``dependent``."""
        if not self.graph.has_edge(dependent.id, target.id):
            return []
        return list(self.graph.edges[dependent.id, target.id]["occurrences"])

    def get_unresolved(self, node: Node) -> list[str]:
        return [r.display() for r in self._unresolved.get(node.id, [])]

    def get_references(self, node: Node) -> list[ReferenceOccurrence]:
        """Get the references found by the last tokenization of ``node``."""
        return list(self._references.get(node.id, []))

    # Resolution

    def _resolve(
        self, owner: Node, reference: ReferenceOccurrence
    ) -> tuple[list[tuple[Node, ReferencePart]], bool]:
        targets: list[tuple[Node, ReferencePart]] = []

        table: Optional[Node] = None
        if reference.table_name is not None:
            table = self.objects.find_table(reference.table_name)
            if table is None:
                return targets, False
            targets.append((table, ReferencePart.TABLE))
            if reference.object_name is None:
                return targets, True

        name = reference.object_name or ""
        if table is not None:
            found = self.objects.find_column(table, name) or self.objects.find_measure(name, table)
        else:
            found = self.objects.find_measure(name)
            if found is None:
                own_table = self.objects.table_of(owner)
                if own_table is not None:
                    found = self.objects.find_column(own_table, name)

        if found is None:
            return targets, False
        targets.append((found, ReferencePart.OBJECT))
        return targets, True

    @staticmethod
    def _mentions(reference: ReferenceOccurrence, keys: set[str]) -> bool:
        return any(
            name is not None and name.lower() in keys
            for name in (reference.table_name, reference.object_name)
        )

    def _add_edge(self, source: int, target: int, occurrence: EdgeOccurrence) -> None:
        if self.graph.has_edge(source, target):
            self.graph.edges[source, target]["occurrences"].append(occurrence)
        else:
            self.graph.add_edge(source, target, occurrences=[occurrence])

    def _clear_outgoing(self, node_id: int) -> None:
        if node_id in self.graph:
            self.graph.remove_edges_from(list(self.graph.out_edges(node_id)))

    # Export

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        """Export the index to a JSON-friendly dictionary."""
        return {
            "nodes": [
                {
                    "id": node_id,
                    "name": self.objects.nodes[node_id].name,
                    "kind": self.objects.nodes[node_id].kind.value,
                }
                for node_id in sorted(self.graph.nodes)
                if node_id in self.objects.nodes
            ],
            "edges": [
                {
                    "source": u,
                    "target": v,
                    "references": [o.reference.display() for o in data["occurrences"]],
                }
                for u, v, data in sorted(self.graph.edges(data=True), key=lambda e: (e[0], e[1]))
            ],
        }

    def get_statistics(self) -> dict[str, int]:
        """Get index statistics.

        Returns:
            Counts of indexed expressions, edges, unresolved references,
            and whether the reference graph contains cycles.
        """
        measures = sum(
            1
            for node_id in self.graph.nodes
            if node_id in self.objects.nodes
            and self.objects.nodes[node_id].kind == NodeKind.MEASURE
        )
        return {
            "indexed_expressions": len(self._references),
            "indexed_measures": measures,
            "total_edges": self.graph.number_of_edges(),
            "unresolved_references": sum(len(v) for v in self._unresolved.values()),
            "has_cycles": int(not nx.is_directed_acyclic_graph(self.graph)),
        }

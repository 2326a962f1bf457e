"""
Dictionary-based model loader.

This module defines DictModelLoader, which builds an editing session from a
plain dictionary (or a JSON file holding one), and model_to_dict, which
writes a session back into the same layout. Loading replays ordinary session
calls; it has no private way into the object graph.

Layout:

    {
        "name": "Model",
        "tables": [
            {
                "name": "Sales",
                "columns": [
                    {"name": "Amount", "data_type": "double"},
                    {"name": "Net", "expression": "Sales[Amount] * 0.8"}
                ],
                "measures": [{"name": "Total", "expression": "SUM(Sales[Amount])"}],
                "hierarchies": [{"name": "Calendar", "levels": ["Year", "Month"]}]
            }
        ],
        "relationships": [{"from": "Sales[DateKey]", "to": "Date[DateKey]"}],
        "perspectives": [{"name": "Finance"}],
        "roles": [{"name": "Readers", "model_permission": "read"}],
        "annotations": [{"name": "Owner", "value": "BI team"}]
    }

Any object may carry an ``annotations`` list.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from semantic_editor.exceptions import EditorError
from semantic_editor.models.config import EditorConfig
from semantic_editor.models.node import Node
from semantic_editor.models.node_kind import NodeKind
from semantic_editor.session import ModelSession

logger = logging.getLogger(__name__)

# Keys that describe structure rather than properties
_STRUCTURE_KEYS = {"name", "columns", "measures", "hierarchies", "annotations", "expression", "levels"}


class DictModelLoader:
    """Builds a ModelSession from a dictionary.

    Expressions are written in a second pass, after every object exists, so
    forward references between measures resolve without warnings. The undo
    history is cleared afterwards: the loaded model is the baseline.

    Attributes:
        data: The model dictionary.
        config: Configuration for the created session.

    Example:
        >>> loader = DictModelLoader({"tables": [{"name": "Sales", "measures": [
        ...     {"name": "Total", "expression": "1"}]}]})
        >>> session = loader.load()
        >>> session.find_measure("Total").expression
        '1'
        >>> session.can_undo
        False
    """

    def __init__(self, data: dict[str, Any], config: Optional[EditorConfig] = None) -> None:
        """Initialize a DictModelLoader.

        Raises:
            TypeError: If data is not a dictionary.
        """
        if not isinstance(data, dict):
            raise TypeError("model data must be a dictionary")
        self.data = data
        self.config = config

    @classmethod
    def from_json_file(cls, path: Union[str, Path], config: Optional[EditorConfig] = None) -> DictModelLoader:
        """Create a loader from a JSON file.

        Raises:
            EditorError: If the file cannot be read or is not valid JSON.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise EditorError(f"Failed to read model file '{path}': {e}") from e
        return cls(data, config)

    def load(self) -> ModelSession:
        """Create the session and replay the model into it."""
        session = ModelSession(config=self.config, model_name=self.data.get("name", "Model"))
        expressions: list[tuple[Node, str]] = []

        with session.batch("Load model"):
            self._add_annotations(session, session.model, self.data)
            for table_data in self.data.get("tables", []):
                self._load_table(session, table_data, expressions)
            for item in self.data.get("relationships", []):
                props = self._properties(item, exclude={"from", "to"})
                relationship = session.add_relationship(
                    item["from"], item["to"], name=item.get("name"), **props
                )
                self._add_annotations(session, relationship, item)
            for item in self.data.get("perspectives", []):
                perspective = session.add_perspective(item["name"], **self._properties(item))
                self._add_annotations(session, perspective, item)
            for item in self.data.get("roles", []):
                role = session.add_role(item["name"], **self._properties(item))
                self._add_annotations(session, role, item)

            for node, text in expressions:
                session.set_expression(node, text)

        session.clear_history()
        logger.info(
            "Loaded model '%s' with %d object(s)",
            session.model.name,
            len(session.graph.nodes),
        )
        return session

    def _load_table(self, session: ModelSession, data: dict[str, Any], expressions: list[tuple[Node, str]]) -> None:
        table = session.add_table(data["name"], **self._properties(data))
        self._add_annotations(session, table, data)

        for item in data.get("columns", []):
            expression = item.get("expression")
            column = session.add_column(
                table,
                item["name"],
                expression="" if expression is not None else None,
                **self._properties(item),
            )
            if expression:
                expressions.append((column, expression))
            self._add_annotations(session, column, item)

        for item in data.get("measures", []):
            measure = session.add_measure(table, item["name"], **self._properties(item))
            if item.get("expression"):
                expressions.append((measure, item["expression"]))
            self._add_annotations(session, measure, item)

        for item in data.get("hierarchies", []):
            levels = [self._column(session, table, name) for name in item.get("levels", [])]
            hierarchy = session.add_hierarchy(table, item["name"], levels, **self._properties(item))
            self._add_annotations(session, hierarchy, item)

    @staticmethod
    def _column(session: ModelSession, table: Node, name: str) -> Node:
        column = session.find_column(table, name)
        if column is None:
            raise EditorError(f"Hierarchy level '{name}' is not a column of '{table.name}'")
        return column

    @staticmethod
    def _properties(item: dict[str, Any], exclude: Optional[set[str]] = None) -> dict[str, Any]:
        skip = _STRUCTURE_KEYS | (exclude or set())
        return {key: value for key, value in item.items() if key not in skip}

    @staticmethod
    def _add_annotations(session: ModelSession, owner: Node, item: dict[str, Any]) -> None:
        for annotation in item.get("annotations", []):
            session.add_annotation(owner, annotation["name"], annotation.get("value", ""))


def model_to_dict(session: ModelSession) -> dict[str, Any]:
    """Write a session's model in the layout DictModelLoader reads."""
    graph = session.graph

    def props(node: Node, skip: tuple[str, ...] = ()) -> dict[str, Any]:
        data = node.to_dict()["properties"]
        for key in skip:
            data.pop(key, None)
        return data

    def annotated(node: Node, data: dict[str, Any]) -> dict[str, Any]:
        annotations = [
            {"name": a.name, "value": a.properties.get("value", "")}
            for a in graph.children(node.id, NodeKind.ANNOTATION)
        ]
        if annotations:
            data["annotations"] = annotations
        return data

    def column_path(column_id: int) -> str:
        return session.fixup.canonical_reference(graph.get(column_id))

    tables = []
    for table in graph.children(session.model.id, NodeKind.TABLE):
        columns = []
        for column in graph.children(table.id, NodeKind.COLUMN):
            data = {"name": column.name, **props(column, skip=("column_type",))}
            columns.append(annotated(column, data))
        measures = [
            annotated(m, {"name": m.name, **props(m)})
            for m in graph.children(table.id, NodeKind.MEASURE)
        ]
        hierarchies = [
            annotated(
                h,
                {
                    "name": h.name,
                    **props(h, skip=("levels",)),
                    "levels": [graph.get(i).name for i in h.properties.get("levels", ())],
                },
            )
            for h in graph.children(table.id, NodeKind.HIERARCHY)
        ]
        data = {"name": table.name, **props(table), "columns": columns, "measures": measures}
        if hierarchies:
            data["hierarchies"] = hierarchies
        tables.append(annotated(table, data))

    relationships = [
        annotated(
            r,
            {
                "name": r.name,
                "from": column_path(r.properties["from_column"]),
                "to": column_path(r.properties["to_column"]),
                **props(r, skip=("from_column", "to_column")),
            },
        )
        for r in graph.children(session.model.id, NodeKind.RELATIONSHIP)
    ]

    result: dict[str, Any] = {"name": session.model.name, "tables": tables}
    if relationships:
        result["relationships"] = relationships
    for key, kind in (("perspectives", NodeKind.PERSPECTIVE), ("roles", NodeKind.ROLE)):
        items = [annotated(n, {"name": n.name, **props(n)}) for n in graph.children(session.model.id, kind)]
        if items:
            result[key] = items
    return annotated(session.model, result)

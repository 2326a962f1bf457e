"""
Formula fix-up engine.

This module defines the FixupEngine class, which rewrites the expressions that
reference a table, column or measure after that object was renamed or moved.
Rewrites are span-based: only token spans that the dependency index recorded
as references to the changed object are replaced, so string literals and
comments are never touched even when their text matches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from semantic_editor.exceptions import TokenizationError
from semantic_editor.graph.dependency_index import DependencyIndex, ReferencePart
from semantic_editor.graph.object_graph import ObjectGraph
from semantic_editor.models.config import EditorConfig, ErrorMode
from semantic_editor.models.node import Node
from semantic_editor.models.node_kind import NodeKind
from semantic_editor.parser.tokenizer import Tokenizer
from semantic_editor.utils.naming import bracket_name, quote_table_name
from semantic_editor.utils.warnings import WarningCollector

logger = logging.getLogger(__name__)

ExpressionWriter = Callable[[Node, str], None]


class FixupTrigger(str, Enum):
    """What happened to the reference target."""

    RENAME = "rename"
    MOVE = "move"


@dataclass
class FixupResult:
    """Outcome of one fix-up pass.

    Attributes:
        target_id: Id of the renamed or moved node.
        trigger: RENAME or MOVE.
        old_reference: Canonical reference text before the change.
        new_reference: Canonical reference text after the change.
        rewritten: Ids of dependents whose expression was rewritten.
        failed: Ids of dependents left unchanged because they could not be
            tokenized.
        references_updated: Number of replaced spans.
    """

    target_id: int
    trigger: FixupTrigger
    old_reference: str
    new_reference: str
    rewritten: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    references_updated: int = 0

    @property
    def success(self) -> bool:
        return not self.failed


class FixupEngine:
    """Rewrites dependent expressions after a rename or move.

    The engine does not write expressions itself: it hands each rewritten
    text to an ExpressionWriter supplied by the session, which records the
    write in the enclosing undo transaction.

    Dependents are processed in ascending id order and, inside one
    expression, replacements are applied right-to-left, so the result does
    not depend on set iteration order.

    Example:
        >>> engine = FixupEngine(graph, index, DaxTokenizer(), EditorConfig(), WarningCollector())
        >>> result = engine.run(m1, FixupTrigger.RENAME, "[M1]", writer)
        >>> result.rewritten
        [4]
    """

    def __init__(
        self,
        objects: ObjectGraph,
        index: DependencyIndex,
        tokenizer: Tokenizer,
        config: EditorConfig,
        warnings: WarningCollector,
    ) -> None:
        self.objects = objects
        self.index = index
        self.tokenizer = tokenizer
        self.config = config
        self.warnings = warnings

    def canonical_reference(
        self,
        node: Node,
        name: Optional[str] = None,
        table: Optional[Node] = None,
    ) -> str:
        """Return the fully qualified reference text of ``node``.

        Tables are written as ``'Table'`` (quotes only when needed unless
        configured otherwise), columns as ``'Table'[Column]`` and measures
        as ``[Measure]``.

        Args:
            node: Reference target.
            name: Name to use instead of the current one.
            table: Owning table to use instead of the current one.
        """
        name = node.name if name is None else name
        if node.kind == NodeKind.TABLE:
            return quote_table_name(name, always=self.config.always_quote_table_names)
        if node.kind == NodeKind.COLUMN:
            owner = table if table is not None else self.objects.table_of(node)
            return self._table_text(owner) + bracket_name(name)
        return bracket_name(name)

    def run(
        self,
        target: Node,
        trigger: FixupTrigger,
        old_reference: str,
        write: ExpressionWriter,
    ) -> FixupResult:
        """Rewrite every expression that references ``target``.

        Args:
            target: Node that was just renamed or moved (already applied).
            trigger: RENAME or MOVE.
            old_reference: Canonical reference text before the change.
            write: Callback applying a rewritten expression through the
                recorded mutation path.

        Returns:
            FixupResult describing what was rewritten.
        """
        result = FixupResult(
            target_id=target.id,
            trigger=trigger,
            old_reference=old_reference,
            new_reference=self.canonical_reference(target),
        )

        dependents = sorted(self.index.get_dependents(target), key=lambda n: n.id)
        for dependent in dependents:
            text = dependent.expression or ""
            # Indexed text always tokenized once, so this only fails when the
            # tokenizer now rejects text it accepted at index time
            try:
                self.tokenizer.tokenize(text)
            except TokenizationError as e:
                self._mark_failed(dependent, target, e.message, result)
                continue

            replacements = self._replacements(dependent, target, trigger)
            if not replacements:
                continue
            new_text = self._apply_replacements(text, replacements)
            if new_text == text:
                continue
            write(dependent, new_text)
            result.rewritten.append(dependent.id)
            result.references_updated += len(replacements)

        logger.debug(
            "Fix-up of %s -> %s: %d rewritten, %d failed",
            result.old_reference,
            result.new_reference,
            len(result.rewritten),
            len(result.failed),
        )
        return result

    def _replacements(
        self, dependent: Node, target: Node, trigger: FixupTrigger
    ) -> list[tuple[int, int, str]]:
        replacements: dict[tuple[int, int], str] = {}
        for occurrence in self.index.get_occurrences(dependent, target):
            reference = occurrence.reference
            if trigger == FixupTrigger.RENAME:
                if occurrence.part == ReferencePart.TABLE:
                    replacements[occurrence.span] = self._table_text(target)
                else:
                    replacements[occurrence.span] = bracket_name(target.name)
            elif occurrence.part == ReferencePart.OBJECT and reference.table_span is not None:
                table = self.objects.table_of(target)
                if table is not None:
                    replacements[reference.table_span] = self._table_text(table)
        return [(start, end, text) for (start, end), text in replacements.items()]

    @staticmethod
    def _apply_replacements(text: str, replacements: list[tuple[int, int, str]]) -> str:
        for start, end, new in sorted(replacements, reverse=True):
            text = text[:start] + new + text[end:]
        return text

    def _table_text(self, table: Optional[Node]) -> str:
        if table is None:
            return ""
        return quote_table_name(table.name, always=self.config.always_quote_table_names)

    def _mark_failed(self, dependent: Node, target: Node, reason: str, result: FixupResult) -> None:
        dependent.error = f"Formula fix-up skipped: {reason}"
        result.failed.append(dependent.id)
        logger.warning(
            "Expression of '%s' not updated after '%s' changed: %s",
            dependent.name,
            target.name,
            reason,
        )
        if self.config.on_fixup_failure == ErrorMode.WARN:
            self.warnings.add_fixup_failure(
                dependent.name, target.name, reason, dependent.id, dependent.expression
            )

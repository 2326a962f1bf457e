"""
Tests for the DependencyIndex and the FixupEngine.

This module contains tests for reference edges (resolution, staleness,
cycles, error markers) and for fix-up behavior that is not covered by the
session scenarios: failures, write order and reporting.
"""

import pytest

from semantic_editor import (
    DaxTokenizer,
    EditorConfig,
    ErrorMode,
    ModelSession,
    TokenizationError,
)
from semantic_editor.graph.dependency_index import ReferencePart


class BrokenTokenizer(DaxTokenizer):
    """DaxTokenizer that fails for selected texts."""

    def __init__(self):
        self.broken = set()

    def tokenize(self, text):
        if text in self.broken:
            raise TokenizationError("Simulated scanner failure", text)
        return super().tokenize(text)


class TestDependencyIndex:
    """Tests for DependencyIndex."""

    def setup_method(self):
        """Create a session with a table and two measures."""
        self.session = ModelSession()
        self.index = self.session.index
        self.sales = self.session.add_table("Sales")
        self.amount = self.session.add_column(self.sales, "Amount", "double")
        self.m1 = self.session.add_measure(self.sales, "M1", "SUM(Sales[Amount])")
        self.m2 = self.session.add_measure(self.sales, "M2", "[M1] + 1")

    def test_get_dependents(self):
        """Test direct dependents."""
        assert self.index.get_dependents(self.m1) == {self.m2}
        assert self.index.get_dependents(self.amount) == {self.m1}
        assert self.index.get_dependents(self.sales) == {self.m1}
        assert self.index.get_dependents(self.m2) == set()

    def test_occurrences_carry_spans(self):
        """Test that edges remember which part of the text produced them."""
        occurrences = self.index.get_occurrences(self.m1, self.amount)

        assert len(occurrences) == 1
        assert occurrences[0].part == ReferencePart.OBJECT
        assert occurrences[0].span == (9, 17)

        table_occurrences = self.index.get_occurrences(self.m1, self.sales)
        assert table_occurrences[0].part == ReferencePart.TABLE
        assert table_occurrences[0].span == (4, 9)

    def test_expression_change_replaces_edges(self):
        """Test that stale edges are dropped when the text changes."""
        m3 = self.session.add_measure(self.sales, "M3", "[M1] + [M2]")
        assert m3 in self.index.get_dependents(self.m1)

        self.session.set_expression(m3, "[M2] * 2")

        assert m3 not in self.index.get_dependents(self.m1)
        assert m3 in self.index.get_dependents(self.m2)

    def test_repeated_reference_single_edge(self):
        """Test that a reference used twice gives one edge with two occurrences."""
        m3 = self.session.add_measure(self.sales, "M3", "[M1] * [M1]")

        assert len(self.index.get_occurrences(m3, self.m1)) == 2
        assert self.index.get_dependencies(m3) == {self.m1}

    def test_cycles_are_allowed(self):
        """Test that A -> B -> A is stored without complaint."""
        self.session.set_expression(self.m1, "[M2] - 1")

        assert self.index.get_dependents(self.m2) == {self.m1}
        assert self.index.get_dependents(self.m1) == {self.m2}
        assert self.index.get_statistics()["has_cycles"] == 1

    def test_tokenization_failure_marks_node(self):
        """Test the error marker for text that cannot be scanned."""
        self.session.set_expression(self.m2, '"unterminated')

        assert self.m2.error is not None
        assert self.index.get_dependencies(self.m2) == set()

        self.session.set_expression(self.m2, "[M1]")
        assert self.m2.error is None
        assert self.index.get_dependencies(self.m2) == {self.m1}

    def test_column_reference_uses_own_table(self):
        """Test that [Column] resolves against the owner's table."""
        other = self.session.add_table("Other")
        self.session.add_column(other, "Amount", "double")
        net = self.session.add_column(self.sales, "Net", expression="[Amount] / 2")

        assert self.index.get_dependencies(net) == {self.amount}

    def test_unresolved_qualified_table(self):
        """Test references to a table that does not exist."""
        m3 = self.session.add_measure(self.sales, "M3", "SUM(Missing[Amount])")

        assert self.index.get_unresolved(m3) == ["'Missing'[Amount]"]
        assert self.index.get_dependencies(m3) == set()

    def test_rename_resolves_pending_reference(self):
        """Test that renaming an object onto a pending name resolves it."""
        m3 = self.session.add_measure(self.sales, "M3", "[Target] + 1")

        self.session.rename(self.m2, "Target")

        assert self.index.get_dependents(self.m2) == {m3}
        assert self.index.get_unresolved(m3) == []

    def test_to_dict(self):
        """Test the JSON export of the index."""
        data = self.index.to_dict()

        edges = {(e["source"], e["target"]) for e in data["edges"]}
        assert (self.m2.id, self.m1.id) in edges
        assert (self.m1.id, self.amount.id) in edges

    def test_statistics(self):
        """Test index statistics."""
        stats = self.index.get_statistics()

        assert stats["indexed_expressions"] == 2
        assert stats["total_edges"] == 3
        assert stats["unresolved_references"] == 0
        assert stats["has_cycles"] == 0


class TestFixupEngine:
    """Tests for FixupEngine behavior around failures and ordering."""

    def setup_method(self):
        """Create a session whose tokenizer can be broken on demand."""
        self.tokenizer = BrokenTokenizer()
        self.session = ModelSession(tokenizer=self.tokenizer)
        self.sales = self.session.add_table("Sales")
        self.m1 = self.session.add_measure(self.sales, "M1", "1")
        self.m2 = self.session.add_measure(self.sales, "M2", "[M1] + 1")
        self.m3 = self.session.add_measure(self.sales, "M3", "[M1] * 2")
        self.session.clear_history()

    def test_failed_dependent_left_unchanged(self):
        """Test that a dependent that cannot be scanned is skipped and flagged."""
        self.tokenizer.broken.add("[M1] * 2")

        self.session.rename(self.m1, "Base")

        assert self.m1.name == "Base"
        assert self.m2.expression == "[Base] + 1"
        assert self.m3.expression == "[M1] * 2"
        assert self.m3.error is not None
        assert self.session.last_fixup.failed == [self.m3.id]
        assert not self.session.last_fixup.success
        assert self.session.undo_manager.undo_depth == 1

    def test_failure_reported_as_warning(self):
        """Test the collected error for a skipped dependent."""
        self.tokenizer.broken.add("[M1] * 2")

        self.session.rename(self.m1, "Base")

        errors = self.session.warnings.get_by_level("ERROR")
        assert len(errors) == 1
        assert errors[0].node_id == self.m3.id
        assert "'M3'" in errors[0].message

    def test_failure_ignore_mode(self):
        """Test that IGNORE keeps the marker but collects nothing."""
        tokenizer = BrokenTokenizer()
        session = ModelSession(
            config=EditorConfig(on_fixup_failure=ErrorMode.IGNORE), tokenizer=tokenizer
        )
        sales = session.add_table("Sales")
        m1 = session.add_measure(sales, "M1", "1")
        m2 = session.add_measure(sales, "M2", "[M1]")
        tokenizer.broken.add("[M1]")

        session.rename(m1, "Base")

        assert m2.error is not None
        assert session.warnings.get_by_level("ERROR") == []

    def test_undo_after_partial_fixup(self):
        """Test that undo reverts exactly what the fix-up changed."""
        self.tokenizer.broken.add("[M1] * 2")
        self.session.rename(self.m1, "Base")
        self.tokenizer.broken.clear()

        self.session.undo()

        assert self.m1.name == "M1"
        assert self.m2.expression == "[M1] + 1"
        assert self.m3.expression == "[M1] * 2"
        assert self.m3.error is None

    def test_dependents_rewritten_in_id_order(self):
        """Test the deterministic write order of cascaded fix-ups."""
        self.session.rename(self.m1, "Base")

        transaction = self.session.undo_manager.undo_transaction
        written = [a.node_id for a in transaction.actions if a.property_name == "expression"]
        assert written == [self.m2.id, self.m3.id]
        assert transaction.actions[0].property_name == "name"

    def test_canonical_reference(self):
        """Test canonical reference texts."""
        column = self.session.add_column(self.sales, "Unit Price")
        odd = self.session.add_table("O'Brien")

        assert self.session.fixup.canonical_reference(self.m1) == "[M1]"
        assert self.session.fixup.canonical_reference(column) == "Sales[Unit Price]"
        assert self.session.fixup.canonical_reference(odd) == "'O''Brien'"
        assert self.session.fixup.canonical_reference(self.sales, name="Date") == "'Date'"

    def test_qualified_table_and_object_rename_in_one_batch(self):
        """Test two fix-ups touching the same reference in one transaction."""
        amount = self.session.add_column(self.sales, "Amount")
        total = self.session.add_measure(self.sales, "Total", "SUM(Sales[Amount]) + [M1]")
        self.session.clear_history()

        with self.session.batch("Rename all"):
            self.session.rename(self.sales, "Orders")
            self.session.rename(amount, "Gross")
            self.session.rename(self.m1, "Base")

        assert total.expression == "SUM(Orders[Gross]) + [Base]"
        self.session.undo()
        assert total.expression == "SUM(Sales[Amount]) + [M1]"


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("[M1]", "[New Name]"),
        ("'Sales'[M1]", "'Sales'[New Name]"),
        ('IF([M1] > 0, "[M1]", BLANK())', 'IF([New Name] > 0, "[M1]", BLANK())'),
        ("/* [M1] */ [M1]", "/* [M1] */ [New Name]"),
    ],
)
def test_rename_rewrites_only_references(expression, expected):
    """Test span-based rewrites across reference forms."""
    session = ModelSession()
    sales = session.add_table("Sales")
    m1 = session.add_measure(sales, "M1", "1")
    dependent = session.add_measure(sales, "Dependent", expression)

    session.rename(m1, "New Name")

    assert dependent.expression == expected

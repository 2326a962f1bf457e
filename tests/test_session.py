"""
Tests for ModelSession.

This module contains the end-to-end editing scenarios: renames with formula
fix-up, undo/redo round trips, batches, validation failures and removal.
"""

import pytest

from semantic_editor import (
    ColumnType,
    EditorConfig,
    ErrorMode,
    InvalidMoveError,
    InvalidValueError,
    ModelSession,
    NameConflictError,
    NodeKind,
    NodeNotFoundError,
    UnresolvedReferenceError,
)


class TestRenameScenarios:
    """Rename with fix-up, and its undo."""

    def setup_method(self):
        """Create a model with two dependent measures."""
        self.session = ModelSession()
        self.sales = self.session.add_table("Sales")
        self.m1 = self.session.add_measure(self.sales, "M1", "1")
        self.m2 = self.session.add_measure(self.sales, "M2", "[M1] + 1")
        self.session.clear_history()

    def test_rename_rewrites_dependent(self):
        """Test the basic rename fix-up."""
        self.session.rename(self.m1, "M1Renamed")

        assert self.m1.name == "M1Renamed"
        assert self.m2.expression == "[M1Renamed] + 1"

    def test_single_undo_reverts_rename_and_fixup(self):
        """Test that one undo reverts the rename and the cascaded fix-up."""
        self.session.rename(self.m1, "M1Renamed")

        assert self.session.undo_manager.undo_depth == 1
        self.session.undo()

        assert self.m1.name == "M1"
        assert self.m2.expression == "[M1] + 1"
        assert self.session.get_dependents(self.m1) == {self.m2}

    def test_redo_restores_rename_and_fixup(self):
        """Test the redo round trip."""
        self.session.rename(self.m1, "M1Renamed")
        after = self.session.snapshot()

        self.session.undo()
        self.session.redo()

        assert self.session.snapshot() == after
        assert self.m2.expression == "[M1Renamed] + 1"

    def test_rename_conflict(self):
        """Test renaming to an existing sibling name."""
        with pytest.raises(NameConflictError) as exc_info:
            self.session.rename(self.m1, "M2")

        assert exc_info.value.existing_id == self.m2.id
        assert self.m1.name == "M1"
        assert self.session.undo_manager.undo_depth == 0

    def test_rename_conflict_is_case_insensitive(self):
        """Test that names differing only by case conflict."""
        with pytest.raises(NameConflictError):
            self.session.rename(self.m1, "m2")

    def test_measure_names_are_model_wide(self):
        """Test that two tables cannot hold measures with the same name."""
        other = self.session.add_table("Other")

        with pytest.raises(NameConflictError):
            self.session.add_measure(other, "M1", "2")

    def test_rename_skips_string_literal(self):
        """Test that only the reference outside the literal is rewritten."""
        m3 = self.session.add_measure(self.sales, "M3", '"[M1]" + [M1]')

        self.session.rename(self.m1, "X")

        assert m3.expression == '"[M1]" + [X]'

    def test_rename_skips_comment(self):
        """Test that references inside comments are left alone."""
        m3 = self.session.add_measure(self.sales, "M3", "[M1] // was [M1]")

        self.session.rename(self.m1, "X")

        assert m3.expression == "[X] // was [M1]"

    def test_rename_skips_variable(self):
        """Test that a local variable named like the table is left alone."""
        m3 = self.session.add_measure(
            self.sales, "M3", "VAR Sales = [M1] RETURN Sales + COUNTROWS(Sales)"
        )

        self.session.rename(self.sales, "Orders")

        assert m3.expression == "VAR Sales = [M1] RETURN Sales + COUNTROWS(Sales)"
        assert self.session.get_dependents(self.sales) == set()

    def test_rename_case_insensitive_reference(self):
        """Test that a reference written in another case is still fixed up."""
        m3 = self.session.add_measure(self.sales, "M3", "[m1] * 2")

        self.session.rename(self.m1, "Base")

        assert m3.expression == "[Base] * 2"

    def test_rename_escapes_brackets(self):
        """Test that ] in a new name is escaped."""
        self.session.rename(self.m1, "Total [Net]")

        assert self.m2.expression == "[Total [Net]]] + 1"
        assert self.session.get_dependents(self.m1) == {self.m2}

    def test_rename_invalid_name(self):
        """Test that an illegal name is rejected before mutation."""
        with pytest.raises(InvalidValueError):
            self.session.rename(self.m1, "  ")
        assert self.m1.name == "M1"
        assert not self.session.can_undo

    def test_rename_to_same_name_records_nothing(self):
        """Test a no-op rename."""
        self.session.rename(self.m1, "M1")

        assert not self.session.can_undo

    def test_last_fixup_result(self):
        """Test the fix-up report of the last rename."""
        self.session.rename(self.m1, "Base")

        result = self.session.last_fixup
        assert result.old_reference == "[M1]"
        assert result.new_reference == "[Base]"
        assert result.rewritten == [self.m2.id]
        assert result.references_updated == 1
        assert result.success

    def test_fixup_disabled(self):
        """Test that fix-up can be turned off."""
        session = ModelSession(config=EditorConfig(fixup_enabled=False))
        sales = session.add_table("Sales")
        m1 = session.add_measure(sales, "M1", "1")
        m2 = session.add_measure(sales, "M2", "[M1] + 1")

        session.rename(m1, "Base")

        assert m2.expression == "[M1] + 1"
        assert session.index.get_unresolved(m2) == ["[M1]"]


class TestTableAndColumnRenames:
    """Fix-up of qualified references."""

    def setup_method(self):
        """Create a small sales model."""
        self.session = ModelSession()
        self.sales = self.session.add_table("Sales")
        self.amount = self.session.add_column(self.sales, "Amount", "double")
        self.net = self.session.add_column(self.sales, "Net", expression="[Amount] * 0.8")
        self.total = self.session.add_measure(self.sales, "Total", "SUM(Sales[Amount])")
        self.rows = self.session.add_measure(self.sales, "Rows", "COUNTROWS(Sales)")

    def test_rename_column(self):
        """Test that qualified and unqualified column references are fixed up."""
        self.session.rename(self.amount, "Gross")

        assert self.total.expression == "SUM(Sales[Gross])"
        assert self.net.expression == "[Gross] * 0.8"

    def test_rename_table_adds_quotes_when_needed(self):
        """Test that a table name with a space is quoted."""
        self.session.rename(self.sales, "Sales 2024")

        assert self.total.expression == "SUM('Sales 2024'[Amount])"
        assert self.rows.expression == "COUNTROWS('Sales 2024')"

    def test_rename_table_then_undo(self):
        """Test undo of a table rename."""
        before = self.session.snapshot()
        self.session.rename(self.sales, "Orders")
        assert self.total.expression == "SUM(Orders[Amount])"

        self.session.undo()

        assert self.session.snapshot() == before

    def test_always_quote_table_names(self):
        """Test the always_quote_table_names option."""
        session = ModelSession(config=EditorConfig(always_quote_table_names=True))
        sales = session.add_table("Sales")
        session.add_column(sales, "Amount")
        total = session.add_measure(sales, "Total", "SUM(Sales[Amount])")

        session.rename(sales, "Orders")

        assert total.expression == "SUM('Orders'[Amount])"

    def test_calculated_column_has_expression(self):
        """Test column types."""
        assert self.net.column_type == ColumnType.CALCULATED
        assert self.amount.column_type == ColumnType.DATA
        assert self.amount.expression is None

    def test_data_column_rejects_expression(self):
        """Test that data columns carry no formula."""
        with pytest.raises(InvalidValueError):
            self.session.set_expression(self.amount, "1")

    def test_column_names_scoped_to_table(self):
        """Test that two tables may have columns with the same name."""
        other = self.session.add_table("Other")
        column = self.session.add_column(other, "Amount")

        assert column.parent_id == other.id
        with pytest.raises(NameConflictError):
            self.session.add_column(self.sales, "AMOUNT")


class TestMove:
    """Moving measures between tables."""

    def setup_method(self):
        """Create two tables and a qualified measure reference."""
        self.session = ModelSession()
        self.sales = self.session.add_table("Sales")
        self.finance = self.session.add_table("Finance")
        self.total = self.session.add_measure(self.sales, "Total", "1")
        self.ratio = self.session.add_measure(self.sales, "Ratio", "Sales[Total] / [Total]")

    def test_move_rewrites_qualified_references(self):
        """Test that the table part of a qualified reference follows the move."""
        self.session.move(self.total, self.finance)

        assert self.total.parent_id == self.finance.id
        assert self.ratio.expression == "Finance[Total] / [Total]"

    def test_move_undo(self):
        """Test that undoing a move restores parent, position and formulas."""
        before = self.session.snapshot()
        self.session.move(self.total, self.finance)

        self.session.undo()

        assert self.session.snapshot() == before

    def test_move_table_is_rejected(self):
        """Test that tables cannot be moved."""
        with pytest.raises(InvalidMoveError):
            self.session.move(self.sales, self.finance)

    def test_move_under_wrong_parent(self):
        """Test that a measure cannot be placed under the model."""
        with pytest.raises(InvalidMoveError):
            self.session.move(self.total, self.session.model)
        assert self.total.parent_id == self.sales.id


class TestBatchesAndHistory:
    """Testable history properties."""

    def setup_method(self):
        """Create a model with some content."""
        self.session = ModelSession()
        self.sales = self.session.add_table("Sales")
        self.amount = self.session.add_column(self.sales, "Amount", "double")
        self.m1 = self.session.add_measure(self.sales, "M1", "SUM(Sales[Amount])")
        self.m2 = self.session.add_measure(self.sales, "M2", "[M1] * 2")
        self.session.clear_history()

    def test_each_edit_then_undo_restores_state(self):
        """Test that every kind of edit followed by undo is a no-op."""
        edits = [
            lambda s: s.rename(self.m1, "Base"),
            lambda s: s.rename(self.sales, "Orders Table"),
            lambda s: s.rename(self.amount, "Gross"),
            lambda s: s.set_expression(self.m2, "[M1] * 3"),
            lambda s: s.set_property(self.m1, "format_string", "0.00"),
            lambda s: s.add_measure(self.sales, "M3", "[M2] + [M1]"),
            lambda s: s.add_table("Customer"),
            lambda s: s.add_annotation(self.m1, "Owner", "BI"),
            lambda s: s.remove_node(self.m1),
            lambda s: s.remove_node(self.sales),
        ]
        for edit in edits:
            before = self.session.snapshot()
            edit(self.session)
            assert self.session.snapshot() != before
            self.session.undo()
            assert self.session.snapshot() == before

    def test_batch_is_one_undo_entry(self):
        """Test that K edits in one batch undo together."""
        before = self.session.snapshot()

        with self.session.batch("Refactor"):
            self.session.rename(self.m1, "Base")
            self.session.rename(self.sales, "Orders")
            self.session.set_expression(self.m2, "[Base] * 10")

        assert self.session.undo_manager.undo_depth == 1
        assert self.session.undo_manager.undo_label == "Refactor"
        assert self.m1.expression == "SUM(Orders[Amount])"

        self.session.undo()
        assert self.session.snapshot() == before

    def test_explicit_begin_end(self):
        """Test BeginBatch/EndBatch through the session."""
        self.session.begin_batch("Two renames")
        self.session.rename(self.m1, "A")
        self.session.rename(self.m2, "B")
        self.session.end_batch()

        assert self.session.undo_manager.history() == ["Two renames"]

    def test_fresh_edit_discards_redo(self):
        """Test that redo becomes unavailable after a new edit."""
        self.session.rename(self.m1, "Base")
        self.session.undo()
        assert self.session.can_redo

        self.session.set_property(self.m2, "description", "Doubled")

        assert not self.session.can_redo
        assert self.session.redo() is False

    def test_exception_in_batch_leaves_edits_applied(self):
        """Test that a failing batch is not rolled back automatically."""
        with pytest.raises(NameConflictError):
            with self.session.batch("Half"):
                self.session.rename(self.m1, "Base")
                self.session.rename(self.m2, "Base")

        assert self.m1.name == "Base"
        assert self.session.undo_manager.batch_depth == 0

        self.session.undo()
        assert self.m1.name == "M1"
        assert self.m2.expression == "[M1] * 2"

    def test_rollback_unwinds_open_batch(self):
        """Test explicit rollback of a half-applied batch."""
        before = self.session.snapshot()
        self.session.begin_batch("Aborted")
        self.session.rename(self.m1, "Base")
        self.session.add_table("Extra")

        self.session.rollback()

        assert self.session.snapshot() == before
        assert not self.session.can_undo

    def test_rollback_inside_batch_block(self):
        """Test rollback() called inside a with-batch block."""
        before = self.session.snapshot()

        with self.session.batch("Aborted"):
            self.session.rename(self.m1, "Base")
            self.session.rollback()

        assert self.session.snapshot() == before
        assert self.session.undo_manager.batch_depth == 0
        assert not self.session.can_undo

    def test_rollback_in_except_keeps_original_error(self):
        """Test that the error that triggered a rollback still propagates."""
        with pytest.raises(NameConflictError):
            with self.session.batch("Half"):
                try:
                    self.session.rename(self.m1, "Base")
                    self.session.rename(self.m2, "Base")
                except NameConflictError:
                    self.session.rollback()
                    raise

        assert self.m1.name == "M1"
        assert not self.session.can_undo

    def test_many_dependents_single_transaction(self):
        """Test renaming a measure referenced by many formulas."""
        measures = [
            self.session.add_measure(self.sales, f"D{i}", f"[M1] + {i}") for i in range(50)
        ]
        self.session.clear_history()

        self.session.rename(self.m1, "Base")

        assert self.session.undo_manager.undo_depth == 1
        assert all(m.expression.startswith("[Base]") for m in measures)
        self.session.undo()
        assert all(m.expression.startswith("[M1]") for m in measures)


class TestRemoveAndAdd:
    """Removal cascades and unresolved references."""

    def setup_method(self):
        """Create two related tables."""
        self.session = ModelSession()
        self.sales = self.session.add_table("Sales")
        self.key = self.session.add_column(self.sales, "CustomerKey", "int64")
        self.customer = self.session.add_table("Customer")
        self.ckey = self.session.add_column(self.customer, "CustomerKey", "int64")
        self.relationship = self.session.add_relationship(self.key, self.ckey)
        self.m1 = self.session.add_measure(self.sales, "M1", "1")
        self.m2 = self.session.add_measure(self.sales, "M2", "[M1] + 1")

    def test_default_relationship_name(self):
        """Test the generated relationship name."""
        assert self.relationship.name == "Sales[CustomerKey] -> Customer[CustomerKey]"

    def test_remove_table_removes_relationship(self):
        """Test that relationships using removed columns go too."""
        self.session.remove_node(self.customer)

        assert not self.session.graph.has_node(self.relationship.id)
        assert not self.session.graph.has_node(self.ckey.id)

        self.session.undo()
        assert self.session.graph.get(self.relationship.id).properties["to_column"] == self.ckey.id

    def test_remove_referenced_measure(self):
        """Test that dependents of a removed measure become unresolved."""
        self.session.remove_node(self.m1)

        assert self.m2.expression == "[M1] + 1"
        assert self.session.index.get_unresolved(self.m2) == ["[M1]"]

        self.session.undo()
        assert self.session.get_dependents(self.m1) == {self.m2}
        assert self.session.index.get_unresolved(self.m2) == []

    def test_remove_model_rejected(self):
        """Test that the root cannot be removed."""
        with pytest.raises(InvalidMoveError):
            self.session.remove_node(self.session.model)

    def test_add_resolves_pending_reference(self):
        """Test that adding a measure resolves earlier unresolved references."""
        m3 = self.session.add_measure(self.sales, "M3", "[Later] * 2")
        assert self.session.index.get_unresolved(m3) == ["[Later]"]

        later = self.session.add_measure(self.sales, "Later", "1")

        assert self.session.get_dependents(later) == {m3}

    def test_unresolved_warning_collected(self):
        """Test that unresolved references are reported as warnings."""
        self.session.add_measure(self.sales, "M3", "[Missing]")

        warnings = self.session.warnings.get_by_level("WARNING")
        assert len(warnings) == 1
        assert "[Missing]" in warnings[0].message

    def test_unresolved_fail_mode(self):
        """Test on_unresolved=FAIL for set_expression."""
        session = ModelSession(config=EditorConfig(on_unresolved=ErrorMode.FAIL))
        sales = session.add_table("Sales")
        m1 = session.add_measure(sales, "M1", "1")

        with pytest.raises(UnresolvedReferenceError) as exc_info:
            session.set_expression(m1, "[Nope] + 1")

        assert exc_info.value.references == ["[Nope]"]
        assert m1.expression == "1"

    def test_annotation_scope(self):
        """Test that annotation names are scoped to their owner."""
        self.session.add_annotation(self.m1, "Owner", "A")
        self.session.add_annotation(self.m2, "Owner", "B")

        with pytest.raises(NameConflictError):
            self.session.add_annotation(self.m1, "owner", "C")

    def test_annotation_cannot_own_annotation(self):
        """Test structural rules for annotations."""
        note = self.session.add_annotation(self.m1, "Owner", "A")

        with pytest.raises(InvalidMoveError):
            self.session.add_annotation(note, "Nested", "x")

    def test_invalid_property_value(self):
        """Test that storage rejects illegal values before mutation."""
        with pytest.raises(InvalidValueError):
            self.session.set_property(self.m1, "is_hidden", "yes")
        with pytest.raises(InvalidValueError):
            self.session.set_property(self.m1, "no_such_property", 1)
        assert not self.session.undo_manager.redo_depth


class TestLookups:
    """Path resolution and lookups."""

    def setup_method(self):
        """Create a model."""
        self.session = ModelSession()
        self.sales = self.session.add_table("Sales Data")
        self.amount = self.session.add_column(self.sales, "Amount")
        self.total = self.session.add_measure(self.sales, "Total", "SUM('Sales Data'[Amount])")

    def test_resolve_paths(self):
        """Test the accepted path forms."""
        assert self.session.resolve_path("'Sales Data'") is self.sales
        assert self.session.resolve_path("'sales data'[amount]") is self.amount
        assert self.session.resolve_path("[Total]") is self.total
        assert self.session.resolve_path("'Sales Data'[Total]") is self.total

    def test_resolve_unknown_path(self):
        """Test unknown and malformed paths."""
        with pytest.raises(NodeNotFoundError):
            self.session.resolve_path("[Nope]")
        with pytest.raises(NodeNotFoundError):
            self.session.resolve_path("[A] + [B]")

    def test_node_from_another_session(self):
        """Test that nodes of another session are rejected."""
        other = ModelSession()
        table = other.add_table("Sales Data")

        with pytest.raises(NodeNotFoundError):
            self.session.rename(table, "X")

    def test_dependencies(self):
        """Test get_dependencies and transitive dependents."""
        double = self.session.add_measure(self.sales, "Double", "[Total] * 2")

        assert self.session.get_dependencies(self.total) == {self.sales, self.amount}
        assert self.session.get_transitive_dependents(self.amount) == {self.total, double}

    def test_statistics(self):
        """Test node counts."""
        stats = self.session.graph.get_statistics()

        assert stats["table"] == 1
        assert stats["column"] == 1
        assert stats["measure"] == 1
        assert stats["total_nodes"] == 4
        assert self.session.model.kind == NodeKind.MODEL

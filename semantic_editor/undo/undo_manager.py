"""
Undo manager.

This module defines the UndoManager class, which records actions into
transactions and replays them backwards (undo) and forwards (redo). It owns
no global state: every editing session creates its own manager.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from semantic_editor.exceptions import UndoStateError
from semantic_editor.models.action import Action
from semantic_editor.models.transaction import Transaction

if TYPE_CHECKING:
    from semantic_editor.graph.object_graph import ObjectGraph

logger = logging.getLogger(__name__)


class UndoState(str, Enum):
    """Undo manager state."""

    IDLE = "idle"
    RECORDING = "recording"
    UNDOING = "undoing"
    REDOING = "redoing"


class UndoManager:
    """Transactional undo/redo stacks.

    Responsibilities:
    1. Group recorded actions into transactions (nested batches coalesce)
    2. Undo a transaction by reverting its actions in reverse order
    3. Redo a transaction by applying its actions in original order
    4. Discard the redo branch as soon as something new is recorded

    Recording is refused while replaying: anything that reacts to a change
    notification must check ``is_replaying`` before producing secondary
    edits.

    Usage:
        manager = UndoManager(graph)
        manager.begin_batch("Rename")
        manager.add(action)        # the caller applies the action itself
        manager.end_batch()
        manager.undo()

    Attributes:
        graph: Object graph actions are replayed against.
        max_levels: Maximum number of transactions kept on the undo stack.
        state: Current UndoState.
    """

    def __init__(self, graph: ObjectGraph, max_levels: Optional[int] = None) -> None:
        """Initialize an UndoManager.

        Args:
            graph: Object graph actions are replayed against.
            max_levels: Optional cap on the undo stack size.
        """
        self.graph = graph
        self.max_levels = max_levels
        self.state = UndoState.IDLE
        self._undo_stack: list[Transaction] = []
        self._redo_stack: list[Transaction] = []
        self._pending: Optional[Transaction] = None
        self._depth = 0

    # Properties

    @property
    def batch_depth(self) -> int:
        return self._depth

    @property
    def is_replaying(self) -> bool:
        return self.state in (UndoState.UNDOING, UndoState.REDOING)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)

    @property
    def redo_depth(self) -> int:
        return len(self._redo_stack)

    @property
    def undo_label(self) -> Optional[str]:
        """Label of the transaction the next undo() reverts."""
        return self._undo_stack[-1].label if self._undo_stack else None

    @property
    def redo_label(self) -> Optional[str]:
        """Label of the transaction the next redo() re-applies."""
        return self._redo_stack[-1].label if self._redo_stack else None

    @property
    def undo_transaction(self) -> Optional[Transaction]:
        """The transaction the next undo() reverts, without removing it."""
        return self._undo_stack[-1] if self._undo_stack else None

    def history(self) -> list[str]:
        """Return the undo stack labels, oldest first."""
        return [txn.label for txn in self._undo_stack]

    # Recording

    def begin_batch(self, label: str) -> None:
        """Open a batch; nested calls join the outermost batch.

        Args:
            label: Label of the transaction (only the outermost label is kept).
        """
        self._check_not_replaying("begin a batch")
        if self._depth == 0:
            self._pending = Transaction(label=label)
            self.state = UndoState.RECORDING
            logger.debug("Begin batch '%s'", label)
        self._depth += 1

    def add(self, action: Action) -> None:
        """Record an action that the caller applies to the graph.

        Without an open batch the action becomes a transaction of its own.

        Raises:
            UndoStateError: If called while undoing or redoing.
        """
        self._check_not_replaying("record an action")
        # Any fresh edit invalidates the redo branch
        self._redo_stack.clear()
        if self._pending is None:
            self._commit(Transaction(label=action.describe(), actions=[action]))
            return
        self._pending.append(action)

    def end_batch(self) -> None:
        """Close a batch; the outermost call commits the transaction.

        Raises:
            UndoStateError: If no batch is open.
        """
        if self._depth == 0:
            raise UndoStateError("end_batch() called without a matching begin_batch()")
        self._depth -= 1
        if self._depth > 0:
            return
        pending, self._pending = self._pending, None
        self.state = UndoState.IDLE
        if pending is None or pending.is_empty():
            logger.debug("Dropped empty batch")
            return
        self._redo_stack.clear()
        self._commit(pending)

    def rollback(self) -> None:
        """Close the open batch and revert everything it applied.

        Nothing is pushed on either stack. Used to unwind a batch that failed
        half-way.

        Raises:
            UndoStateError: If no batch is open.
        """
        if self._depth == 0:
            raise UndoStateError("rollback() called without an open batch")
        pending, self._pending = self._pending, None
        self._depth = 0
        self.state = UndoState.UNDOING
        try:
            if pending is not None:
                logger.debug("Rolling back '%s' (%d actions)", pending.label, len(pending))
                for action in reversed(pending):
                    action.revert(self.graph)
        finally:
            self.state = UndoState.IDLE

    def _commit(self, transaction: Transaction) -> None:
        self._undo_stack.append(transaction)
        if self.max_levels is not None:
            while len(self._undo_stack) > self.max_levels:
                evicted = self._undo_stack.pop(0)
                logger.debug("Evicted '%s' from undo history", evicted.label)
        logger.debug("Committed '%s' (%d actions)", transaction.label, len(transaction))

    # Replay

    def undo(self) -> bool:
        """Revert the most recent transaction.

        Returns:
            True if a transaction was reverted, False if the stack was empty.

        Raises:
            UndoStateError: If a batch is open or an action does not match
                the state of the graph.
        """
        self._check_no_open_batch("undo")
        if not self._undo_stack:
            return False
        transaction = self._undo_stack.pop()
        self.state = UndoState.UNDOING
        try:
            for action in reversed(transaction):
                action.revert(self.graph)
        finally:
            self.state = UndoState.IDLE
        self._redo_stack.append(transaction)
        logger.debug("Undid '%s'", transaction.label)
        return True

    def redo(self) -> bool:
        """Re-apply the most recently undone transaction.

        Returns:
            True if a transaction was re-applied, False if the stack was empty.
        """
        self._check_no_open_batch("redo")
        if not self._redo_stack:
            return False
        transaction = self._redo_stack.pop()
        self.state = UndoState.REDOING
        try:
            for action in transaction:
                action.apply(self.graph)
        finally:
            self.state = UndoState.IDLE
        self._undo_stack.append(transaction)
        logger.debug("Redid '%s'", transaction.label)
        return True

    def clear(self) -> None:
        """Empty both stacks (session reset only)."""
        self._check_no_open_batch("clear the history")
        self._undo_stack.clear()
        self._redo_stack.clear()

    def _check_not_replaying(self, what: str) -> None:
        if self.is_replaying:
            raise UndoStateError(f"Cannot {what} while {self.state.value}")

    def _check_no_open_batch(self, what: str) -> None:
        self._check_not_replaying(what)
        if self._depth:
            raise UndoStateError(f"Cannot {what} while a batch is open")

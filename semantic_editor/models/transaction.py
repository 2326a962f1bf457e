"""
Transaction model.

A Transaction is the undo granularity unit: a label and the ordered list of
actions committed together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from semantic_editor.models.action import Action


@dataclass
class Transaction:
    """Ordered sequence of actions recorded under one label.

    Attributes:
        label: Human-readable label ("Rename", "Delete table 'Sales'", ...).
        actions: Recorded actions in application order.

    Example:
        >>> txn = Transaction(label="Rename")
        >>> txn.append(SetPropertyAction(3, "name", "M1", "M2"))
        >>> len(txn)
        1
    """

    label: str
    actions: list[Action] = field(default_factory=list)

    def append(self, action: Action) -> None:
        self.actions.append(action)

    def is_empty(self) -> bool:
        return not self.actions

    def __len__(self) -> int:
        return len(self.actions)

    def __iter__(self) -> Iterator[Action]:
        return iter(self.actions)

    def __reversed__(self) -> Iterator[Action]:
        return reversed(self.actions)

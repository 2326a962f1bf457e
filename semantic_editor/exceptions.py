"""
Custom exception classes for the semantic model editor.

This module defines all custom exceptions used throughout the semantic_editor
package. Validation errors are raised before any mutation is applied, so a
caller that receives one can rely on the model and the undo history being
unchanged.
"""

from typing import Optional


class EditorError(Exception):
    """Base exception class for all editor errors.

    Attributes:
        message: Human-readable error message describing the error.
    """

    def __init__(self, message: str) -> None:
        """Initialize an EditorError with a message.

        Args:
            message: Error message describing what went wrong.
        """
        self.message = message
        super().__init__(self.message)


class NameConflictError(EditorError):
    """Exception raised when a name is already used by a sibling.

    Names are unique, case-insensitively, among objects of the same kind
    within the same scope (for example two columns of one table, or two
    measures anywhere in the model).

    Attributes:
        message: Error message describing the conflict.
        name: The requested name.
        kind: Kind of the object being named.
        existing_id: Id of the object that already holds the name.
    """

    def __init__(
        self,
        message: str,
        name: str,
        kind: Optional[str] = None,
        existing_id: Optional[int] = None,
    ) -> None:
        """Initialize a NameConflictError.

        Args:
            message: Error message describing the conflict.
            name: The requested name.
            kind: Optional kind of the object being named.
            existing_id: Optional id of the conflicting object.
        """
        self.name = name
        self.kind = kind
        self.existing_id = existing_id
        super().__init__(message)


class InvalidValueError(EditorError):
    """Exception raised when a property value is rejected by storage.

    Attributes:
        message: Error message describing the rejected value.
        property_name: Name of the property being written.
        value: The rejected value.
    """

    def __init__(self, message: str, property_name: str, value: object = None) -> None:
        self.property_name = property_name
        self.value = value
        super().__init__(message)


class InvalidMoveError(EditorError):
    """Exception raised when a structural move or insertion is not allowed.

    Raised for parents of the wrong kind, moves of objects that cannot be
    relocated (tables, the model root), and removal of the model root.
    """


class NodeNotFoundError(EditorError):
    """Exception raised when a node id or object path cannot be found.

    Attributes:
        message: Error message.
        reference: The id or path that could not be found.
    """

    def __init__(self, message: str, reference: object) -> None:
        self.reference = reference
        super().__init__(message)


class TokenizationError(EditorError):
    """Exception raised by a tokenizer when formula text cannot be scanned.

    The dependency index and the fixup engine never let this escape: the
    affected expression is flagged with an error marker instead.

    Attributes:
        message: Error message from the tokenizer.
        text: The formula text that failed to tokenize.
    """

    def __init__(self, message: str, text: Optional[str] = None) -> None:
        self.text = text
        super().__init__(message)


class UnresolvedReferenceError(EditorError):
    """Exception raised when an expression references an unknown object.

    Only raised by ``set_expression`` when the session is configured with
    ``on_unresolved=ErrorMode.FAIL``.

    Attributes:
        message: Error message.
        references: The reference texts that could not be resolved.
    """

    def __init__(self, message: str, references: Optional[list[str]] = None) -> None:
        self.references = references or []
        super().__init__(message)


class UndoStateError(EditorError):
    """Fatal internal invariant violation in the undo/redo machinery.

    Raised when an action does not match the state it expects to invert,
    when something tries to record during replay, or when batches are
    unbalanced. This is a programming error, not a user-recoverable
    condition, and must never be swallowed.
    """

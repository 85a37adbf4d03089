"""Exception hierarchy for failures that are raised rather than returned."""

from __future__ import annotations


class BabbleError(Exception):
    """Base class for babble exceptions."""

    pass


class StoreError(BabbleError):
    """A transition store backend failed to complete an operation."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"Store {operation} failed: {message}")


class ContextLengthError(BabbleError, ValueError):
    """A context does not match the order the store was built for."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Context must hold {expected} tokens, got {actual}")

"""Core value types for order-n transition chains."""

from __future__ import annotations

from typing import Iterable, NamedTuple

from babble.utils.errors import ContextLengthError

# A context is the window of `order` tokens preceding a transition.
Context = tuple[str, ...]


class Transition(NamedTuple):
    """One observed occurrence of `token` immediately following `context`."""

    context: Context
    token: str

    @property
    def window(self) -> tuple[str, ...]:
        """The full (order + 1)-token window this transition came from."""
        return self.context + (self.token,)


def check_order(order: int) -> int:
    """Validate a chain order, returning it unchanged."""
    if order < 1:
        raise ValueError(f"order must be at least 1, got {order}")
    return order


def make_context(tokens: Iterable[str], order: int) -> Context:
    """
    Build a context from tokens, enforcing the chain order.

    Args:
        tokens: Tokens in the context window, oldest first
        order: Required context length

    Returns:
        Immutable context tuple

    Raises:
        ContextLengthError: If the number of tokens differs from order
    """
    context = tuple(tokens)
    if len(context) != order:
        raise ContextLengthError(order, len(context))
    return context

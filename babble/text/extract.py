"""Sliding-window transition extraction."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Iterator

from babble.models.chain import Transition, check_order


def extract_transitions(tokens: Iterable[str], order: int) -> Iterator[Transition]:
    """
    Lazily split a token stream into (context, next token) pairs.

    Only the current window of ``order + 1`` tokens is held, so the input may
    be an unbounded iterator. A sequence of length L yields ``L - order``
    transitions when ``L > order`` and nothing otherwise.

    Args:
        tokens: Token sequence or iterator
        order: Context length (n)

    Yields:
        Transition for every (order + 1)-token window, in input order
    """
    check_order(order)
    window: deque[str] = deque(maxlen=order + 1)
    for token in tokens:
        window.append(token)
        if len(window) == order + 1:
            *context, nxt = window
            yield Transition(tuple(context), nxt)

"""Data models for babble."""

from babble.models.chain import (
    Context,
    Transition,
    check_order,
    make_context,
)

__all__ = [
    "Context",
    "Transition",
    "check_order",
    "make_context",
]

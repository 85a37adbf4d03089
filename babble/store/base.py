"""Abstract base class for transition stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from babble.models.chain import Context, check_order, make_context
from babble.utils.logging import get_logger


class TransitionStore(ABC):
    """
    Weighted multiset of transitions keyed by context.

    Each store is built for a fixed chain order and is responsible for:
    1. Recording (context, token) occurrences as positive counts
    2. Drawing a next token with probability proportional to its count
    3. Handing out an existing context to seed generation

    Absence is a value: ``sample_from`` and ``sample_any`` return None when
    there is nothing to draw.
    """

    def __init__(self, order: int) -> None:
        """
        Initialize the store.

        Args:
            order: Number of tokens in every context
        """
        self.order = check_order(order)
        self.logger = get_logger(f"store.{self.backend_name}")

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short identifier for the backend kind."""
        ...

    @abstractmethod
    async def insert(self, context: Context, token: str) -> None:
        """Record one occurrence of token following context."""
        ...

    async def insert_batch(self, context: Context, tokens: Iterable[str]) -> None:
        """
        Record several tokens observed after the same context.

        Multiplicities are preserved: a token listed twice is counted twice.
        """
        for token in tokens:
            await self.insert(context, token)

    @abstractmethod
    async def sample_from(self, context: Context) -> Optional[str]:
        """
        Draw a next token weighted by recorded count.

        Returns:
            A token, or None if the context has no recorded transitions
        """
        ...

    @abstractmethod
    async def sample_any(self) -> Optional[Context]:
        """
        Return an existing context.

        Returns:
            A context, or None if the store is empty
        """
        ...

    @abstractmethod
    async def weights(self, context: Context) -> dict[str, int]:
        """Recorded token counts under context (empty if absent)."""
        ...

    @abstractmethod
    async def merge(self, other: "TransitionStore") -> "TransitionStore":
        """Multiset union with another store of the same kind."""
        ...

    async def aclose(self) -> None:
        """Release backend resources."""
        return None

    def _check(self, context: Context) -> Context:
        return make_context(context, self.order)

    def _check_mergeable(self, other: "TransitionStore") -> None:
        if type(other) is not type(self):
            raise TypeError(
                f"Cannot merge {type(self).__name__} with {type(other).__name__}"
            )
        if other.order != self.order:
            raise TypeError(
                f"Cannot merge stores of order {self.order} and {other.order}"
            )

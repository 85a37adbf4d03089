"""In-process transition store."""

from __future__ import annotations

import random
import threading
from collections import Counter
from typing import Iterable, Optional

from babble.models.chain import Context
from babble.store.base import TransitionStore


class MemoryTransitionStore(TransitionStore):
    """
    Transition store backed by nested dicts.

    Layout is ``{context: {token: count}}``. A single lock per instance guards
    every operation, so the store may be shared between producers and
    consumers running on different threads.
    """

    def __init__(self, order: int, rng: Optional[random.Random] = None) -> None:
        """
        Initialize an empty store.

        Args:
            order: Number of tokens in every context
            rng: Random source (defaults to a fresh Random)
        """
        super().__init__(order)
        self._table: dict[Context, dict[str, int]] = {}
        # Insertion-ordered keys for O(1) seed draws; contexts are never removed.
        self._keys: list[Context] = []
        self._lock = threading.Lock()
        self._rng = rng or random.Random()

    @property
    def backend_name(self) -> str:
        return "memory"

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)

    def contexts(self) -> list[Context]:
        """Snapshot of all contexts with at least one transition."""
        with self._lock:
            return list(self._table)

    async def insert(self, context: Context, token: str) -> None:
        self._add(self._check(context), token, 1)

    async def insert_batch(self, context: Context, tokens: Iterable[str]) -> None:
        context = self._check(context)
        # Drain first so a failing iterable leaves the store untouched.
        batch = Counter(tokens)
        if not batch:
            return
        with self._lock:
            counts = self._counts_for(context)
            for token, count in batch.items():
                counts[token] = counts.get(token, 0) + count

    async def sample_from(self, context: Context) -> Optional[str]:
        context = self._check(context)
        with self._lock:
            counts = self._table.get(context)
            if not counts:
                return None
            return self._pick(counts)

    async def sample_any(self) -> Optional[Context]:
        with self._lock:
            if not self._keys:
                return None
            return self._rng.choice(self._keys)

    async def weights(self, context: Context) -> dict[str, int]:
        context = self._check(context)
        with self._lock:
            return dict(self._table.get(context, {}))

    async def merge(self, other: TransitionStore) -> "MemoryTransitionStore":
        """
        Return a new store holding the summed counts of both stores.

        Raises:
            TypeError: If other is not an in-memory store of the same order
        """
        self._check_mergeable(other)
        merged = MemoryTransitionStore(self.order, rng=self._rng)
        for source in (self, other):
            for context, counts in source._snapshot().items():
                for token, count in counts.items():
                    merged._add(context, token, count)
        return merged

    def _snapshot(self) -> dict[Context, dict[str, int]]:
        with self._lock:
            return {context: dict(counts) for context, counts in self._table.items()}

    def _add(self, context: Context, token: str, count: int) -> None:
        with self._lock:
            counts = self._counts_for(context)
            counts[token] = counts.get(token, 0) + count

    def _counts_for(self, context: Context) -> dict[str, int]:
        # Caller holds the lock.
        counts = self._table.get(context)
        if counts is None:
            counts = self._table[context] = {}
            self._keys.append(context)
        return counts

    def _pick(self, counts: dict[str, int]) -> str:
        # Cumulative walk over distinct tokens; never expands counts.
        target = self._rng.randrange(sum(counts.values()))
        for token, count in counts.items():
            target -= count
            if target < 0:
                return token
        raise AssertionError("cumulative walk exhausted")

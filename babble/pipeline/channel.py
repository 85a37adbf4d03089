"""Bounded, closable channel between producers and a consumer."""

from __future__ import annotations

import asyncio
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Channel(Generic[T]):
    """
    Bounded FIFO that can be closed.

    After ``close()``:
    - ``put`` returns False, including puts already blocked on a full buffer
    - ``get`` keeps returning buffered items, then None once empty

    Items are never None.
    """

    def __init__(self, maxsize: int) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be at least 1, got {maxsize}")
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def qsize(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._closed.set()

    async def put(self, item: T) -> bool:
        """
        Add an item, suspending while the buffer is full.

        Returns:
            True if the item was enqueued, False if the channel closed first
        """
        if self.closed:
            return False
        try:
            self._queue.put_nowait(item)
            return True
        except asyncio.QueueFull:
            pass
        return await self._race(self._queue.put(item)) is not _CLOSED

    async def get(self) -> Optional[T]:
        """
        Take the next item, suspending while the buffer is empty.

        Returns:
            The next item, or None when the channel is closed and drained
        """
        while True:
            try:
                return self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            if self.closed:
                return None
            item = await self._race(self._queue.get())
            if item is not _CLOSED:
                return item

    async def _race(self, operation):
        op_task = asyncio.ensure_future(operation)
        closed_task = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait(
                {op_task, closed_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            op_task.cancel()
            raise
        finally:
            closed_task.cancel()
        if op_task.done():
            return op_task.result()
        # Cancelling a pending Queue.put/get leaves the buffer untouched.
        op_task.cancel()
        try:
            await op_task
        except asyncio.CancelledError:
            return _CLOSED
        return op_task.result()


# Marker for operations interrupted by close()
_CLOSED = object()

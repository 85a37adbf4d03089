"""Single-worker rate limiter for paginated fetches."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol

from babble.utils.logging import get_logger
from babble.utils.result import Err, FetchError, Ok, Result

logger = get_logger("fetcher.limiter")


@dataclass
class Page:
    """One page of items plus the cursor for the next page."""

    items: list[Any] = field(default_factory=list)
    next_cursor: Optional[Any] = None

    @property
    def is_last(self) -> bool:
        """True when no further page exists."""
        return self.next_cursor is None


class PageFetcher(Protocol):
    """Anything that can fetch one page of a paginated listing."""

    async def fetch(self, url: str, cursor: Optional[Any]) -> Page:
        ...


@dataclass
class FetchRequest:
    """A queued fetch and the future its caller is waiting on."""

    url: str
    cursor: Optional[Any]
    reply: asyncio.Future


# Queued by aclose() to stop the worker
_STOP = object()


class RateLimitedFetcher:
    """
    Serializes all fetches behind a minimum spacing between requests.

    Callers from any number of tasks submit requests through one queue. A
    single worker task owns the time of the last dispatch, sleeps until
    ``min_interval`` has passed since it, performs the fetch and resolves the
    caller's future. Requests are served in the order they were queued.

    A failed fetch is delivered to its caller as ``Err(FetchError)``; the
    worker keeps serving.
    """

    def __init__(
        self,
        page_fetcher: PageFetcher,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the fetcher. The worker starts on first use.

        Args:
            page_fetcher: Collaborator performing the actual fetch
            min_interval: Minimum seconds between consecutive dispatches
            clock: Monotonic clock in seconds
            sleep: Coroutine function used to wait
        """
        if min_interval < 0:
            raise ValueError(f"min_interval must be non-negative, got {min_interval}")
        self.page_fetcher = page_fetcher
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.dispatched = 0

    @property
    def running(self) -> bool:
        """True while the worker task is alive."""
        return self._worker is not None and not self._worker.done()

    async def __aenter__(self) -> "RateLimitedFetcher":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def request(self, url: str, cursor: Optional[Any] = None) -> Result[Page, FetchError]:
        """
        Fetch one page, waiting for the rate limit.

        Args:
            url: Listing URL
            cursor: Continuation cursor from the previous page

        Returns:
            Ok with the page, or Err describing the failure
        """
        queue = self._ensure_worker()
        reply = asyncio.get_running_loop().create_future()
        await queue.put(FetchRequest(url=url, cursor=cursor, reply=reply))
        return await reply

    async def paginate(self, url: str) -> AsyncIterator[Any]:
        """
        Iterate every item of a paginated listing.

        Each call starts from the first page. A failed fetch ends the
        sequence; items already yielded stand.

        Args:
            url: Listing URL

        Yields:
            Items in page order
        """
        cursor: Optional[Any] = None
        pages = 0
        while True:
            result = await self.request(url, cursor)
            if result.is_err():
                logger.warning(
                    "pagination_aborted",
                    url=url,
                    pages=pages,
                    error=str(result.unwrap_err()),
                )
                return
            page = result.unwrap()
            pages += 1
            for item in page.items:
                yield item
            if page.is_last:
                logger.debug("pagination_completed", url=url, pages=pages)
                return
            cursor = page.next_cursor

    async def aclose(self) -> None:
        """Stop the worker after it finishes the requests already queued."""
        queue, worker = self._queue, self._worker
        if queue is None or worker is None or worker.done():
            return
        await queue.put(_STOP)
        await worker
        self._worker = None
        self._queue = None

    def _ensure_worker(self) -> asyncio.Queue:
        if self._queue is None or not self.running:
            self._queue = asyncio.Queue()
            self._worker = asyncio.create_task(self._run(self._queue))
            logger.debug("fetch_worker_started", min_interval=self.min_interval)
        return self._queue

    async def _run(self, queue: asyncio.Queue) -> None:
        last_dispatch: Optional[float] = None
        while True:
            request = await queue.get()
            if request is _STOP:
                logger.debug("fetch_worker_stopped", dispatched=self.dispatched)
                return

            if last_dispatch is not None:
                wait = last_dispatch + self.min_interval - self._clock()
                if wait > 0:
                    await self._sleep(wait)

            result = await self._dispatch(request)
            last_dispatch = self._clock()
            self.dispatched += 1

            if not request.reply.done():
                request.reply.set_result(result)

    async def _dispatch(self, request: FetchRequest) -> Result[Page, FetchError]:
        logger.debug("fetch_dispatched", url=request.url, cursor=request.cursor)
        try:
            page = await self.page_fetcher.fetch(request.url, request.cursor)
        except Exception as e:
            logger.warning(
                "fetch_failed",
                url=request.url,
                cursor=request.cursor,
                error=str(e),
            )
            return Err(FetchError(
                url=request.url,
                cursor=request.cursor,
                message=type(e).__name__,
                cause=e,
            ))
        return Ok(page)

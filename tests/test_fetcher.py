"""Rate-limited fetcher and the HTTP page fetcher."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import httpx
import pytest

from babble.fetcher import HttpPageFetcher, Page, RateLimitedFetcher


class FakeClock:
    """Virtual time advanced only by the fetcher's own sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class RecordingFetcher:
    """Page fetcher serving numbered pages and recording dispatch times."""

    def __init__(self, clock, pages: int = 1, fail_on: Optional[set] = None) -> None:
        self.clock = clock
        self.pages = pages
        self.fail_on = fail_on or set()
        self.calls: list[tuple[str, Any, float]] = []

    async def fetch(self, url: str, cursor: Optional[Any]) -> Page:
        index = cursor or 0
        self.calls.append((url, cursor, self.clock()))
        if (url, index) in self.fail_on:
            raise ConnectionError(f"boom at {url}#{index}")
        next_cursor = index + 1 if index + 1 < self.pages else None
        return Page(items=[f"{url}#{index}"], next_cursor=next_cursor)


def test_burst_of_requests_is_spaced_by_min_interval() -> None:
    clock = FakeClock()
    source = RecordingFetcher(clock)

    async def main():
        limiter = RateLimitedFetcher(source, 2.0, clock=clock, sleep=clock.sleep)
        results = await asyncio.gather(*[
            limiter.request(f"u{i}") for i in range(10)
        ])
        await limiter.aclose()
        return results

    results = asyncio.run(main())

    assert all(r.is_ok() for r in results)
    times = [t for _, _, t in source.calls]
    assert len(times) == 10
    gaps = [b - a for a, b in zip(times, times[1:])]
    assert all(gap >= 1.999 for gap in gaps)
    # queued in submission order, served FIFO
    assert [url for url, _, _ in source.calls] == [f"u{i}" for i in range(10)]


def test_spacing_holds_in_real_time() -> None:
    stamps: list[float] = []

    class Stamping:
        async def fetch(self, url, cursor):
            stamps.append(time.monotonic())
            return Page(items=[url])

    async def main():
        async with RateLimitedFetcher(Stamping(), 0.05) as limiter:
            await asyncio.gather(*[limiter.request(str(i)) for i in range(5)])

    asyncio.run(main())

    gaps = [b - a for a, b in zip(stamps, stamps[1:])]
    assert len(gaps) == 4
    assert all(gap >= 0.049 for gap in gaps)


def test_no_wait_when_interval_already_elapsed() -> None:
    clock = FakeClock()
    source = RecordingFetcher(clock)

    async def main():
        limiter = RateLimitedFetcher(source, 2.0, clock=clock, sleep=clock.sleep)
        await limiter.request("a")
        clock.now += 5.0
        await limiter.request("b")
        await limiter.aclose()

    asyncio.run(main())

    assert clock.sleeps == []


def test_worker_starts_lazily_and_stops() -> None:
    clock = FakeClock()

    async def main():
        limiter = RateLimitedFetcher(RecordingFetcher(clock), 1.0, clock=clock, sleep=clock.sleep)
        before = limiter.running
        await limiter.request("a")
        during = limiter.running
        await limiter.aclose()
        after = limiter.running
        # a later request restarts the worker
        again = await limiter.request("b")
        await limiter.aclose()
        return before, during, after, again

    before, during, after, again = asyncio.run(main())

    assert (before, during, after) == (False, True, False)
    assert again.is_ok()


def test_failure_goes_to_its_caller_and_worker_keeps_serving() -> None:
    clock = FakeClock()
    source = RecordingFetcher(clock, fail_on={("bad", 0)})

    async def main():
        limiter = RateLimitedFetcher(source, 1.0, clock=clock, sleep=clock.sleep)
        results = await asyncio.gather(
            limiter.request("good"),
            limiter.request("bad"),
            limiter.request("good2"),
        )
        await limiter.aclose()
        return results

    good, bad, good2 = asyncio.run(main())

    assert good.unwrap().items == ["good#0"]
    assert bad.is_err()
    assert bad.unwrap_err().url == "bad"
    assert isinstance(bad.unwrap_err().cause, ConnectionError)
    assert good2.unwrap().items == ["good2#0"]


def test_paginate_follows_cursors_until_exhausted() -> None:
    clock = FakeClock()
    source = RecordingFetcher(clock, pages=3)

    async def main():
        limiter = RateLimitedFetcher(source, 1.0, clock=clock, sleep=clock.sleep)
        first = [item async for item in limiter.paginate("list")]
        second = [item async for item in limiter.paginate("list")]
        await limiter.aclose()
        return first, second

    first, second = asyncio.run(main())

    assert first == ["list#0", "list#1", "list#2"]
    assert second == first
    assert [cursor for _, cursor, _ in source.calls[:3]] == [None, 1, 2]


def test_paginate_ends_at_first_failed_page() -> None:
    clock = FakeClock()
    source = RecordingFetcher(clock, pages=5, fail_on={("list", 2)})

    async def main():
        limiter = RateLimitedFetcher(source, 0.0, clock=clock, sleep=clock.sleep)
        items = [item async for item in limiter.paginate("list")]
        await limiter.aclose()
        return items

    assert asyncio.run(main()) == ["list#0", "list#1"]


def test_concurrent_paginations_interleave_without_blocking_each_other() -> None:
    clock = FakeClock()
    source = RecordingFetcher(clock, pages=2)

    async def main():
        limiter = RateLimitedFetcher(source, 1.0, clock=clock, sleep=clock.sleep)

        async def collect(url):
            return [item async for item in limiter.paginate(url)]

        results = await asyncio.gather(collect("a"), collect("b"))
        await limiter.aclose()
        return results

    a, b = asyncio.run(main())

    assert a == ["a#0", "a#1"]
    assert b == ["b#0", "b#1"]
    assert len(source.calls) == 4


def test_negative_interval_is_rejected() -> None:
    with pytest.raises(ValueError):
        RateLimitedFetcher(RecordingFetcher(FakeClock()), -1)


def _listing_transport(pages: dict[Optional[str], dict], seen: list):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        after = request.url.params.get("after")
        if after == "boom":
            return httpx.Response(503)
        return httpx.Response(200, json=pages[after])

    return httpx.MockTransport(handler)


def test_http_fetcher_reads_items_and_cursor() -> None:
    seen: list[httpx.Request] = []
    pages = {
        None: {"data": {"children": [{"data": {"title": "one"}}], "after": "t3_x"}},
        "t3_x": {"data": {"children": [{"data": {"title": "two"}}], "after": None}},
    }

    async def main():
        client = httpx.AsyncClient(transport=_listing_transport(pages, seen))
        fetcher = HttpPageFetcher(client=client, page_size=25)
        first = await fetcher.fetch("https://example.test/r/python.json", None)
        second = await fetcher.fetch("https://example.test/r/python.json", first.next_cursor)
        await client.aclose()
        return first, second

    first, second = asyncio.run(main())

    assert first.items == [{"data": {"title": "one"}}]
    assert first.next_cursor == "t3_x"
    assert second.is_last
    assert seen[0].url.params.get("limit") == "25"
    assert "after" not in seen[0].url.params
    assert seen[1].url.params.get("after") == "t3_x"


def test_http_fetcher_raises_on_error_status() -> None:
    seen: list[httpx.Request] = []

    async def main():
        client = httpx.AsyncClient(transport=_listing_transport({}, seen))
        fetcher = HttpPageFetcher(client=client)
        try:
            await fetcher.fetch("https://example.test/r/x.json", "boom")
        finally:
            await client.aclose()

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(main())


def test_aclose_is_safe_before_start_and_when_repeated() -> None:
    clock = FakeClock()

    async def main():
        limiter = RateLimitedFetcher(RecordingFetcher(clock), 1.0, clock=clock, sleep=clock.sleep)
        await limiter.aclose()
        await limiter.request("a")
        await limiter.aclose()
        await limiter.aclose()
        return limiter.running, limiter.dispatched

    assert asyncio.run(main()) == (False, 1)

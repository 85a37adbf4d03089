"""Bounded closable channel."""

from __future__ import annotations

import asyncio

import pytest

from babble.pipeline import Channel


def test_items_come_out_in_order() -> None:
    async def main():
        channel: Channel[int] = Channel(4)
        for i in range(3):
            assert await channel.put(i)
        return [await channel.get() for _ in range(3)]

    assert asyncio.run(main()) == [0, 1, 2]


def test_close_drains_buffered_items_before_reporting_end() -> None:
    async def main():
        channel: Channel[str] = Channel(4)
        await channel.put("a")
        await channel.put("b")
        channel.close()
        return [await channel.get() for _ in range(4)], await channel.put("c")

    items, accepted = asyncio.run(main())

    assert items == ["a", "b", None, None]
    assert accepted is False


def test_close_releases_a_producer_blocked_on_a_full_channel() -> None:
    async def main():
        channel: Channel[int] = Channel(1)
        await channel.put(1)
        blocked = asyncio.create_task(channel.put(2))
        await asyncio.sleep(0.01)
        assert not blocked.done()
        channel.close()
        accepted = await asyncio.wait_for(blocked, 1.0)
        return accepted, await channel.get(), await channel.get()

    assert asyncio.run(main()) == (False, 1, None)


def test_close_releases_a_waiting_consumer() -> None:
    async def main():
        channel: Channel[int] = Channel(1)
        waiting = asyncio.create_task(channel.get())
        await asyncio.sleep(0.01)
        channel.close()
        return await asyncio.wait_for(waiting, 1.0)

    assert asyncio.run(main()) is None


def test_blocked_put_completes_once_space_frees() -> None:
    async def main():
        channel: Channel[int] = Channel(1)
        await channel.put(1)
        blocked = asyncio.create_task(channel.put(2))
        await asyncio.sleep(0)
        first = await channel.get()
        accepted = await asyncio.wait_for(blocked, 1.0)
        return first, accepted, await channel.get()

    assert asyncio.run(main()) == (1, True, 2)


def test_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        Channel(0)

"""Pytest fixtures for babble tests."""

from __future__ import annotations

import random

import fakeredis
import pytest

from babble.store import KeyedTransitionStore, MemoryTransitionStore


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    """A fresh in-process Redis server shared by the clients of one test."""
    return fakeredis.FakeServer()


@pytest.fixture
def keyed_store_factory(redis_server):
    """Build keyed stores on the test server; call inside the running loop."""

    def factory(order: int = 2, namespace: str = "", client=None, **kwargs) -> KeyedTransitionStore:
        if client is None:
            client = fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)
        return KeyedTransitionStore(client, order, namespace=namespace, **kwargs)

    return factory


@pytest.fixture
def memory_store() -> MemoryTransitionStore:
    return MemoryTransitionStore(2, rng=random.Random(1234))

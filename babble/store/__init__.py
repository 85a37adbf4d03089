"""Transition stores: one interface, in-memory and Redis-backed variants."""

from babble.store.base import TransitionStore
from babble.store.keyed import (
    DEFAULT_COUNTER_KEY,
    KeyedTransitionStore,
    deserialize_context,
    escape_glob,
    member_token,
    serialize_context,
)
from babble.store.memory import MemoryTransitionStore

# Backend registry mapping config names to store classes
STORE_REGISTRY: dict[str, type[TransitionStore]] = {
    "memory": MemoryTransitionStore,
    "redis": KeyedTransitionStore,
}

__all__ = [
    "TransitionStore",
    "MemoryTransitionStore",
    "KeyedTransitionStore",
    "STORE_REGISTRY",
    "DEFAULT_COUNTER_KEY",
    "serialize_context",
    "deserialize_context",
    "escape_glob",
    "member_token",
]

"""Transition store on top of a Redis keyspace.

Redis has no weighted-multiset sampling, only uniform set sampling. Each
occurrence is therefore stored as its own set member, ``token:<counter>``,
where the counter is a single global integer bumped on every insert. A token
seen k times owns k distinct members, so ``SRANDMEMBER`` draws tokens in
proportion to their counts.

Persisted layout::

    [namespace:]["tok1","tok2"]  ->  SET {"next:17", "next:42", "other:43"}
    <counter_key>                ->  INT  global insertion counter
"""

from __future__ import annotations

import json
import re
from collections import Counter
from typing import Any, Iterable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from babble.models.chain import Context
from babble.store.base import TransitionStore
from babble.utils.errors import StoreError

DEFAULT_COUNTER_KEY = "babble:counter"

# INCR and SADD must run as one unit; two clients reading the same counter
# value would otherwise collapse two occurrences into one member.
INSERT_SCRIPT = """
local added = 0
for i = 1, #ARGV do
    local c = redis.call('INCR', KEYS[2])
    added = added + redis.call('SADD', KEYS[1], ARGV[i] .. ':' .. string.format('%d', c))
end
return added
"""

MEMBER_SEPARATOR = ":"

GLOB_METACHARS = re.compile(r"[\\*?\[\]]")


def serialize_context(context: Context) -> str:
    """Encode a context as a compact JSON array string."""
    return json.dumps(list(context), ensure_ascii=False, separators=(",", ":"))


def deserialize_context(raw: str) -> Optional[Context]:
    """Decode a serialized context, or None if raw is not one."""
    try:
        value = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        return None
    return tuple(value)


def member_token(member: str | bytes) -> str:
    """Strip the ``:<counter>`` suffix from a set member."""
    if isinstance(member, bytes):
        member = member.decode("utf-8")
    token, _, _ = member.rpartition(MEMBER_SEPARATOR)
    return token


def escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters so value matches only itself."""
    return GLOB_METACHARS.sub(r"\\\g<0>", value)


def _text(value: str | bytes) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


class KeyedTransitionStore(TransitionStore):
    """
    Transition store backed by Redis sets and an atomic counter.

    Concurrency safety comes from the server: inserts run as a Lua script,
    so no client-side locking is needed.

    ``sample_any`` draws from the whole keyspace with ``RANDOMKEY``. Keys that
    are not contexts of this store (the counter, other namespaces, unrelated
    data) are redrawn up to ``max_key_draws`` times before reporting the
    store as empty. Sharing a database with many unrelated keys makes that
    an increasingly poor approximation.
    """

    def __init__(
        self,
        client: aioredis.Redis,
        order: int,
        namespace: str = "",
        counter_key: str = DEFAULT_COUNTER_KEY,
        max_key_draws: int = 8,
    ) -> None:
        """
        Initialize the store.

        Args:
            client: Async Redis client
            order: Number of tokens in every context
            namespace: Optional key prefix for this logical store
            counter_key: Key holding the global insertion counter
            max_key_draws: RANDOMKEY attempts made by sample_any
        """
        super().__init__(order)
        if max_key_draws < 1:
            raise ValueError(f"max_key_draws must be at least 1, got {max_key_draws}")
        self.client = client
        self.namespace = namespace
        self.counter_key = counter_key
        self.max_key_draws = max_key_draws
        self._insert_script = client.register_script(INSERT_SCRIPT)

    @classmethod
    def from_url(
        cls,
        url: str,
        order: int,
        namespace: str = "",
        counter_key: str = DEFAULT_COUNTER_KEY,
        max_key_draws: int = 8,
    ) -> "KeyedTransitionStore":
        """Open a store against the Redis server at url."""
        client = aioredis.from_url(url, decode_responses=True)
        return cls(
            client,
            order,
            namespace=namespace,
            counter_key=counter_key,
            max_key_draws=max_key_draws,
        )

    @property
    def backend_name(self) -> str:
        return "redis"

    def key_for(self, context: Context) -> str:
        """Redis key holding the transition set of context."""
        encoded = serialize_context(context)
        if self.namespace:
            return f"{self.namespace}:{encoded}"
        return encoded

    def context_for(self, key: str) -> Optional[Context]:
        """Recover the context from a key, or None if key is not ours."""
        if self.namespace:
            prefix = f"{self.namespace}:"
            if not key.startswith(prefix):
                return None
            key = key[len(prefix):]
        context = deserialize_context(key)
        if context is None or len(context) != self.order:
            return None
        return context

    async def insert(self, context: Context, token: str) -> None:
        await self.insert_batch(context, [token])

    async def insert_batch(self, context: Context, tokens: Iterable[str]) -> None:
        key = self.key_for(self._check(context))
        tokens = list(tokens)
        if not tokens:
            return
        await self._call(
            "insert",
            self._insert_script(keys=[key, self.counter_key], args=tokens),
        )

    async def sample_from(self, context: Context) -> Optional[str]:
        key = self.key_for(self._check(context))
        member = await self._call("sample_from", self.client.srandmember(key))
        if member is None:
            return None
        return member_token(member)

    async def sample_any(self) -> Optional[Context]:
        for attempt in range(self.max_key_draws):
            key = await self._call("sample_any", self.client.randomkey())
            if key is None:
                return None
            context = self.context_for(_text(key))
            if context is not None:
                return context
            self.logger.debug("foreign_key_drawn", key=_text(key), attempt=attempt)
        self.logger.warning(
            "sample_any_exhausted",
            namespace=self.namespace,
            draws=self.max_key_draws,
        )
        return None

    async def weights(self, context: Context) -> dict[str, int]:
        key = self.key_for(self._check(context))
        members = await self._call("weights", self.client.smembers(key))
        return dict(Counter(member_token(m) for m in members))

    async def merge(
        self,
        other: TransitionStore,
        namespace: Optional[str] = None,
    ) -> "KeyedTransitionStore":
        """
        Union two namespaces into a third on the same server.

        Both stores must share a client and counter key, so every member is
        already unique and a set union adds counts.

        Args:
            other: Keyed store to merge with
            namespace: Target namespace (defaults to "<self>+<other>")

        Raises:
            TypeError: If the stores cannot be merged server-side
        """
        self._check_mergeable(other)
        if not isinstance(other, KeyedTransitionStore):
            raise TypeError(f"Cannot merge a keyed store with {type(other).__name__}")
        if other.client is not self.client or other.counter_key != self.counter_key:
            raise TypeError("Keyed stores must share a client and counter key to merge")
        if other.namespace == self.namespace:
            raise TypeError("Keyed stores must use different namespaces to merge")

        target = KeyedTransitionStore(
            self.client,
            self.order,
            namespace=namespace or f"{self.namespace}+{other.namespace}",
            counter_key=self.counter_key,
            max_key_draws=self.max_key_draws,
        )
        copied = 0
        for source in (self, other):
            async for context in source.iter_contexts():
                await self._call(
                    "merge",
                    self.client.sunionstore(
                        target.key_for(context),
                        [target.key_for(context), source.key_for(context)],
                    ),
                )
                copied += 1
        self.logger.info(
            "stores_merged",
            target=target.namespace,
            sources=[self.namespace, other.namespace],
            keys_copied=copied,
        )
        return target

    async def iter_contexts(self):
        """Iterate the contexts stored under this namespace."""
        match = f"{escape_glob(self.namespace)}:*" if self.namespace else "*"
        try:
            async for key in self.client.scan_iter(match=match):
                context = self.context_for(_text(key))
                if context is not None:
                    yield context
        except RedisError as e:
            raise StoreError("scan", str(e)) from e

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _call(self, operation: str, awaitable: Any) -> Any:
        try:
            return await awaitable
        except RedisError as e:
            self.logger.error("store_operation_failed", operation=operation, error=str(e))
            raise StoreError(operation, str(e)) from e

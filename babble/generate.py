"""Token sequence generation from a transition store."""

from __future__ import annotations

from collections import deque
from typing import AsyncIterator, Iterable, Optional

from babble.models.chain import Context, make_context
from babble.store.base import TransitionStore
from babble.text.tokenize import SENTENCE_END
from babble.utils.logging import get_logger

logger = get_logger("generate")

# Tokens written without a space before them
ATTACHED_PUNCTUATION = frozenset({".", ",", "!", "?", ";", ":", ")", "]", "}", "%", "'"})
# Tokens written without a space after them
OPENING_PUNCTUATION = frozenset({"(", "[", "{", "$", "#"})


async def generate(store: TransitionStore, seed: Context) -> AsyncIterator[str]:
    """
    Walk the chain from seed, yielding one sampled token at a time.

    The window slides by one token per step. The sequence ends the first
    time the current context has no recorded transitions; otherwise it is
    unbounded, so callers must cap it (see ``take``).

    Args:
        store: Store to sample from
        seed: Starting context of the store's order

    Yields:
        Generated tokens, not including the seed
    """
    window = deque(make_context(seed, store.order), maxlen=store.order)
    while True:
        token = await store.sample_from(tuple(window))
        if token is None:
            return
        yield token
        window.append(token)


async def take(tokens: AsyncIterator[str], limit: int) -> list[str]:
    """Collect at most limit items from an async iterator."""
    collected: list[str] = []
    if limit <= 0:
        return collected
    async for token in tokens:
        collected.append(token)
        if len(collected) >= limit:
            break
    return collected


def render_tokens(tokens: Iterable[str]) -> str:
    """Join tokens into readable text, attaching punctuation and capitalizing sentences."""
    parts: list[str] = []
    capitalize = True
    glue = True
    for token in tokens:
        word = token.capitalize() if capitalize and token[:1].isalpha() else token
        if parts and not glue and token not in ATTACHED_PUNCTUATION:
            parts.append(" ")
        parts.append(word)
        glue = token in OPENING_PUNCTUATION
        if token in SENTENCE_END:
            capitalize = True
        elif token[:1].isalnum():
            capitalize = False
    return "".join(parts)


async def babble_text(
    store: TransitionStore,
    length: int,
    seed: Optional[Context] = None,
) -> Optional[str]:
    """
    Generate rendered text of up to length tokens after the seed.

    Args:
        store: Store to sample from
        length: Maximum number of generated tokens
        seed: Starting context (a random existing one if omitted)

    Returns:
        Rendered text including the seed, or None if the store is empty
    """
    if seed is None:
        seed = await store.sample_any()
        if seed is None:
            logger.info("store_empty", backend=store.backend_name)
            return None
    tokens = await take(generate(store, seed), length)
    logger.debug("sequence_generated", seed=list(seed), tokens=len(tokens))
    return render_tokens(list(seed) + tokens)

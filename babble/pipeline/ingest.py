"""Concurrent ingestion of documents into a transition store."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from babble.models.chain import Transition
from babble.pipeline.channel import Channel
from babble.pipeline.sources import DocumentSource
from babble.store.base import TransitionStore
from babble.text.extract import extract_transitions
from babble.text.tokenize import normalize
from babble.utils.logging import get_logger, set_stage

logger = get_logger("pipeline.ingest")


@dataclass
class IngestionStats:
    """Counters collected over one pipeline run."""

    documents: int = 0
    emitted: int = 0
    inserted: int = 0
    failed_inserts: int = 0
    producer_errors: dict[str, str] = field(default_factory=dict)
    stopped: bool = False

    @property
    def success(self) -> bool:
        """True when every emitted transition reached the store."""
        return self.failed_inserts == 0 and self.inserted == self.emitted

    def to_dict(self) -> dict[str, Any]:
        return {
            "documents": self.documents,
            "emitted": self.emitted,
            "inserted": self.inserted,
            "failed_inserts": self.failed_inserts,
            "producer_errors": dict(self.producer_errors),
            "stopped": self.stopped,
        }


class IngestionPipeline:
    """
    Fans documents from several sources into one store.

    One producer task per source tokenizes documents, extracts transitions
    and pushes them onto a bounded channel. A single consumer drains the
    channel into the store. A shared liveness flag is checked by every task
    between items; ``stop()`` clears it and closes the channel, after which
    producers exit and the consumer drains what is already buffered.
    """

    def __init__(
        self,
        store: TransitionStore,
        sources: Sequence[DocumentSource],
        channel_size: int = 1024,
        tokenizer: Callable[[str], Sequence[str]] = normalize,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            store: Destination store; its order sets the context length
            sources: Document sources, one producer each
            channel_size: Capacity of the producer/consumer channel
            tokenizer: Function turning a document into tokens
        """
        self.store = store
        self.sources = list(sources)
        self.channel_size = channel_size
        self.tokenizer = tokenizer
        self.stats = IngestionStats()
        self._alive: Optional[asyncio.Event] = None
        self._channel: Optional[Channel[Transition]] = None

    @property
    def alive(self) -> bool:
        return self._alive is not None and self._alive.is_set()

    async def run(self) -> IngestionStats:
        """
        Run all producers and the consumer to completion.

        Returns:
            IngestionStats for this run
        """
        set_stage("ingestion")
        started = time.monotonic()
        self.stats = IngestionStats()
        self._alive = asyncio.Event()
        self._alive.set()
        self._channel = Channel(self.channel_size)

        logger.info(
            "ingestion_started",
            sources=[s.name for s in self.sources],
            order=self.store.order,
            backend=self.store.backend_name,
        )

        consumer = asyncio.create_task(self._consume(self._channel))
        producers = [
            asyncio.create_task(self._produce(source, self._channel))
            for source in self.sources
        ]
        try:
            await asyncio.gather(*producers)
        finally:
            self._channel.close()
            await consumer
            self._alive.clear()

        logger.info(
            "ingestion_completed",
            duration_seconds=round(time.monotonic() - started, 3),
            **self.stats.to_dict(),
        )
        return self.stats

    def stop(self) -> None:
        """Ask all tasks to finish; buffered transitions are still stored."""
        if self._alive is not None:
            self._alive.clear()
        if self._channel is not None:
            self._channel.close()
        self.stats.stopped = True
        logger.info("ingestion_stop_requested")

    async def _produce(self, source: DocumentSource, channel: Channel[Transition]) -> None:
        order = self.store.order
        documents = source.documents()
        try:
            async for document in documents:
                if not self.alive:
                    return
                self.stats.documents += 1
                for transition in extract_transitions(self.tokenizer(document), order):
                    if not self.alive or not await channel.put(transition):
                        return
                    self.stats.emitted += 1
        except Exception as e:
            self.stats.producer_errors[source.name] = str(e)
            logger.error("producer_failed", source=source.name, error=str(e))
        finally:
            await documents.aclose()
            logger.debug("producer_finished", source=source.name)

    async def _consume(self, channel: Channel[Transition]) -> None:
        while True:
            transition = await channel.get()
            if transition is None:
                return
            try:
                await self.store.insert(transition.context, transition.token)
                self.stats.inserted += 1
            except Exception as e:
                self.stats.failed_inserts += 1
                logger.warning(
                    "insert_failed",
                    context=list(transition.context),
                    token=transition.token,
                    error=str(e),
                )

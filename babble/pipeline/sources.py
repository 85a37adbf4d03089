"""Document sources feeding the ingestion pipeline."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Optional, Sequence

from babble.fetcher.limiter import RateLimitedFetcher
from babble.utils.logging import get_logger


class DocumentSource(ABC):
    """
    Abstract base class for document sources.

    A source yields raw document strings. Failures end the sequence rather
    than raising into the pipeline, and are not retried.
    """

    def __init__(self, max_documents: Optional[int] = None) -> None:
        """
        Initialize the source.

        Args:
            max_documents: Stop after this many documents
        """
        self.max_documents = max_documents
        self.logger = get_logger(f"pipeline.sources.{self.name}")

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier for this source, used in logs and stats."""
        ...

    @abstractmethod
    def _documents(self) -> AsyncIterator[str]:
        ...

    async def documents(self) -> AsyncIterator[str]:
        """Yield documents, honoring max_documents."""
        count = 0
        if not self._should_continue(count):
            return
        async for document in self._documents():
            yield document
            count += 1
            if not self._should_continue(count):
                break

    def _should_continue(self, current_count: int) -> bool:
        """Check if iteration should continue based on max_documents."""
        if self.max_documents is None:
            return True
        return current_count < self.max_documents


class StaticDocumentSource(DocumentSource):
    """Yields documents from an in-memory collection."""

    def __init__(
        self,
        documents: Iterable[str],
        label: str = "static",
        max_documents: Optional[int] = None,
    ) -> None:
        self._label = label
        self._items = list(documents)
        super().__init__(max_documents)

    @property
    def name(self) -> str:
        return self._label

    async def _documents(self) -> AsyncIterator[str]:
        for document in self._items:
            yield document


class TextFileSource(DocumentSource):
    """Yields the contents of local text files, one document per file."""

    def __init__(
        self,
        paths: Iterable[Path | str],
        max_documents: Optional[int] = None,
    ) -> None:
        self.paths = [Path(p) for p in paths]
        super().__init__(max_documents)

    @property
    def name(self) -> str:
        return "files"

    async def _documents(self) -> AsyncIterator[str]:
        for path in self.paths:
            try:
                text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except OSError as e:
                self.logger.warning("file_read_failed", path=str(path), error=str(e))
                continue
            yield text


class ListingDocumentSource(DocumentSource):
    """
    Documents from a paginated listing for one topic or category.

    All requests go through the shared RateLimitedFetcher. Each listing item
    contributes the non-empty values of ``text_fields`` as one document. For
    items wrapped as ``{"kind": ..., "data": {...}}`` the inner dict is used.
    """

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        url_template: str,
        category: str,
        text_fields: Sequence[str] = ("title", "selftext", "body"),
        max_documents: Optional[int] = None,
    ) -> None:
        """
        Initialize the source.

        Args:
            fetcher: Shared rate-limited fetcher
            url_template: Listing URL with a ``{category}`` placeholder
            category: Topic or category identifier
            text_fields: Item fields joined into the document text
            max_documents: Stop after this many documents
        """
        self.fetcher = fetcher
        self.category = category
        self.url = url_template.format(category=category)
        self.text_fields = tuple(text_fields)
        super().__init__(max_documents)

    @property
    def name(self) -> str:
        return f"listing:{self.category}"

    async def _documents(self) -> AsyncIterator[str]:
        async for item in self.fetcher.paginate(self.url):
            text = self._item_text(item)
            if text:
                yield text

    def _item_text(self, item: Any) -> str:
        if isinstance(item, str):
            return item
        if not isinstance(item, dict):
            return ""
        data = item.get("data", item)
        if not isinstance(data, dict):
            return ""
        parts = [data.get(field) for field in self.text_fields]
        return "\n".join(p for p in parts if isinstance(p, str) and p.strip())

"""Ingestion pipeline: document sources, channel, producers and consumer."""

from babble.pipeline.channel import Channel
from babble.pipeline.ingest import IngestionPipeline, IngestionStats
from babble.pipeline.sources import (
    DocumentSource,
    ListingDocumentSource,
    StaticDocumentSource,
    TextFileSource,
)

__all__ = [
    "Channel",
    "IngestionPipeline",
    "IngestionStats",
    "DocumentSource",
    "ListingDocumentSource",
    "StaticDocumentSource",
    "TextFileSource",
]

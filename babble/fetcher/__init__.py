"""Rate-limited access to paginated external sources."""

from babble.fetcher.http import DEFAULT_USER_AGENT, HttpPageFetcher
from babble.fetcher.limiter import (
    FetchRequest,
    Page,
    PageFetcher,
    RateLimitedFetcher,
)

__all__ = [
    "Page",
    "PageFetcher",
    "FetchRequest",
    "RateLimitedFetcher",
    "HttpPageFetcher",
    "DEFAULT_USER_AGENT",
]

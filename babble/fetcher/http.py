"""HTTP page fetcher for JSON listing APIs."""

from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx

from babble.fetcher.limiter import Page
from babble.utils.logging import get_logger

logger = get_logger("fetcher.http")

DEFAULT_USER_AGENT = "babble/0.1 (markov chain text generator)"


def dig(data: Any, path: Sequence[str]) -> Any:
    """Follow a key path through nested dicts, returning None if absent."""
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


class HttpPageFetcher:
    """
    Fetches pages of a JSON listing with httpx.

    The continuation cursor is sent as a query parameter and read back from
    the response body. The default paths match listings shaped like
    ``{"data": {"children": [...], "after": "cursor"}}``.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        page_size: Optional[int] = 100,
        cursor_param: str = "after",
        items_path: Sequence[str] = ("data", "children"),
        cursor_path: Sequence[str] = ("data", "after"),
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            client: Existing client to use (one is created if omitted)
            user_agent: User-Agent header for created clients
            timeout: Request timeout in seconds for created clients
            page_size: Value of the ``limit`` query parameter, if any
            cursor_param: Query parameter carrying the cursor
            items_path: Key path to the list of items
            cursor_path: Key path to the next cursor
        """
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            headers={"User-Agent": user_agent},
            timeout=timeout,
            follow_redirects=True,
        )
        self.page_size = page_size
        self.cursor_param = cursor_param
        self.items_path = tuple(items_path)
        self.cursor_path = tuple(cursor_path)

    async def fetch(self, url: str, cursor: Optional[Any]) -> Page:
        """
        Fetch one page.

        Raises:
            httpx.HTTPError: On transport failure or non-2xx status
            ValueError: If the body is not JSON
        """
        params: dict[str, Any] = {}
        if self.page_size is not None:
            params["limit"] = self.page_size
        if cursor is not None:
            params[self.cursor_param] = cursor

        response = await self.client.get(url, params=params)
        response.raise_for_status()
        data = response.json()

        items = dig(data, self.items_path) or []
        next_cursor = dig(data, self.cursor_path) or None
        logger.debug("page_fetched", url=url, items=len(items), next_cursor=next_cursor)
        return Page(items=list(items), next_cursor=next_cursor)

    async def aclose(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self.client.aclose()

# src/enrichment/web_fetcher.py — v2
"""Web page fetching behind an abstract interface.

The gateway only ever sees ``BaseWebFetcher``; tests substitute a fake and
production uses ``RequestsWebFetcher``. Requires the 'requests' package.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "offerscope/0.1 (+institution research)"


class BaseWebFetcher(ABC):
    """Fetch a URL and return the response body as text."""

    @abstractmethod
    async def get(self, url: str, timeout: float) -> str:
        """Return the page body.

        Raises on transport errors, timeouts, and non-2xx responses.
        """

    async def aclose(self) -> None:
        """Release pooled connections, if any."""


class RequestsWebFetcher(BaseWebFetcher):
    """HTTP fetcher on a shared requests.Session, run off the event loop."""

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT) -> None:
        self._user_agent = user_agent
        self._session: Any = None

    def _get_session(self) -> Any:
        """Lazy-init the session."""
        if self._session is None:
            import requests

            self._session = requests.Session()
            self._session.headers.update({"User-Agent": self._user_agent})
        return self._session

    def _get_sync(self, url: str, timeout: float) -> str:
        response = self._get_session().get(url, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
        logger.debug("Fetched %s (%d bytes)", url, len(response.content))
        return response.text

    async def get(self, url: str, timeout: float) -> str:
        return await asyncio.to_thread(self._get_sync, url, timeout)

    async def aclose(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

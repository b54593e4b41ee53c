"""HTTP access to ActivityPub objects and collection pages."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from .config import ThreadConfig
from .errors import ParseError, TransportError


@dataclass
class PageFetcher:
    """Fetch JSON documents from remote servers, one attempt per call.

    When no ``client`` is given an :class:`httpx.AsyncClient` is created on
    first use and closed by :meth:`aclose` (or by leaving the ``async with``
    block). A client passed in by the caller is never closed here.
    """

    config: ThreadConfig = field(default_factory=ThreadConfig)
    client: Optional[httpx.AsyncClient] = None

    def __post_init__(self) -> None:
        self._owns_client = self.client is None
        self._semaphore = asyncio.Semaphore(self.config.max_concurrency)

    async def __aenter__(self) -> "PageFetcher":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=self.config.timeout, follow_redirects=True
            )
        return self.client

    def _build_headers(self) -> Dict[str, str]:
        return {"Accept": self.config.accept, "User-Agent": self.config.user_agent}

    async def aclose(self) -> None:
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None

    async def fetch_page(self, url: str) -> Any:
        """GET ``url`` and return the decoded JSON body.

        Raises :class:`TransportError` when the request fails or the server
        answers with an error status, and :class:`ParseError` when the body is
        not JSON.
        """

        client = self._ensure_client()
        logging.debug("Fetching %s", url)
        try:
            async with self._semaphore:
                response = await client.get(url, headers=self._build_headers())
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"Failed to fetch {url}: {exc}", url=url) from exc
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(f"Invalid JSON from {url}", url=url) from exc


__all__ = ["PageFetcher"]

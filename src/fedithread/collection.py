from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Mapping, Optional, Set

from .errors import InvalidRepliesData
from .events import EventEmitter, PageFetched
from .fetcher import PageFetcher


async def walk_collection(
    fetcher: PageFetcher,
    first_page_url: str,
    *,
    max_pages: Optional[int] = None,
    emitter: Optional[EventEmitter] = None,
) -> AsyncIterator[Any]:
    """Yield the items of a paginated collection, one page after the other.

    Each page must carry an ``items`` list, otherwise
    :class:`~fedithread.errors.InvalidRepliesData` is raised and iteration
    ends. Pagination follows ``next`` until it is missing, not a string, or
    points at a page already read in this walk. ``max_pages`` caps the number
    of pages fetched.
    """

    url = first_page_url
    visited: Set[str] = set()
    while True:
        if max_pages is not None and len(visited) >= max_pages:
            logging.warning(
                "Stopping collection %s after %d pages", first_page_url, len(visited)
            )
            return
        logging.debug("Getting page of replies %s", url)
        page = await fetcher.fetch_page(url)
        visited.add(url)

        items = page.get("items") if isinstance(page, Mapping) else None
        if not isinstance(items, list):
            raise InvalidRepliesData(url)
        if emitter is not None:
            await emitter.emit(PageFetched(url=url, item_count=len(items)))

        for item in items:
            yield item

        next_url = page.get("next")
        if not isinstance(next_url, str):
            break
        if next_url in visited:
            logging.debug("Page %s links back to %s, stopping", url, next_url)
            break
        url = next_url

    logging.debug("No more pages of replies in %s", first_page_url)


__all__ = ["walk_collection"]

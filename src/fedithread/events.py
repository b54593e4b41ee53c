"""Events published while a thread is being loaded.

Handlers subscribe to an event type and are called for every instance emitted.
A handler that raises is logged and skipped; the remaining handlers still run
and the thread load is unaffected.

Example:
    >>> emitter = EventEmitter()
    >>> emitter.subscribe(ReplyMissing, lambda e: print(e.reference))
    >>> emitter.emit_sync(ReplyMissing(parent_id="a", reference="b", error="404"))
    b
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type


@dataclass
class PageFetched:
    """A page of a reply collection was retrieved."""

    url: str
    item_count: int


@dataclass
class ReplyMissing:
    """A reply could not be loaded and was recorded as missing."""

    parent_id: str
    reference: Optional[str]
    error: str


@dataclass
class ThreadLoaded:
    """A whole thread finished loading."""

    root_url: str
    post_count: int


Handler = Callable[[Any], Any]


class EventEmitter:
    def __init__(self) -> None:
        self._subscribers: Dict[Type[Any], List[Handler]] = {}

    def subscribe(self, event_type: Type[Any], handler: Handler) -> None:
        self._subscribers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: Type[Any], handler: Handler) -> None:
        """Remove ``handler``; unknown handlers are ignored."""
        handlers = self._subscribers.get(event_type)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._subscribers[event_type]

    def _log_failure(self, handler: Handler, event: Any) -> None:
        handler_name = getattr(handler, "__name__", repr(handler))
        logging.exception(
            "Error in handler %s for event %s", handler_name, type(event).__name__
        )

    async def emit(self, event: Any) -> None:
        """Call every handler for ``event``, awaiting coroutine handlers."""
        for handler in list(self._subscribers.get(type(event), [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                self._log_failure(handler, event)

    def emit_sync(self, event: Any) -> None:
        """Synchronous counterpart of :meth:`emit` for code outside a loop."""
        loop: Optional[asyncio.AbstractEventLoop] = None
        try:
            for handler in list(self._subscribers.get(type(event), [])):
                try:
                    result = handler(event)
                    if inspect.isawaitable(result):
                        if loop is None:
                            loop = asyncio.new_event_loop()
                        loop.run_until_complete(result)
                except Exception:  # noqa: BLE001
                    self._log_failure(handler, event)
        finally:
            if loop is not None:
                loop.close()


event_emitter = EventEmitter()

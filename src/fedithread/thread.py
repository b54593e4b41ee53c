"""Reconstruct a reply tree by following ActivityPub reply collections.

:func:`load_thread` fetches the root post, walks the pages of its
``replies`` collection and resolves every item it finds:

* a bare string is a reference to a post that is loaded like a root post of
  its own (it must expose a reply collection too);
* an object is an inline post, decoded directly and descended into when it
  carries its own ``replies.first.next`` link;
* anything else is recorded as missing.

A reply that fails to load for any reason becomes :class:`Missing` at its
position among its siblings. Only failures on the root post or on the root's
own reply pages reach the caller.

Items of one collection are resolved concurrently while pagination goes on;
outcomes are attached in the order the collection listed them. Once the whole
tree is built, posts whose ``inReplyTo`` names another post of the tree are
moved under that post, so servers that mix several branches in one collection
still produce the right shape. Each post id is loaded at most once per call:
the first occurrence wins and later ones are dropped. When a reply fails, the
ids and URLs claimed for it and for everything below it are released, so a
later occurrence elsewhere in the thread is loaded normally.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from .config import ThreadConfig
from .collection import walk_collection
from .errors import DecodeError, MissingRepliesLink, ThreadError
from .events import EventEmitter, ReplyMissing, ThreadLoaded, event_emitter
from .fetcher import PageFetcher
from .models import (
    Missing,
    RemotePost,
    ReplyOutcome,
    Resolved,
    SanitizedPost,
    ThreadNode,
    decode_post,
)


class ThreadBuilder:
    """State of one :func:`load_thread` call.

    ``nodes`` is the identity map from post id to the node holding it. It only
    lives as long as the builder.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        config: ThreadConfig,
        emitter: EventEmitter,
    ) -> None:
        self.fetcher = fetcher
        self.config = config
        self.emitter = emitter
        self.nodes: Dict[str, ThreadNode] = {}
        # URLs and ids already loaded or in flight
        self._claimed: Set[str] = set()

    async def build(self, root_url: str) -> ThreadNode:
        logging.info("Getting post %s", root_url)
        root = await self._load_reference(root_url, [])
        if root is None:  # pragma: no cover - the identity map starts empty
            raise ThreadError(f"Post {root_url} was already loaded")
        self._reattach(root)
        post_count = root.count()
        logging.info("Done getting post %s (%d posts)", root_url, post_count)
        await self.emitter.emit(ThreadLoaded(root_url=root_url, post_count=post_count))
        return root

    def _claim(self, key: str, claims: List[str]) -> None:
        self._claimed.add(key)
        claims.append(key)

    def _release(self, claims: List[str]) -> None:
        """Undo every claim and registration made for a failed reply."""
        for key in claims:
            self._claimed.discard(key)
            self.nodes.pop(key, None)

    async def _load_reference(
        self, url: str, claims: List[str]
    ) -> Optional[ThreadNode]:
        self._claim(url, claims)
        data = await self.fetcher.fetch_page(url)
        remote = decode_post(data)
        if remote.id != url and remote.id in self._claimed:
            logging.debug("Skipping %s, post %s is already loaded", url, remote.id)
            return None
        return await self._build_node(remote, claims, source_url=url)

    async def _build_node(
        self,
        remote: RemotePost,
        claims: List[str],
        *,
        source_url: Optional[str] = None,
    ) -> ThreadNode:
        """Sanitize ``remote``, register it and load its replies.

        Every URL and id claimed on the way, descendants included, is
        appended to ``claims``. ``source_url`` is set for posts fetched on
        their own, which must link to a reply collection.
        """
        self._claim(remote.id, claims)
        node = ThreadNode(SanitizedPost.from_remote(remote))
        if remote.replies_url is None and source_url is not None:
            raise MissingRepliesLink(source_url)
        self.nodes[remote.id] = node
        if remote.replies_url is not None:
            await self._load_replies(node, remote.replies_url, claims)
        return node

    async def _load_replies(
        self, node: ThreadNode, first_page_url: str, claims: List[str]
    ) -> None:
        tasks: List[asyncio.Task] = []
        try:
            async for item in walk_collection(
                self.fetcher,
                first_page_url,
                max_pages=self.config.max_pages,
                emitter=self.emitter,
            ):
                tasks.append(
                    asyncio.create_task(self._resolve_item(node, item, claims))
                )
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for outcome in await asyncio.gather(*tasks):
            if outcome is not None:
                node.replies.append(outcome)

    async def _resolve_item(
        self, parent: ThreadNode, item: Any, claims: List[str]
    ) -> Optional[ReplyOutcome]:
        """Turn one collection item into an outcome, ``None`` for duplicates.

        Claims made for the item are handed to ``claims`` unless the item
        fails, in which case they are released so the post can still be
        loaded from another place in the thread.
        """

        owned: List[str] = []
        reference: Optional[str] = None
        try:
            if isinstance(item, str):
                if item in self._claimed:
                    logging.debug("Skipping duplicate reference %s", item)
                    return None
                reference = item
                node = await self._load_reference(item, owned)
            elif isinstance(item, Mapping):
                reference = item.get("id") if isinstance(item.get("id"), str) else None
                remote = decode_post(item)
                if remote.id in self._claimed:
                    logging.debug("Skipping duplicate post %s", remote.id)
                    return None
                node = await self._build_node(remote, owned)
            else:
                return await self._missing(
                    parent,
                    None,
                    DecodeError(
                        f"Malformed post: unexpected {type(item).__name__} item"
                    ),
                )
        except ThreadError as exc:
            self._release(owned)
            return await self._missing(parent, reference, exc)
        except BaseException:
            # cancelled with a failing ancestor, which releases these
            claims.extend(owned)
            raise
        claims.extend(owned)
        return None if node is None else Resolved(node)

    async def _missing(
        self, parent: ThreadNode, reference: Optional[str], exc: Exception
    ) -> Missing:
        logging.warning(
            "Reply %s to %s could not be loaded: %s",
            reference or "<inline>",
            parent.post.id,
            exc,
        )
        await self.emitter.emit(
            ReplyMissing(parent_id=parent.post.id, reference=reference, error=str(exc))
        )
        return Missing(reference=reference, reason=str(exc))

    def _reattach(self, root: ThreadNode) -> None:
        """Move posts under the node named by their ``inReplyTo``."""

        moves: List[Tuple[ThreadNode, ThreadNode, ThreadNode]] = []
        stack = [root]
        while stack:
            parent = stack.pop()
            children = list(parent.resolved())
            for child in children:
                target_id = child.post.in_reply_to
                if target_id is not None and target_id != parent.post.id:
                    target = self.nodes.get(target_id)
                    if target is not None:
                        moves.append((parent, child, target))
            stack.extend(reversed(children))

        for parent, child, target in moves:
            if child.contains(target):
                continue
            logging.debug(
                "Moving %s from %s to %s", child.post.id, parent.post.id, target.post.id
            )
            parent.replies = [
                r
                for r in parent.replies
                if not (isinstance(r, Resolved) and r.node is child)
            ]
            target.replies.append(Resolved(child))


async def load_thread(
    root_url: str,
    *,
    fetcher: Optional[PageFetcher] = None,
    config: Optional[ThreadConfig] = None,
    emitter: Optional[EventEmitter] = None,
) -> ThreadNode:
    """Load the thread rooted at ``root_url``.

    Raises :class:`~fedithread.errors.ThreadError` when the root post cannot be
    fetched, decoded or sanitized, when it has no reply collection
    (:class:`~fedithread.errors.MissingRepliesLink`), or when one of its own
    reply pages is unusable.
    """

    if config is None:
        config = fetcher.config if fetcher is not None else ThreadConfig.from_env()
    if emitter is None:
        emitter = event_emitter

    if fetcher is not None:
        return await ThreadBuilder(fetcher, config=config, emitter=emitter).build(
            root_url
        )
    async with PageFetcher(config=config) as owned:
        return await ThreadBuilder(owned, config=config, emitter=emitter).build(
            root_url
        )


def load_thread_sync(
    root_url: str,
    *,
    config: Optional[ThreadConfig] = None,
    emitter: Optional[EventEmitter] = None,
) -> ThreadNode:
    """Blocking wrapper around :func:`load_thread` for code outside a loop."""

    return asyncio.run(load_thread(root_url, config=config, emitter=emitter))


__all__ = ["ThreadBuilder", "load_thread", "load_thread_sync"]

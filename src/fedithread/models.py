from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import DecodeError
from .html_sanitizer import sanitize


@dataclass(frozen=True)
class RemotePost:
    """A post as published by the remote server, content still untrusted."""

    id: str
    author: str
    content: str
    published: Optional[str] = None
    in_reply_to: Optional[str] = None
    url: Optional[str] = None
    summary: Optional[str] = None
    replies_url: Optional[str] = None


@dataclass(frozen=True)
class SanitizedPost:
    """A :class:`RemotePost` whose content went through :func:`sanitize`."""

    id: str
    author: str
    safe_content: str
    published: Optional[str] = None
    in_reply_to: Optional[str] = None
    url: Optional[str] = None
    summary: Optional[str] = None

    @classmethod
    def from_remote(cls, post: RemotePost) -> "SanitizedPost":
        return cls(
            id=post.id,
            author=post.author,
            safe_content=sanitize(post.content),
            published=post.published,
            in_reply_to=post.in_reply_to,
            url=post.url,
            summary=post.summary,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author,
            "content": self.safe_content,
            "published": self.published,
            "in_reply_to": self.in_reply_to,
            "url": self.url,
            "summary": self.summary,
        }


@dataclass
class ThreadNode:
    """One post and the outcome of every reply discovered for it.

    Threads can be far deeper than the interpreter's recursion limit, so every
    traversal below keeps its own stack.
    """

    post: SanitizedPost
    replies: List["ReplyOutcome"] = field(default_factory=list)

    def resolved(self) -> Iterator["ThreadNode"]:
        for reply in self.replies:
            if isinstance(reply, Resolved):
                yield reply.node

    def iter_nodes(self) -> Iterator["ThreadNode"]:
        """Yield this node and every resolved node below it, depth first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(list(node.resolved())))

    def iter_posts(self) -> Iterator[SanitizedPost]:
        for node in self.iter_nodes():
            yield node.post

    def walk(self) -> Iterator[Tuple[int, "ReplyOutcome"]]:
        """Yield ``(depth, outcome)`` for every reply below this node.

        Replies come in display order: each one is followed by its own
        replies before its next sibling. Direct replies have depth 1.
        """
        stack = [(1, reply) for reply in reversed(self.replies)]
        while stack:
            depth, reply = stack.pop()
            yield depth, reply
            if isinstance(reply, Resolved):
                stack.extend((depth + 1, r) for r in reversed(reply.node.replies))

    def contains(self, other: "ThreadNode") -> bool:
        return any(node is other for node in self.iter_nodes())

    def count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"post": self.post.to_dict(), "replies": []}
        stack = [(self, data["replies"])]
        while stack:
            node, out = stack.pop()
            for reply in node.replies:
                if isinstance(reply, Resolved):
                    entry = {
                        "status": "resolved",
                        "post": reply.node.post.to_dict(),
                        "replies": [],
                    }
                    stack.append((reply.node, entry["replies"]))
                    out.append(entry)
                else:
                    out.append(reply.to_dict())
        return data


@dataclass
class Resolved:
    node: ThreadNode

    def to_dict(self) -> Dict[str, Any]:
        return {"status": "resolved", **self.node.to_dict()}


@dataclass
class Missing:
    """A reply that existed on the remote side but could not be loaded."""

    reference: Optional[str] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"status": "missing", "reference": self.reference, "reason": self.reason}


ReplyOutcome = Union[Resolved, Missing]


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _required_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise DecodeError(f"Malformed post: {key!r} must be a string")
    return value


def replies_link(data: Any) -> Optional[str]:
    """Return ``replies.first.next`` of an ActivityPub object if it is a string."""

    node = data
    for key in ("replies", "first", "next"):
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node if isinstance(node, str) else None


def decode_post(data: Any) -> RemotePost:
    """Decode an ActivityPub ``Note`` object into a :class:`RemotePost`.

    ``id``, ``attributedTo`` and ``content`` are required strings. Optional
    fields of the wrong shape are treated as absent.
    """

    if not isinstance(data, Mapping):
        raise DecodeError("Malformed post: expected a JSON object")
    post_id = _required_str(data, "id")
    if not post_id:
        raise DecodeError("Malformed post: 'id' is empty")
    return RemotePost(
        id=post_id,
        author=_required_str(data, "attributedTo"),
        content=_required_str(data, "content"),
        published=_optional_str(data, "published"),
        in_reply_to=_optional_str(data, "inReplyTo"),
        url=_optional_str(data, "url"),
        summary=_optional_str(data, "summary"),
        replies_url=replies_link(data),
    )


__all__ = [
    "RemotePost",
    "SanitizedPost",
    "ThreadNode",
    "Resolved",
    "Missing",
    "ReplyOutcome",
    "decode_post",
    "replies_link",
]

import os
import sys
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_DIR = os.path.join(ROOT_DIR, "src")
if os.path.isdir(SRC_DIR) and SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from fedithread.config import ThreadConfig  # noqa: E402
from fedithread.fetcher import PageFetcher  # noqa: E402

AUTHOR = "https://a.example/users/alice"


class FakeServer:
    """Serve canned documents keyed by URL; unknown URLs answer 404."""

    def __init__(self) -> None:
        self.documents: Dict[str, Tuple[int, Any]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, body: Any, status: int = 200) -> None:
        self.documents[url] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url not in self.documents:
            return httpx.Response(404, json={"error": "Record not found"})
        status, body = self.documents[url]
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def requested(self, url: str) -> int:
        return sum(1 for r in self.requests if str(r.url) == url)

    def fetcher(self, **config: Any) -> PageFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return PageFetcher(config=ThreadConfig(**config), client=client)


def make_note(
    note_id: str,
    *,
    content: str = "<p>hello</p>",
    replies: Optional[str] = None,
    in_reply_to: Optional[str] = None,
    author: str = AUTHOR,
) -> Dict[str, Any]:
    note: Dict[str, Any] = {
        "id": note_id,
        "type": "Note",
        "attributedTo": author,
        "content": content,
        "published": "2023-05-01T12:00:00Z",
    }
    if in_reply_to is not None:
        note["inReplyTo"] = in_reply_to
    if replies is not None:
        note["replies"] = {
            "id": note_id + "/replies",
            "type": "Collection",
            "first": {"type": "CollectionPage", "next": replies, "items": []},
        }
    return note


def make_page(items: List[Any], next_url: Optional[str] = None) -> Dict[str, Any]:
    page: Dict[str, Any] = {"type": "CollectionPage", "items": items}
    if next_url is not None:
        page["next"] = next_url
    return page


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def note():
    return make_note


@pytest.fixture
def page():
    return make_page

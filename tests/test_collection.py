import asyncio

import pytest

from fedithread.collection import walk_collection
from fedithread.errors import InvalidRepliesData, TransportError
from fedithread.events import EventEmitter, PageFetched

PAGE_1 = "https://a.example/notes/1/replies?page=true"
PAGE_2 = "https://a.example/notes/1/replies?page=2"


def _collect(fetcher, url, **kwargs):
    async def run():
        return [item async for item in walk_collection(fetcher, url, **kwargs)]

    return asyncio.run(run())


def test_walk_follows_next_and_stops_on_loop(server, note, page):
    server.add(PAGE_1, page([note("a"), note("b")], next_url=PAGE_2))
    server.add(PAGE_2, page(["https://b.example/notes/c"], next_url=PAGE_1))

    items = _collect(server.fetcher(), PAGE_1)

    assert [i if isinstance(i, str) else i["id"] for i in items] == [
        "a",
        "b",
        "https://b.example/notes/c",
    ]
    assert server.requested(PAGE_1) == 1
    assert server.requested(PAGE_2) == 1


def test_walk_stops_on_self_referential_next(server, page):
    server.add(PAGE_1, page(["x"], next_url=PAGE_1))

    assert _collect(server.fetcher(), PAGE_1) == ["x"]
    assert server.requested(PAGE_1) == 1


@pytest.mark.parametrize("next_url", [None, 5, {"href": PAGE_2}])
def test_walk_stops_without_string_next(server, page, next_url):
    body = page(["x"])
    if next_url is not None:
        body["next"] = next_url
    server.add(PAGE_1, body)

    assert _collect(server.fetcher(), PAGE_1) == ["x"]
    assert len(server.requests) == 1


def test_empty_page_still_follows_next(server, page):
    server.add(PAGE_1, page([], next_url=PAGE_2))
    server.add(PAGE_2, page(["y"]))

    assert _collect(server.fetcher(), PAGE_1) == ["y"]


def test_page_without_items_fails_after_earlier_items(server, page):
    server.add(PAGE_1, page(["x"], next_url=PAGE_2))
    server.add(PAGE_2, {"type": "CollectionPage", "items": "nope"})
    seen = []

    async def run():
        async for item in walk_collection(server.fetcher(), PAGE_1):
            seen.append(item)

    with pytest.raises(InvalidRepliesData) as excinfo:
        asyncio.run(run())

    assert seen == ["x"]
    assert excinfo.value.url == PAGE_2
    assert str(excinfo.value) == "Invalid replies data"


def test_non_object_page_is_invalid(server):
    server.add(PAGE_1, ["x"])

    with pytest.raises(InvalidRepliesData):
        _collect(server.fetcher(), PAGE_1)


def test_fetch_failure_propagates(server):
    with pytest.raises(TransportError):
        _collect(server.fetcher(), PAGE_1)


def test_max_pages_caps_the_walk(server, page, caplog):
    server.add(PAGE_1, page(["x"], next_url=PAGE_2))
    server.add(PAGE_2, page(["y"]))

    with caplog.at_level("WARNING"):
        items = _collect(server.fetcher(), PAGE_1, max_pages=1)

    assert items == ["x"]
    assert server.requested(PAGE_2) == 0
    assert "after 1 pages" in caplog.text


def test_page_events_are_emitted(server, page):
    server.add(PAGE_1, page(["x", "y"], next_url=PAGE_2))
    server.add(PAGE_2, page([]))
    emitter = EventEmitter()
    received = []
    emitter.subscribe(PageFetched, received.append)

    _collect(server.fetcher(), PAGE_1, emitter=emitter)

    assert received == [
        PageFetched(url=PAGE_1, item_count=2),
        PageFetched(url=PAGE_2, item_count=0),
    ]

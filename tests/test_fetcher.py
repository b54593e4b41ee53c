import asyncio

import httpx
import pytest

from fedithread.config import ThreadConfig
from fedithread.errors import ParseError, ThreadError, TransportError
from fedithread.fetcher import PageFetcher

URL = "https://a.example/notes/1"


def test_fetch_page_sends_json_accept_header(server):
    server.add(URL, {"id": URL})
    fetcher = server.fetcher(user_agent="tests/1.0")

    data = asyncio.run(fetcher.fetch_page(URL))

    assert data == {"id": URL}
    request = server.requests[0]
    assert request.method == "GET"
    assert request.headers["Accept"] == "application/json"
    assert request.headers["User-Agent"] == "tests/1.0"
    assert request.content == b""


def test_fetch_page_custom_accept(server):
    server.add(URL, {"id": URL})
    fetcher = server.fetcher(accept="application/activity+json")

    asyncio.run(fetcher.fetch_page(URL))

    assert server.requests[0].headers["Accept"] == "application/activity+json"


def test_fetch_page_error_status_is_transport_error(server):
    fetcher = server.fetcher()

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(fetcher.fetch_page(URL))

    assert excinfo.value.url == URL
    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)


def test_fetch_page_network_error_is_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fetcher = PageFetcher(client=client)

    with pytest.raises(TransportError):
        asyncio.run(fetcher.fetch_page(URL))


def test_fetch_page_does_not_retry(server):
    server.add(URL, {"error": "busy"}, status=503)
    fetcher = server.fetcher()

    with pytest.raises(TransportError):
        asyncio.run(fetcher.fetch_page(URL))

    assert server.requested(URL) == 1


def test_fetch_page_invalid_json_is_parse_error(server):
    server.add(URL, "<html>not json</html>")
    fetcher = server.fetcher()

    with pytest.raises(ParseError) as excinfo:
        asyncio.run(fetcher.fetch_page(URL))

    assert excinfo.value.url == URL
    assert isinstance(excinfo.value, ThreadError)


def test_owned_client_is_created_and_closed(monkeypatch, server):
    server.add(URL, {"id": URL})
    created = []
    original_async_client = httpx.AsyncClient

    def fake_client(*args, **kwargs):
        client = original_async_client(transport=httpx.MockTransport(server.handler))
        created.append((kwargs, client))
        return client

    monkeypatch.setattr(httpx, "AsyncClient", fake_client)

    async def run():
        async with PageFetcher(config=ThreadConfig(timeout=2.5)) as fetcher:
            return await fetcher.fetch_page(URL)

    assert asyncio.run(run()) == {"id": URL}
    assert len(created) == 1
    kwargs, client = created[0]
    assert kwargs["timeout"] == 2.5
    assert client.is_closed


def test_borrowed_client_is_left_open(server):
    client = httpx.AsyncClient(transport=httpx.MockTransport(server.handler))

    async def run():
        async with PageFetcher(client=client):
            pass

    asyncio.run(run())
    assert not client.is_closed


def test_max_concurrency_bounds_requests():
    in_flight = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return httpx.Response(200, json={})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fetcher = PageFetcher(config=ThreadConfig(max_concurrency=2), client=client)

    async def run():
        await asyncio.gather(
            *(fetcher.fetch_page(f"https://a.example/{i}") for i in range(6))
        )

    asyncio.run(run())
    assert peak == 2

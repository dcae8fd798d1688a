from __future__ import annotations

import asyncio

import httpx
import pytest

from pagestreamer.core.cdn import AssetFetcher, AssetKind
from pagestreamer.core.errors import (
    ContentTypeMismatch,
    FetchTimeout,
    HttpStatusError,
    NetworkError,
)

CSS_URL = "https://cdn.example.com/v1/pdf-viewer.css"


def _fetch(handler, url: str = CSS_URL, kind: AssetKind = AssetKind.STYLE):
    fetcher = AssetFetcher(transport=httpx.MockTransport(handler))
    return asyncio.run(fetcher.fetch(url, kind, timeout_s=5.0))


def test_fetch_returns_text_and_sends_loader_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, content=b".viewer { color: red; }", headers={"content-type": "text/css"}
        )

    fetched = _fetch(handler)

    assert fetched.content == ".viewer { color: red; }"
    assert fetched.status_code == 200
    assert fetched.content_type == "text/css"
    assert seen[0].headers["accept"] == "text/css"
    assert seen[0].headers["cache-control"] == "no-cache"


def test_fetch_accepts_missing_content_type() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"window.x = 1;")

    fetched = _fetch(handler, "https://cdn.example.com/v1/pdf-viewer.js", AssetKind.BEHAVIOR)
    assert fetched.content == "window.x = 1;"


def test_fetch_classifies_http_status_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, content=b"missing")

    with pytest.raises(HttpStatusError) as excinfo:
        _fetch(handler)
    assert excinfo.value.status_code == 404
    assert excinfo.value.url == CSS_URL


def test_fetch_rejects_error_page_served_with_200() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=b"<html>Service unavailable</html>",
            headers={"content-type": "text/html; charset=utf-8"},
        )

    with pytest.raises(ContentTypeMismatch) as excinfo:
        _fetch(handler)
    assert excinfo.value.expected == "text/css"
    assert excinfo.value.actual.startswith("text/html")


def test_fetch_maps_timeouts_and_transport_faults() -> None:
    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchTimeout) as excinfo:
        _fetch(slow)
    assert excinfo.value.timeout_s == 5.0

    with pytest.raises(NetworkError):
        _fetch(refused)


class _TrackedStream(httpx.AsyncByteStream):
    def __init__(self, body: bytes = b"", stall_s: float = 0.0) -> None:
        self.body = body
        self.stall_s = stall_s
        self.closed = False

    async def __aiter__(self):
        if self.stall_s:
            await asyncio.sleep(self.stall_s)
        yield self.body

    async def aclose(self) -> None:
        self.closed = True


def test_fetch_releases_connection_on_every_exit_path() -> None:
    cases = [
        (200, {"content-type": "text/css"}, _TrackedStream(b".a {}"), None),
        (503, {"content-type": "text/css"}, _TrackedStream(b"busy"), HttpStatusError),
        (200, {"content-type": "text/html"}, _TrackedStream(b"<html>"), ContentTypeMismatch),
        (200, {"content-type": "text/css"}, _TrackedStream(b".a {}", stall_s=5.0), FetchTimeout),
    ]
    for status, headers, stream, expected in cases:

        def handler(request: httpx.Request, status=status, headers=headers, stream=stream):
            return httpx.Response(status, headers=headers, stream=stream)

        fetcher = AssetFetcher(transport=httpx.MockTransport(handler))
        if expected is None:
            fetched = asyncio.run(fetcher.fetch(CSS_URL, AssetKind.STYLE, timeout_s=0.2))
            assert fetched.content == ".a {}"
        else:
            with pytest.raises(expected):
                asyncio.run(fetcher.fetch(CSS_URL, AssetKind.STYLE, timeout_s=0.2))
        assert stream.closed, f"stream left open for {status} {headers}"


def test_slow_body_is_cut_off_at_the_attempt_deadline(monkeypatch) -> None:
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)

    async def _trickle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await reader.readuntil(b"\r\n\r\n")
        writer.write(
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: text/css\r\n"
            b"Content-Length: 8\r\n"
            b"\r\n"
        )
        try:
            for _ in range(8):
                await writer.drain()
                await asyncio.sleep(0.3)
                writer.write(b"a")
        except ConnectionError:
            pass
        finally:
            writer.close()

    async def _run() -> float:
        server = await asyncio.start_server(_trickle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            with pytest.raises(FetchTimeout) as excinfo:
                await AssetFetcher().fetch(
                    f"http://127.0.0.1:{port}/pdf-viewer.css", AssetKind.STYLE, timeout_s=0.5
                )
            assert excinfo.value.timeout_s == 0.5
        finally:
            server.close()
        return loop.time() - started

    assert asyncio.run(_run()) < 1.5

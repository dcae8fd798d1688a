from __future__ import annotations

import asyncio

import httpx
import pytest

from pagestreamer.core.cdn import (
    AssetFetcher,
    AssetKind,
    LoadConfiguration,
    RetryingAssetLoader,
)
from pagestreamer.core.errors import AssetLoadFailure, HttpStatusError


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _loader(config: LoadConfiguration, handler, sleep: _RecordingSleep):
    fetcher = AssetFetcher(transport=httpx.MockTransport(handler))
    return RetryingAssetLoader(config, fetcher=fetcher, sleep=sleep)


def test_primary_retries_then_single_fallback_attempt() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if request.url.host == "cdn.example.com":
            return httpx.Response(503, content=b"busy")
        return httpx.Response(200, content=b"body{}", headers={"content-type": "text/css"})

    config = LoadConfiguration(
        base_url="https://cdn.example.com",
        version_tag="v1",
        fallback_base_urls=("https://backup.example.com", "https://never.example.com"),
        max_attempts=3,
        retry_delay_s=0.5,
    )
    sleep = _RecordingSleep()

    result = asyncio.run(_loader(config, handler, sleep).load("pdf-viewer.css", AssetKind.STYLE))

    assert requested == [
        "https://cdn.example.com/v1/pdf-viewer.css",
        "https://cdn.example.com/v1/pdf-viewer.css",
        "https://cdn.example.com/v1/pdf-viewer.css",
        "https://backup.example.com/v1/pdf-viewer.css",
    ]
    assert result.attempts == 4
    assert result.from_fallback
    assert result.url == "https://backup.example.com/v1/pdf-viewer.css"
    assert result.content == "body{}"
    assert sleep.delays == [0.5, 1.0]


def test_single_attempt_without_fallbacks_fails_once() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(500, content=b"oops")

    config = LoadConfiguration(
        base_url="https://cdn.example.com", max_attempts=1, retry_delay_s=1.0
    )
    sleep = _RecordingSleep()

    with pytest.raises(AssetLoadFailure) as excinfo:
        asyncio.run(_loader(config, handler, sleep).load("pdf-viewer.js", AssetKind.BEHAVIOR))

    failure = excinfo.value
    assert calls["count"] == 1
    assert failure.asset_name == "pdf-viewer.js"
    assert failure.attempt_count == 1
    assert failure.fallback_count == 0
    assert isinstance(failure.last_cause, HttpStatusError)
    assert failure.recoverable
    assert sleep.delays == []


def test_primary_success_short_circuits_fallbacks() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if len(requested) == 1:
            raise httpx.ConnectError("reset", request=request)
        return httpx.Response(
            200, content=b"window.v = 1;", headers={"content-type": "application/javascript"}
        )

    config = LoadConfiguration(
        base_url="https://cdn.example.com",
        version_tag="dev",
        fallback_base_urls=("https://backup.example.com",),
        max_attempts=3,
        retry_delay_s=2.0,
    )
    sleep = _RecordingSleep()

    result = asyncio.run(_loader(config, handler, sleep).load("pdf-viewer.js", AssetKind.BEHAVIOR))

    assert requested == ["https://cdn.example.com/pdf-viewer.js"] * 2
    assert result.attempts == 2
    assert not result.from_fallback
    assert sleep.delays == [2.0]


def test_every_source_failing_keeps_last_cause() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "backup.example.com":
            return httpx.Response(200, content=b"<html/>", headers={"content-type": "text/html"})
        return httpx.Response(502, content=b"bad gateway")

    config = LoadConfiguration(
        base_url="https://cdn.example.com",
        fallback_base_urls=("https://backup.example.com",),
        max_attempts=2,
        retry_delay_s=0.25,
    )
    sleep = _RecordingSleep()

    with pytest.raises(AssetLoadFailure) as excinfo:
        asyncio.run(_loader(config, handler, sleep).load("pdf-viewer.css", AssetKind.STYLE))

    assert excinfo.value.attempt_count == 2
    assert excinfo.value.fallback_count == 1
    assert excinfo.value.last_cause.code == "CONTENT_TYPE_MISMATCH"
    assert sleep.delays == [0.25]

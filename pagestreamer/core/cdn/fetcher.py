from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx

from pagestreamer.core.errors import (
    ContentTypeMismatch,
    FetchTimeout,
    HttpStatusError,
    NetworkError,
)
from pagestreamer.utils.logger import logger

from .config import AssetKind


@dataclass(frozen=True)
class FetchedAsset:
    url: str
    content: str
    status_code: int
    content_type: Optional[str] = None


class AssetFetcher:
    """Fetch one text asset with a hard timeout and content-type validation."""

    USER_AGENT = "pagestreamer/1.0"

    def __init__(
        self,
        *,
        default_timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.default_timeout_s = float(default_timeout_s)
        self._transport = transport

    def _client(self, timeout_s: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=5,
            timeout=timeout_s,
            transport=self._transport,
        )

    async def fetch(
        self, url: str, kind: AssetKind, *, timeout_s: Optional[float] = None
    ) -> FetchedAsset:
        timeout = float(timeout_s if timeout_s is not None else self.default_timeout_s)
        try:
            # httpx limits each connect/read step; the whole attempt shares one deadline.
            fetched = await asyncio.wait_for(self._fetch_once(url, kind, timeout), timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise FetchTimeout(url, timeout) from exc
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            raise NetworkError(f"Network error: {exc}", url) from exc
        logger.debug(
            "Fetched %s (%d chars, %s)", url, len(fetched.content), fetched.content_type
        )
        return fetched

    async def _fetch_once(self, url: str, kind: AssetKind, timeout: float) -> FetchedAsset:
        headers = {
            "Accept": kind.content_type,
            "Cache-Control": "no-cache",
            "User-Agent": self.USER_AGENT,
        }
        async with self._client(timeout) as client:
            async with client.stream("GET", url, headers=headers) as response:
                status = int(response.status_code)
                if not 200 <= status < 300:
                    raise HttpStatusError(url, status, response.reason_phrase)
                content_type = response.headers.get("content-type")
                if not kind.accepts(content_type):
                    raise ContentTypeMismatch(url, kind.content_type, content_type)
                await response.aread()
                return FetchedAsset(
                    url=url,
                    content=response.text,
                    status_code=status,
                    content_type=content_type,
                )

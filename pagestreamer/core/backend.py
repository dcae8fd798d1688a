from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from pagestreamer.core.errors import (
    AssetFetchError,
    FetchTimeout,
    HttpStatusError,
    NetworkError,
)
from pagestreamer.utils.logger import logger


@dataclass(frozen=True)
class DocumentInfo:
    doc_id: str
    page_count: int
    title: Optional[str] = None

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict[str, Any]) -> "DocumentInfo":
        raw_count = data.get("pageCount", data.get("page_count", 0))
        try:
            page_count = max(0, int(raw_count))
        except (TypeError, ValueError):
            page_count = 0
        title = data.get("title")
        return cls(
            doc_id=doc_id,
            page_count=page_count,
            title=str(title) if title is not None else None,
        )


class BackendClient:
    """Client for the page-streaming backend.

    Only two endpoints are used: ``{base}/{doc_id}/info`` for metadata and
    ``{base}/{doc_id}/page/{n}`` for page image bytes.
    """

    USER_AGENT = "pagestreamer/0.1"

    def __init__(
        self,
        backend_url: str,
        *,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.backend_url = str(backend_url).rstrip("/")
        self.timeout_s = float(timeout_s)
        self._transport = transport

    def info_url(self, doc_id: str) -> str:
        return f"{self.backend_url}/{doc_id}/info"

    def page_url(self, doc_id: str, page_number: int) -> str:
        return f"{self.backend_url}/{doc_id}/page/{int(page_number)}"

    async def _get(self, url: str, accept: str) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                max_redirects=5,
                timeout=self.timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    url, headers={"User-Agent": self.USER_AGENT, "Accept": accept}
                )
        except httpx.TimeoutException as exc:
            raise FetchTimeout(url, self.timeout_s) from exc
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            raise NetworkError(f"Network error: {exc}", url) from exc
        if not response.is_success:
            raise HttpStatusError(url, response.status_code, response.reason_phrase)
        return response

    async def fetch_document_info(self, doc_id: str) -> DocumentInfo:
        url = self.info_url(doc_id)
        response = await self._get(url, "application/json")
        try:
            data = response.json()
        except ValueError as exc:
            raise AssetFetchError(f"Invalid metadata JSON: {exc}", url) from exc
        if not isinstance(data, dict):
            raise AssetFetchError("Metadata response must be an object", url)
        info = DocumentInfo.from_dict(doc_id, data)
        logger.debug("Document %s has %d pages", doc_id, info.page_count)
        return info

    async def fetch_page(self, doc_id: str, page_number: int) -> bytes:
        if int(page_number) < 1:
            raise ValueError("page_number must be >= 1")
        response = await self._get(self.page_url(doc_id, page_number), "image/*")
        return response.content

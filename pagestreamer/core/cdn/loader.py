from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from pagestreamer.core.errors import AssetFetchError, AssetLoadFailure
from pagestreamer.utils.logger import logger

from .config import AssetKind, AssetLoadResult, LoadConfiguration
from .fetcher import AssetFetcher, FetchedAsset

SleepFn = Callable[[float], Awaitable[None]]


class RetryingAssetLoader:
    """
    Load one asset: bounded retries against the primary URL, then each
    fallback URL once, in order.

    Notes:
    - Between primary attempts the loader waits `retry_delay_s * attempt_index`
      (attempt_index starts at 1). There is no wait after the last attempt.
    - The first success from any source wins.
    - Only the final failure is surfaced; per-attempt faults are logged.
    """

    def __init__(
        self,
        config: LoadConfiguration,
        *,
        fetcher: Optional[AssetFetcher] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config
        self._fetcher = fetcher or AssetFetcher(default_timeout_s=config.timeout_s)
        self._sleep = sleep

    async def _try(self, url: str, kind: AssetKind) -> FetchedAsset:
        return await self._fetcher.fetch(url, kind, timeout_s=self.config.timeout_s)

    async def load(self, asset_name: str, kind: AssetKind) -> AssetLoadResult:
        started = time.monotonic()
        max_attempts = max(1, int(self.config.max_attempts))
        last_cause: Optional[BaseException] = None
        attempts = 0

        primary = self.config.resolve(asset_name)
        while attempts < max_attempts:
            attempts += 1
            try:
                fetched = await self._try(primary, kind)
            except AssetFetchError as exc:
                last_cause = exc
                logger.warning(
                    "Asset fetch failed asset=%s attempt=%d/%d error=%s",
                    asset_name,
                    attempts,
                    max_attempts,
                    exc,
                )
            else:
                return self._result(asset_name, fetched, started, attempts, False)
            if attempts < max_attempts:
                delay = float(self.config.retry_delay_s) * attempts
                if delay > 0:
                    await self._sleep(delay)

        fallbacks = self.config.fallback_urls(asset_name)
        for index, url in enumerate(fallbacks, 1):
            attempts += 1
            try:
                fetched = await self._try(url, kind)
            except AssetFetchError as exc:
                last_cause = exc
                logger.warning(
                    "Fallback fetch failed asset=%s fallback=%d/%d error=%s",
                    asset_name,
                    index,
                    len(fallbacks),
                    exc,
                )
                continue
            logger.info("Loaded %s from fallback %s", asset_name, url)
            return self._result(asset_name, fetched, started, attempts, True)

        raise AssetLoadFailure(
            asset_name,
            attempt_count=max_attempts,
            fallback_count=len(fallbacks),
            last_cause=last_cause,
        )

    @staticmethod
    def _result(
        name: str,
        fetched: FetchedAsset,
        started: float,
        attempts: int,
        from_fallback: bool,
    ) -> AssetLoadResult:
        return AssetLoadResult(
            name=name,
            content=fetched.content,
            url=fetched.url,
            load_time_s=time.monotonic() - started,
            attempts=attempts,
            content_type=fetched.content_type,
            from_fallback=from_fallback,
        )

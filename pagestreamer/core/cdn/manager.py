from __future__ import annotations

import asyncio
from enum import Enum
from typing import Dict, Optional, Sequence

from pagestreamer.core.errors import (
    AlreadyInProgress,
    AssetLoadFailure,
    NotReady,
    PageStreamerError,
)
from pagestreamer.core.streams import BroadcastChannel, Subscription
from pagestreamer.utils.logger import logger

from .config import (
    DEFAULT_VIEWER_ASSETS,
    AssetKind,
    AssetLoadResult,
    AssetSpec,
    LoadConfiguration,
    LoadProgress,
)
from .fetcher import AssetFetcher
from .loader import RetryingAssetLoader, SleepFn
from .template import DocumentParams, render_document


class BundleState(Enum):
    INITIAL = "initial"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class AssetBundleManager:
    """
    Load the viewer's asset bundle in declared order and generate the
    embeddable document from it.

    Notes:
    - Assets load one at a time; a failure names exactly one asset.
    - `reset()` invalidates any load still in flight: its results are
      discarded and it publishes nothing further.
    """

    def __init__(
        self,
        config: LoadConfiguration,
        assets: Sequence[AssetSpec] = DEFAULT_VIEWER_ASSETS,
        *,
        loader: Optional[RetryingAssetLoader] = None,
        fetcher: Optional[AssetFetcher] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config
        self.assets = tuple(assets)
        self._loader = loader or RetryingAssetLoader(
            config, fetcher=fetcher, sleep=sleep
        )
        self._state = BundleState.INITIAL
        self._generation = 0
        self._results: Dict[str, AssetLoadResult] = {}
        self._progress: BroadcastChannel[LoadProgress] = BroadcastChannel(
            "asset-progress"
        )
        self._latest_progress: Optional[LoadProgress] = None
        self._last_error: Optional[PageStreamerError] = None

    @property
    def state(self) -> BundleState:
        return self._state

    @property
    def is_ready(self) -> bool:
        if self._state is not BundleState.LOADED:
            return False
        return all(
            spec.name in self._results for spec in self.assets if spec.required
        )

    @property
    def latest_progress(self) -> Optional[LoadProgress]:
        return self._latest_progress

    @property
    def last_error(self) -> Optional[PageStreamerError]:
        return self._last_error

    @property
    def results(self) -> Dict[str, AssetLoadResult]:
        return dict(self._results)

    def progress_stream(self) -> Subscription[LoadProgress]:
        """Progress updates until the next terminal one (complete or error)."""
        return self._progress.subscribe(until=lambda p: p.is_terminal)

    def _emit(self, progress: LoadProgress) -> None:
        self._latest_progress = progress
        self._progress.publish(progress)

    async def load_all(self) -> None:
        if self._state is BundleState.LOADING:
            raise AlreadyInProgress()
        if self._state is BundleState.LOADED:
            return

        self._state = BundleState.LOADING
        self._last_error = None
        self._results = {}
        generation = self._generation
        total = len(self.assets)
        loaded = 0
        first_name = self.assets[0].name if self.assets else None
        self._emit(LoadProgress(0, total, first_name))
        logger.info("Loading %d viewer assets from %s", total, self.config.base_url)

        for index, spec in enumerate(self.assets):
            try:
                result = await self._loader.load(spec.name, spec.kind)
            except AssetLoadFailure as exc:
                if generation != self._generation:
                    logger.debug("Discarding stale failure for %s", spec.name)
                    return
                if not spec.required:
                    logger.warning("Skipping optional asset %s: %s", spec.name, exc)
                    loaded += 1
                    self._emit(LoadProgress(loaded, total, self._next_name(index)))
                    continue
                self._fail(exc, loaded, total, spec.name)
                raise
            except Exception as exc:
                if generation != self._generation:
                    return
                error = PageStreamerError(f"Asset loading failed: {exc}")
                self._fail(error, loaded, total, spec.name)
                raise error from exc

            if generation != self._generation:
                logger.debug("Discarding stale result for %s", spec.name)
                return
            self._results[spec.name] = result
            loaded += 1
            logger.info(
                "Loaded %s in %.0fms (%d attempt(s))",
                spec.name,
                result.load_time_s * 1000.0,
                result.attempts,
            )
            self._emit(LoadProgress(loaded, total, self._next_name(index)))

        self._state = BundleState.LOADED

    def _next_name(self, index: int) -> Optional[str]:
        if index + 1 < len(self.assets):
            return self.assets[index + 1].name
        return None

    def _fail(
        self, error: PageStreamerError, loaded: int, total: int, asset_name: str
    ) -> None:
        self._state = BundleState.ERROR
        self._last_error = error
        logger.error("Asset bundle failed at %s: %s", asset_name, error)
        self._emit(LoadProgress(loaded, total, asset_name, error=error))

    def contents(self, kind: AssetKind) -> list[str]:
        return [
            self._results[spec.name].content
            for spec in self.assets
            if spec.kind is kind and spec.name in self._results
        ]

    def build_document(
        self, params: DocumentParams, *, protocol_version: int = 1
    ) -> str:
        if not self.is_ready:
            raise NotReady()
        return render_document(
            self.contents(AssetKind.STYLE),
            self.contents(AssetKind.BEHAVIOR),
            params,
            protocol_version=protocol_version,
        )

    def reset(self) -> None:
        self._generation += 1
        self._state = BundleState.INITIAL
        self._results = {}
        self._latest_progress = None
        self._last_error = None

    def dispose(self) -> None:
        self.reset()
        self._progress.close()

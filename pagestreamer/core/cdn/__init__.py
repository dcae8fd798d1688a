"""Viewer asset loading: fetch, retry/fallback, bundle orchestration."""

from .config import (
    DEFAULT_VIEWER_ASSETS,
    AssetKind,
    AssetLoadResult,
    AssetSpec,
    LoadConfiguration,
    LoadProgress,
)
from .fetcher import AssetFetcher, FetchedAsset
from .loader import RetryingAssetLoader
from .local_server import LocalAssetServer, serve_local_assets
from .manager import AssetBundleManager, BundleState
from .template import DocumentParams, render_document

__all__ = [
    "AssetBundleManager",
    "AssetFetcher",
    "AssetKind",
    "AssetLoadResult",
    "AssetSpec",
    "BundleState",
    "DEFAULT_VIEWER_ASSETS",
    "DocumentParams",
    "FetchedAsset",
    "LoadConfiguration",
    "LoadProgress",
    "LocalAssetServer",
    "RetryingAssetLoader",
    "render_document",
    "serve_local_assets",
]

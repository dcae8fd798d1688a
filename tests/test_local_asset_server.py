from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from pagestreamer.core.cdn import (
    AssetFetcher,
    AssetKind,
    LoadConfiguration,
    LocalAssetServer,
    RetryingAssetLoader,
)
from pagestreamer.core.errors import AssetLoadFailure


@pytest.fixture(autouse=True)
def _no_proxy(monkeypatch) -> None:
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)


def _write_assets(root: Path) -> None:
    (root / "pdf-viewer.css").write_text(".pdf-page {}", encoding="utf-8")
    (root / "pdf-viewer.js").write_text("window.ok = true;", encoding="utf-8")
    (root / "notes.txt").write_text("not an asset", encoding="utf-8")


def test_resolve_asset_stays_inside_root(tmp_path: Path) -> None:
    root = tmp_path / "assets"
    root.mkdir()
    _write_assets(root)
    (tmp_path / "secret.css").write_text("x", encoding="utf-8")

    server = LocalAssetServer(root)
    assert server.resolve_asset("pdf-viewer.css") == (root / "pdf-viewer.css").resolve()
    assert server.resolve_asset("../secret.css") is None
    assert server.resolve_asset("notes.txt") is None
    assert server.resolve_asset("missing.js") is None
    assert not server.running


def test_local_config_loads_through_server(tmp_path: Path) -> None:
    _write_assets(tmp_path)

    async def _load(base_url: str):
        loader = RetryingAssetLoader(LoadConfiguration.local(base_url), fetcher=AssetFetcher())
        css = await loader.load("pdf-viewer.css", AssetKind.STYLE)
        js = await loader.load("pdf-viewer.js", AssetKind.BEHAVIOR)
        return css, js

    with LocalAssetServer(tmp_path) as server:
        assert server.running
        css, js = asyncio.run(_load(server.base_url))
        assert css.content == ".pdf-page {}"
        assert css.content_type == "text/css"
        assert js.content == "window.ok = true;"
        assert js.url == f"{server.base_url}/pdf-viewer.js"

        with pytest.raises(AssetLoadFailure):
            asyncio.run(
                RetryingAssetLoader(LoadConfiguration.local(server.base_url)).load(
                    "missing.js", AssetKind.BEHAVIOR
                )
            )
    assert not server.running

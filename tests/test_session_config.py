from __future__ import annotations

import json
from pathlib import Path

import pytest

from pagestreamer.core.cdn import LoadConfiguration
from pagestreamer.core.errors import ConfigurationError
from pagestreamer.core.session import (
    SessionConfig,
    load_session_config,
    save_session_config,
    validate_session_config,
)


def _config(**changes) -> SessionConfig:
    base = SessionConfig(
        doc_id="doc1",
        backend_url="http://localhost:3000/api/pdf",
        load=LoadConfiguration(base_url="https://cdn.example.com"),
    )
    return base.copy_with(**changes)


def test_valid_config_has_no_errors() -> None:
    result = validate_session_config(_config())
    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []
    result.raise_for_errors()


def test_validation_collects_errors() -> None:
    result = validate_session_config(
        _config(
            doc_id="  ",
            backend_url="ftp://files.example.com",
            initial_page=0,
            initial_zoom=0.0,
            cache_size=0,
            load=LoadConfiguration(base_url="", max_attempts=0),
        )
    )
    assert not result.is_valid
    assert "Document ID cannot be empty" in result.errors
    assert "Backend URL must be a valid absolute http(s) URL" in result.errors
    assert "Initial page must be 1 or greater" in result.errors
    assert "Initial zoom must be greater than 0" in result.errors
    assert "Cache size must be at least 1" in result.errors
    assert "Asset base URL cannot be empty" in result.errors
    assert "Max attempts must be at least 1" in result.errors
    with pytest.raises(ConfigurationError) as excinfo:
        result.raise_for_errors()
    assert excinfo.value.errors == result.errors
    assert isinstance(excinfo.value, ValueError)


def test_validation_warnings_do_not_block() -> None:
    result = validate_session_config(
        _config(initial_zoom=12.0, preload_buffer=11, max_concurrent_page_loads=20)
    )
    assert result.is_valid
    assert len(result.warnings) == 3


def test_urls_and_viewer_options() -> None:
    config = _config(enable_zoom=False, cache_size=10)
    assert config.metadata_url() == "http://localhost:3000/api/pdf/doc1/info"
    assert config.page_url(4) == "http://localhost:3000/api/pdf/doc1/page/4"
    options = config.viewer_options()
    assert options["enableZoom"] is False
    assert options["cacheSize"] == 10
    assert options["preloadBuffer"] == 2


def test_factories() -> None:
    dev = SessionConfig.development("doc1")
    assert dev.debug_mode
    assert dev.backend_url == "http://localhost:3000/api/pdf"
    assert dev.load.version_tag == "dev"

    prod = SessionConfig.production(
        "doc1",
        "https://api.example.com/pdf",
        "https://cdn.example.com",
        fallback_cdn_urls=("https://backup.example.com",),
    )
    assert prod.cache_size == 100
    assert prod.max_concurrent_page_loads == 5
    assert prod.load.fallback_base_urls == ("https://backup.example.com",)
    assert validate_session_config(prod).is_valid


def test_load_yaml_with_camel_case_keys(tmp_path: Path) -> None:
    path = tmp_path / "session.yaml"
    path.write_text(
        "\n".join(
            [
                "docId: report-7",
                "backendUrl: https://api.example.com/pdf",
                "initialPage: 3",
                "initialZoom: 1.5",
                "enableNavigation: false",
                "load:",
                "  baseUrl: https://cdn.example.com",
                "  versionTag: v2",
                "  fallbackBaseUrls:",
                "    - https://backup.example.com",
                "  maxAttempts: 2",
            ]
        ),
        encoding="utf-8",
    )

    config = load_session_config(path)

    assert config.doc_id == "report-7"
    assert config.initial_page == 3
    assert config.initial_zoom == 1.5
    assert config.enable_navigation is False
    assert config.load.resolve("pdf-viewer.js") == "https://cdn.example.com/v2/pdf-viewer.js"
    assert config.load.fallback_base_urls == ("https://backup.example.com",)
    assert config.load.max_attempts == 2


def test_save_then_load_json(tmp_path: Path) -> None:
    config = _config(initial_page=2, debug_mode=True)
    path = tmp_path / "nested" / "session.json"

    save_session_config(config, path, camel_case=True)
    raw = json.loads(path.read_text(encoding="utf-8"))

    assert raw["docId"] == "doc1"
    assert raw["load"]["baseUrl"] == "https://cdn.example.com"
    assert load_session_config(path) == config


def test_load_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_session_config(path)

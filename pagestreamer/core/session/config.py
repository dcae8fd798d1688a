from __future__ import annotations

import dataclasses
import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

from pagestreamer.core.cdn.config import LoadConfiguration
from pagestreamer.core.errors import ConfigurationError


@dataclass(frozen=True)
class SessionConfig:
    """Everything needed to stream one document."""

    doc_id: str
    backend_url: str
    load: LoadConfiguration
    initial_page: int = 1
    initial_zoom: float = 1.0
    enable_page_preloading: bool = True
    preload_buffer: int = 2
    max_concurrent_page_loads: int = 3
    cache_size: int = 50
    enable_zoom: bool = True
    enable_navigation: bool = True
    debug_mode: bool = False

    def page_url(self, page_number: int) -> str:
        return f"{self.backend_url}/{self.doc_id}/page/{page_number}"

    def metadata_url(self) -> str:
        return f"{self.backend_url}/{self.doc_id}/info"

    def viewer_options(self) -> Dict[str, Any]:
        return {
            "enablePagePreloading": self.enable_page_preloading,
            "preloadBuffer": self.preload_buffer,
            "maxConcurrentPageLoads": self.max_concurrent_page_loads,
            "cacheSize": self.cache_size,
            "enableZoom": self.enable_zoom,
            "enableNavigation": self.enable_navigation,
            "debugMode": self.debug_mode,
        }

    def copy_with(self, **changes: Any) -> "SessionConfig":
        return dataclasses.replace(self, **changes)

    @classmethod
    def development(
        cls,
        doc_id: str,
        backend_url: str = "http://localhost:3000/api/pdf",
        cdn_url: str = "http://localhost:3002",
        initial_page: int = 1,
        initial_zoom: float = 1.0,
    ) -> "SessionConfig":
        return cls(
            doc_id=doc_id,
            backend_url=backend_url,
            load=LoadConfiguration.development(base_url=cdn_url),
            initial_page=initial_page,
            initial_zoom=initial_zoom,
            debug_mode=True,
        )

    @classmethod
    def production(
        cls,
        doc_id: str,
        backend_url: str,
        cdn_url: str,
        fallback_cdn_urls: tuple[str, ...] = (),
        initial_page: int = 1,
        initial_zoom: float = 1.0,
        enable_page_preloading: bool = True,
        preload_buffer: int = 3,
    ) -> "SessionConfig":
        return cls(
            doc_id=doc_id,
            backend_url=backend_url,
            load=LoadConfiguration.production(cdn_url, fallback_urls=fallback_cdn_urls),
            initial_page=initial_page,
            initial_zoom=initial_zoom,
            enable_page_preloading=enable_page_preloading,
            preload_buffer=preload_buffer,
            max_concurrent_page_loads=5,
            cache_size=100,
        )

    @classmethod
    def local(
        cls,
        doc_id: str,
        backend_url: str,
        assets_url: str,
        initial_page: int = 1,
        initial_zoom: float = 1.0,
    ) -> "SessionConfig":
        return cls(
            doc_id=doc_id,
            backend_url=backend_url,
            load=LoadConfiguration.local(assets_url),
            initial_page=initial_page,
            initial_zoom=initial_zoom,
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SessionConfig":
        payload = convert_keys_to_snake(dict(data or {}))
        load_raw = payload.get("load") or payload.get("cdn_config") or {}
        return cls(
            doc_id=str(payload.get("doc_id") or payload.get("pdf_id") or ""),
            backend_url=str(payload.get("backend_url") or ""),
            load=LoadConfiguration.from_dict(load_raw),
            initial_page=int(payload.get("initial_page", 1)),
            initial_zoom=float(payload.get("initial_zoom", 1.0)),
            enable_page_preloading=bool(payload.get("enable_page_preloading", True)),
            preload_buffer=int(payload.get("preload_buffer", 2)),
            max_concurrent_page_loads=int(
                payload.get("max_concurrent_page_loads", 3)
            ),
            cache_size=int(payload.get("cache_size", 50)),
            enable_zoom=bool(payload.get("enable_zoom", True)),
            enable_navigation=bool(payload.get("enable_navigation", True)),
            debug_mode=bool(payload.get("debug_mode", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doc_id": self.doc_id,
            "backend_url": self.backend_url,
            "load": self.load.to_dict(),
            "initial_page": self.initial_page,
            "initial_zoom": self.initial_zoom,
            "enable_page_preloading": self.enable_page_preloading,
            "preload_buffer": self.preload_buffer,
            "max_concurrent_page_loads": self.max_concurrent_page_loads,
            "cache_size": self.cache_size,
            "enable_zoom": self.enable_zoom,
            "enable_navigation": self.enable_navigation,
            "debug_mode": self.debug_mode,
        }


@dataclass(frozen=True)
class ConfigValidation:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ConfigurationError(self.errors)


def _is_absolute_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_session_config(config: SessionConfig) -> ConfigValidation:
    errors: List[str] = []
    warnings: List[str] = []

    if not str(config.doc_id or "").strip():
        errors.append("Document ID cannot be empty")

    backend = str(config.backend_url or "").strip()
    if not backend:
        errors.append("Backend URL cannot be empty")
    elif not _is_absolute_http_url(backend):
        errors.append("Backend URL must be a valid absolute http(s) URL")

    if config.initial_page < 1:
        errors.append("Initial page must be 1 or greater")

    if not math.isfinite(config.initial_zoom) or config.initial_zoom <= 0:
        errors.append("Initial zoom must be greater than 0")
    elif config.initial_zoom < 0.1 or config.initial_zoom > 10.0:
        warnings.append("Initial zoom outside recommended range (0.1 - 10.0)")

    if config.preload_buffer < 0:
        errors.append("Preload buffer cannot be negative")
    elif config.preload_buffer > 10:
        warnings.append("Large preload buffer may impact performance")

    if config.max_concurrent_page_loads < 1:
        errors.append("Max concurrent page loads must be at least 1")
    elif config.max_concurrent_page_loads > 10:
        warnings.append("High concurrent page loads may overwhelm backend")

    if config.cache_size < 1:
        errors.append("Cache size must be at least 1")

    errors.extend(config.load.validation_errors())
    return ConfigValidation(errors=errors, warnings=warnings)


def _camel_to_snake(name: str) -> str:
    out = []
    for i, ch in enumerate(str(name)):
        if ch.isupper() and i > 0:
            out.append("_")
        out.append(ch.lower())
    return "".join(out)


def _snake_to_camel(name: str) -> str:
    parts = str(name).split("_")
    return parts[0] + "".join(p.title() for p in parts[1:])


def convert_keys_to_snake(data: Any) -> Any:
    if isinstance(data, dict):
        return {_camel_to_snake(k): convert_keys_to_snake(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys_to_snake(item) for item in data]
    return data


def convert_keys_to_camel(data: Any) -> Any:
    if isinstance(data, dict):
        return {_snake_to_camel(k): convert_keys_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys_to_camel(item) for item in data]
    return data


def load_session_config(config_path: Path | str) -> SessionConfig:
    """Read a session config from a JSON or YAML file."""
    path = Path(config_path).expanduser()
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ConfigurationError([f"{path} must contain a mapping"])
    return SessionConfig.from_dict(raw)


def save_session_config(
    config: SessionConfig, config_path: Path | str, *, camel_case: bool = False
) -> None:
    path = Path(config_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.to_dict()
    if camel_case:
        data = convert_keys_to_camel(data)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")

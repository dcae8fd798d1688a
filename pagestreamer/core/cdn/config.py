from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pagestreamer.core.errors import PageStreamerError

UNVERSIONED_TAGS = frozenset({"local", "dev"})


class AssetKind(Enum):
    STYLE = "style"
    BEHAVIOR = "behavior"

    @property
    def content_type(self) -> str:
        if self is AssetKind.STYLE:
            return "text/css"
        return "application/javascript"

    @property
    def content_type_markers(self) -> Tuple[str, ...]:
        if self is AssetKind.STYLE:
            return ("css",)
        return ("javascript", "ecmascript")

    def accepts(self, content_type: Optional[str]) -> bool:
        """Whether a server-declared content type is consistent with this kind."""
        value = str(content_type or "").strip().lower()
        if not value:
            return True
        return any(marker in value for marker in self.content_type_markers)


@dataclass(frozen=True)
class AssetSpec:
    name: str
    kind: AssetKind
    required: bool = True


DEFAULT_VIEWER_ASSETS: Tuple[AssetSpec, ...] = (
    AssetSpec("pdf-viewer.css", AssetKind.STYLE),
    AssetSpec("pdf-viewer.js", AssetKind.BEHAVIOR),
)


def _pick(payload: Dict[str, Any], snake: str, camel: str, default: Any) -> Any:
    if snake in payload:
        return payload[snake]
    if camel in payload:
        return payload[camel]
    return default


@dataclass(frozen=True)
class LoadConfiguration:
    """Where and how viewer assets are fetched."""

    base_url: str
    version_tag: str = "latest"
    fallback_base_urls: Tuple[str, ...] = ()
    timeout_s: float = 30.0
    max_attempts: int = 3
    retry_delay_s: float = 1.0

    def __post_init__(self) -> None:
        # lists from callers/config files become tuples to keep the config immutable
        object.__setattr__(
            self, "fallback_base_urls", tuple(str(u) for u in self.fallback_base_urls)
        )

    @property
    def is_versioned(self) -> bool:
        return self.version_tag not in UNVERSIONED_TAGS

    def _join(self, base: str, name: str) -> str:
        if self.is_versioned:
            return f"{base}/{self.version_tag}/{name}"
        return f"{base}/{name}"

    def resolve(self, name: str) -> str:
        return self._join(self.base_url, name)

    def fallback_urls(self, name: str) -> Tuple[str, ...]:
        return tuple(self._join(base, name) for base in self.fallback_base_urls)

    def validation_errors(self) -> list[str]:
        errors = []
        if not str(self.base_url or "").strip():
            errors.append("Asset base URL cannot be empty")
        if not str(self.version_tag or "").strip():
            errors.append("Asset version tag cannot be empty")
        if int(self.max_attempts) < 1:
            errors.append("Max attempts must be at least 1")
        if float(self.timeout_s) <= 0:
            errors.append("Asset timeout must be greater than 0")
        if float(self.retry_delay_s) < 0:
            errors.append("Retry delay cannot be negative")
        return errors

    @classmethod
    def development(
        cls, base_url: str = "http://localhost:3002", timeout_s: float = 10.0
    ) -> "LoadConfiguration":
        return cls(
            base_url=base_url,
            version_tag="dev",
            timeout_s=timeout_s,
            max_attempts=1,
        )

    @classmethod
    def production(
        cls,
        cdn_url: str,
        fallback_urls: Tuple[str, ...] = (),
        version_tag: str = "latest",
    ) -> "LoadConfiguration":
        return cls(
            base_url=cdn_url,
            version_tag=version_tag,
            fallback_base_urls=tuple(fallback_urls),
            timeout_s=30.0,
            max_attempts=3,
            retry_delay_s=2.0,
        )

    @classmethod
    def local(
        cls, assets_url: str, version_tag: str = "local"
    ) -> "LoadConfiguration":
        return cls(
            base_url=assets_url,
            version_tag=version_tag,
            timeout_s=10.0,
            max_attempts=1,
            retry_delay_s=1.0,
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LoadConfiguration":
        payload = data or {}
        fallbacks = _pick(payload, "fallback_base_urls", "fallbackBaseUrls", None)
        if fallbacks is None:
            fallbacks = _pick(payload, "fallback_urls", "fallbackUrls", [])
        if isinstance(fallbacks, str):
            fallbacks = [fallbacks]
        return cls(
            base_url=str(_pick(payload, "base_url", "baseUrl", "") or ""),
            version_tag=str(
                _pick(payload, "version_tag", "versionTag", None)
                or payload.get("version")
                or "latest"
            ),
            fallback_base_urls=tuple(str(u) for u in (fallbacks or [])),
            timeout_s=float(_pick(payload, "timeout_s", "timeoutS", 30.0)),
            max_attempts=int(_pick(payload, "max_attempts", "maxAttempts", 3)),
            retry_delay_s=float(_pick(payload, "retry_delay_s", "retryDelayS", 1.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "version_tag": self.version_tag,
            "fallback_base_urls": list(self.fallback_base_urls),
            "timeout_s": self.timeout_s,
            "max_attempts": self.max_attempts,
            "retry_delay_s": self.retry_delay_s,
        }


@dataclass(frozen=True)
class AssetLoadResult:
    name: str
    content: str
    url: str
    load_time_s: float
    attempts: int = 1
    content_type: Optional[str] = None
    from_fallback: bool = False


@dataclass(frozen=True)
class LoadProgress:
    loaded_count: int
    total_count: int
    current_asset_name: Optional[str] = None
    error: Optional[PageStreamerError] = field(default=None, compare=False)

    @property
    def progress_ratio(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return self.loaded_count / self.total_count

    @property
    def is_complete(self) -> bool:
        return self.error is None and self.loaded_count >= self.total_count

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def is_terminal(self) -> bool:
        return self.has_error or self.is_complete

    def __str__(self) -> str:
        return (
            f"LoadProgress({self.progress_ratio * 100:.1f}%, "
            f"{self.loaded_count}/{self.total_count})"
        )

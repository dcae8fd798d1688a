from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, ClassVar, Dict, Mapping, Optional, Union

from pagestreamer.core.errors import BridgeCommunicationFault, InvalidCommand

PROTOCOL_VERSION = 1

# Outbound command types
LOAD_DOCUMENT = "LOAD_DOCUMENT"
SET_PAGE = "SET_PAGE"
SET_ZOOM = "SET_ZOOM"
QUERY_CURRENT_PAGE = "QUERY_CURRENT_PAGE"
QUERY_PAGE_COUNT = "QUERY_PAGE_COUNT"

# Inbound event types
DOCUMENT_LOADED = "DOCUMENT_LOADED"
PAGE_CHANGED = "PAGE_CHANGED"
ZOOM_CHANGED = "ZOOM_CHANGED"
LOADING_CHANGED = "LOADING_CHANGED"
ERROR = "ERROR"

# Names used by the earlier viewer runtime.
_EVENT_ALIASES = {
    "PDF_LOADED": DOCUMENT_LOADED,
    "LOADING_STATE_CHANGED": LOADING_CHANGED,
}


def _require_int(value: Any, name: str, *, minimum: int) -> int:
    if isinstance(value, bool):
        raise InvalidCommand(f"{name} must be an integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise InvalidCommand(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise InvalidCommand(f"{name} must be >= {minimum}, got {value}")
    return value


def _require_positive_float(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidCommand(f"{name} must be a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        raise InvalidCommand(f"{name} must be greater than 0, got {value!r}")
    return number


@dataclass(frozen=True)
class LoadDocument:
    type: ClassVar[str] = LOAD_DOCUMENT
    doc_id: str
    api_base_url: str

    def __post_init__(self) -> None:
        if not str(self.doc_id or "").strip():
            raise InvalidCommand("docId cannot be empty")

    def payload(self) -> Dict[str, Any]:
        return {"docId": self.doc_id, "apiBaseUrl": self.api_base_url}


@dataclass(frozen=True)
class SetPage:
    type: ClassVar[str] = SET_PAGE
    page_number: int

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "page_number", _require_int(self.page_number, "pageNumber", minimum=1)
        )

    def payload(self) -> Dict[str, Any]:
        return {"pageNumber": self.page_number}


@dataclass(frozen=True)
class SetZoom:
    type: ClassVar[str] = SET_ZOOM
    zoom_level: float

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "zoom_level", _require_positive_float(self.zoom_level, "zoomLevel")
        )

    def payload(self) -> Dict[str, Any]:
        return {"zoomLevel": self.zoom_level}


@dataclass(frozen=True)
class QueryCurrentPage:
    type: ClassVar[str] = QUERY_CURRENT_PAGE

    def payload(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class QueryPageCount:
    type: ClassVar[str] = QUERY_PAGE_COUNT

    def payload(self) -> Dict[str, Any]:
        return {}


Command = Union[LoadDocument, SetPage, SetZoom, QueryCurrentPage, QueryPageCount]


def encode_command(command: Command) -> Dict[str, Any]:
    """Wire envelope for an outbound command."""
    return {
        "type": command.type,
        "payload": command.payload(),
        "version": PROTOCOL_VERSION,
    }


@dataclass(frozen=True)
class DocumentLoaded:
    type: ClassVar[str] = DOCUMENT_LOADED
    doc_id: str
    page_count: int
    title: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now, compare=False)


@dataclass(frozen=True)
class PageChanged:
    type: ClassVar[str] = PAGE_CHANGED
    current_page: int
    total_pages: int
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def progress(self) -> float:
        if self.total_pages <= 0:
            return 0.0
        return self.current_page / self.total_pages

    @property
    def is_first_page(self) -> bool:
        return self.current_page == 1

    @property
    def is_last_page(self) -> bool:
        return self.current_page == self.total_pages


@dataclass(frozen=True)
class ZoomChanged:
    type: ClassVar[str] = ZOOM_CHANGED
    zoom_level: float
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def zoom_percentage(self) -> int:
        return int(round(self.zoom_level * 100))


@dataclass(frozen=True)
class LoadingChanged:
    type: ClassVar[str] = LOADING_CHANGED
    is_loading: bool
    progress: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def progress_percentage(self) -> int:
        return int(round(self.progress * 100))


@dataclass(frozen=True)
class ViewerError:
    type: ClassVar[str] = ERROR
    message: str
    code: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now, compare=False)


@dataclass(frozen=True)
class UnknownEvent:
    """Anything the bridge could not map onto a known event."""

    event_type: str
    raw_payload: Any = None
    reason: str = ""
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def type(self) -> str:
        return self.event_type


BridgeEvent = Union[
    DocumentLoaded, PageChanged, ZoomChanged, LoadingChanged, ViewerError, UnknownEvent
]


def _field(payload: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in payload:
            return payload[name]
    return None


def _as_int(value: Any, name: str, *, minimum: int) -> int:
    if isinstance(value, bool):
        raise BridgeCommunicationFault(f"{name} must be an integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise BridgeCommunicationFault(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise BridgeCommunicationFault(f"{name} must be >= {minimum}, got {value}")
    return value


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool) or value is None:
        raise BridgeCommunicationFault(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise BridgeCommunicationFault(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise BridgeCommunicationFault(f"{name} must be finite")
    return number


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text


def _parse_document_loaded(payload: Mapping[str, Any]) -> DocumentLoaded:
    doc_id = _as_text(_field(payload, "docId", "pdfId", "doc_id"))
    if not doc_id:
        raise BridgeCommunicationFault("DOCUMENT_LOADED requires docId")
    return DocumentLoaded(
        doc_id=doc_id,
        page_count=_as_int(
            _field(payload, "pageCount", "page_count", "totalPages"),
            "pageCount",
            minimum=0,
        ),
        title=_as_text(payload.get("title")),
    )


def _parse_page_changed(payload: Mapping[str, Any]) -> PageChanged:
    return PageChanged(
        current_page=_as_int(
            _field(payload, "currentPage", "current_page"), "currentPage", minimum=0
        ),
        total_pages=_as_int(
            _field(payload, "totalPages", "total_pages"), "totalPages", minimum=0
        ),
    )


def _parse_zoom_changed(payload: Mapping[str, Any]) -> ZoomChanged:
    zoom = _as_float(_field(payload, "zoomLevel", "zoom_level"), "zoomLevel")
    if zoom <= 0:
        raise BridgeCommunicationFault(f"zoomLevel must be > 0, got {zoom}")
    return ZoomChanged(zoom_level=zoom)


def _parse_loading_changed(payload: Mapping[str, Any]) -> LoadingChanged:
    raw_progress = _field(payload, "progress")
    progress = 0.0 if raw_progress is None else _as_float(raw_progress, "progress")
    return LoadingChanged(
        is_loading=bool(_field(payload, "isLoading", "is_loading")),
        progress=min(1.0, max(0.0, progress)),
    )


def _parse_error(payload: Mapping[str, Any]) -> ViewerError:
    message = _as_text(payload.get("message")) or "Unknown viewer error"
    return ViewerError(message=message, code=_as_text(payload.get("code")))


_EVENT_PARSERS: Dict[str, Callable[[Mapping[str, Any]], BridgeEvent]] = {
    DOCUMENT_LOADED: _parse_document_loaded,
    PAGE_CHANGED: _parse_page_changed,
    ZOOM_CHANGED: _parse_zoom_changed,
    LOADING_CHANGED: _parse_loading_changed,
    ERROR: _parse_error,
}


def _decode_envelope(raw: Any) -> tuple[str, Mapping[str, Any]]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise BridgeCommunicationFault(f"Invalid JSON message: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise BridgeCommunicationFault("Message must be an object")
    event_type = str(raw.get("type") or "").strip().upper()
    payload = raw.get("payload")
    if payload is None:
        # the earlier runtime sent fields next to `type`
        payload = {k: v for k, v in raw.items() if k not in ("type", "version")}
    if not isinstance(payload, Mapping):
        raise BridgeCommunicationFault("Message payload must be an object")
    return event_type, payload


def parse_event(raw: Any) -> BridgeEvent:
    """Map any inbound message onto an event variant. Never raises."""
    try:
        event_type, payload = _decode_envelope(raw)
    except BridgeCommunicationFault as exc:
        return UnknownEvent(event_type="", raw_payload=raw, reason=str(exc))
    except Exception as exc:
        return UnknownEvent(event_type="", raw_payload=raw, reason=f"decode failed: {exc}")

    canonical = _EVENT_ALIASES.get(event_type, event_type)
    parser = _EVENT_PARSERS.get(canonical)
    if parser is None:
        return UnknownEvent(event_type=event_type, raw_payload=raw)
    try:
        return parser(payload)
    except BridgeCommunicationFault as exc:
        return UnknownEvent(event_type=event_type, raw_payload=raw, reason=str(exc))
    except Exception as exc:
        return UnknownEvent(
            event_type=event_type, raw_payload=raw, reason=f"parse failed: {exc}"
        )

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pagestreamer.utils.logger import logger


class SessionState(Enum):
    INITIALIZING = "initializing"
    LOADING_ASSETS = "loading_assets"
    ASSETS_READY = "assets_ready"
    LOADING_DOCUMENT = "loading_document"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class SessionError:
    """A terminal fault as seen by listeners."""

    message: str
    code: str
    recoverable: bool
    cause: Optional[BaseException] = field(default=None, compare=False)
    timestamp: datetime = field(default_factory=datetime.now, compare=False)

    def __str__(self) -> str:
        return f"SessionError({self.code}): {self.message}"


@dataclass(frozen=True)
class StateChanged:
    previous: SessionState
    current: SessionState
    timestamp: datetime = field(default_factory=datetime.now, compare=False)


DOCUMENT_LOADED = "document_loaded"
PAGE_CHANGED = "page_changed"
ZOOM_CHANGED = "zoom_changed"
LOADING_CHANGED = "loading_changed"
ERROR = "error"
STATE_CHANGED = "state_changed"

LISTENER_EVENTS = (
    DOCUMENT_LOADED,
    PAGE_CHANGED,
    ZOOM_CHANGED,
    LOADING_CHANGED,
    ERROR,
    STATE_CHANGED,
)

Listener = Callable[[Any], None]


@dataclass
class SessionListeners:
    """Optional callbacks handed to a controller at construction."""

    on_document_loaded: Optional[Listener] = None
    on_page_changed: Optional[Listener] = None
    on_zoom_changed: Optional[Listener] = None
    on_loading_changed: Optional[Listener] = None
    on_error: Optional[Listener] = None
    on_state_changed: Optional[Listener] = None

    def items(self) -> List[tuple[str, Listener]]:
        pairs = []
        for event_name in LISTENER_EVENTS:
            callback = getattr(self, f"on_{event_name}")
            if callback is not None:
                pairs.append((event_name, callback))
        return pairs


class ListenerRegistry:
    """
    Named listener lists for the public event surface.

    A listener that raises is logged and skipped; the rest still run.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {
            name: [] for name in LISTENER_EVENTS
        }

    def subscribe(self, event_name: str, callback: Listener) -> Callable[[], None]:
        key = str(event_name or "").strip().lower()
        if key not in self._listeners:
            raise ValueError(f"Unknown session event: {event_name!r}")
        self._listeners[key].append(callback)

        def _unsubscribe() -> None:
            try:
                self._listeners[key].remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def register(self, listeners: Optional[SessionListeners]) -> None:
        if listeners is None:
            return
        for event_name, callback in listeners.items():
            self.subscribe(event_name, callback)

    def emit(self, event_name: str, event: Any) -> None:
        for callback in list(self._listeners.get(event_name, [])):
            try:
                callback(event)
            except Exception as exc:
                logger.error("Listener for %s failed: %s", event_name, exc)

    def count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    def clear(self) -> None:
        for callbacks in self._listeners.values():
            callbacks.clear()

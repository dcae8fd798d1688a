from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Protocol

from pagestreamer.utils.logger import logger

if TYPE_CHECKING:  # pragma: no cover
    from .bridge import MessageBridge


class MessageTransport(Protocol):
    """Host-side primitive that posts one structured message into the runtime."""

    def post(self, message: Dict[str, Any]) -> None: ...


class EmbeddingHost(Protocol):
    """Something that can show a generated document in a sandboxed runtime.

    `embed` must attach a transport to the bridge and route messages coming
    from the runtime into `bridge.receive`.
    """

    def embed(self, document: str, bridge: "MessageBridge") -> None: ...

    def unembed(self) -> None: ...


class CallbackTransport:
    def __init__(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        self._callback = callback

    def post(self, message: Dict[str, Any]) -> None:
        self._callback(message)


class InMemoryHost:
    """
    Headless embedding host.

    Keeps the embedded document, records every command posted into the
    runtime, and lets callers play the runtime's side through `emit()`.
    """

    def __init__(self, *, fail_with: Optional[BaseException] = None) -> None:
        self.document: Optional[str] = None
        self.sent: List[Dict[str, Any]] = []
        self.embed_count = 0
        self._bridge: Optional["MessageBridge"] = None
        self._fail_with = fail_with

    @property
    def attached(self) -> bool:
        return self._bridge is not None

    def embed(self, document: str, bridge: "MessageBridge") -> None:
        if self._fail_with is not None:
            raise self._fail_with
        self.document = document
        self.embed_count += 1
        self._bridge = bridge
        bridge.attach(CallbackTransport(self.sent.append))
        logger.debug("Embedded document (%d chars) in memory", len(document))

    def unembed(self) -> None:
        bridge = self._bridge
        self._bridge = None
        self.document = None
        if bridge is not None:
            bridge.detach()

    def emit(self, message: Any) -> None:
        """Deliver a message as if the embedded runtime had posted it."""
        if self._bridge is None:
            logger.debug("No bridge attached; dropping runtime message")
            return
        self._bridge.receive(message)

    def sent_types(self) -> List[str]:
        return [str(m.get("type")) for m in self.sent]

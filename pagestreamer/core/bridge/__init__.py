"""Host <-> embedded viewer message bridge."""

from .bridge import MessageBridge
from .protocol import (
    PROTOCOL_VERSION,
    BridgeEvent,
    Command,
    DocumentLoaded,
    LoadDocument,
    LoadingChanged,
    PageChanged,
    QueryCurrentPage,
    QueryPageCount,
    SetPage,
    SetZoom,
    UnknownEvent,
    ViewerError,
    ZoomChanged,
    encode_command,
    parse_event,
)
from .transport import CallbackTransport, EmbeddingHost, InMemoryHost, MessageTransport

__all__ = [
    "PROTOCOL_VERSION",
    "BridgeEvent",
    "CallbackTransport",
    "Command",
    "DocumentLoaded",
    "EmbeddingHost",
    "InMemoryHost",
    "LoadDocument",
    "LoadingChanged",
    "MessageBridge",
    "MessageTransport",
    "PageChanged",
    "QueryCurrentPage",
    "QueryPageCount",
    "SetPage",
    "SetZoom",
    "UnknownEvent",
    "ViewerError",
    "ZoomChanged",
    "encode_command",
    "parse_event",
]

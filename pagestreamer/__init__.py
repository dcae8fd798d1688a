"""Stream multi-page documents into an embedded viewer runtime."""

from pagestreamer.core.backend import BackendClient, DocumentInfo
from pagestreamer.core.bridge import InMemoryHost, MessageBridge
from pagestreamer.core.cdn import (
    AssetBundleManager,
    AssetFetcher,
    LoadConfiguration,
    LoadProgress,
    RetryingAssetLoader,
    serve_local_assets,
)
from pagestreamer.core.errors import (
    AlreadyInProgress,
    AssetLoadFailure,
    BridgeCommunicationFault,
    ConfigurationError,
    InvalidCommand,
    NotReady,
    PageStreamerError,
    RemoteViewerError,
)
from pagestreamer.core.session import (
    SessionConfig,
    SessionController,
    SessionError,
    SessionListeners,
    SessionState,
    load_session_config,
    validate_session_config,
)

__version__ = "0.1.0"

__all__ = [
    "AlreadyInProgress",
    "AssetBundleManager",
    "AssetFetcher",
    "AssetLoadFailure",
    "BackendClient",
    "BridgeCommunicationFault",
    "ConfigurationError",
    "DocumentInfo",
    "InMemoryHost",
    "InvalidCommand",
    "LoadConfiguration",
    "LoadProgress",
    "MessageBridge",
    "NotReady",
    "PageStreamerError",
    "RemoteViewerError",
    "RetryingAssetLoader",
    "SessionConfig",
    "SessionController",
    "SessionError",
    "SessionListeners",
    "SessionState",
    "load_session_config",
    "serve_local_assets",
    "validate_session_config",
]

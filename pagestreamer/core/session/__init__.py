"""Session lifecycle: configuration, public events and the controller."""

from .config import (
    ConfigValidation,
    SessionConfig,
    load_session_config,
    save_session_config,
    validate_session_config,
)
from .controller import SessionController
from .events import (
    ListenerRegistry,
    SessionError,
    SessionListeners,
    SessionState,
    StateChanged,
)

__all__ = [
    "ConfigValidation",
    "ListenerRegistry",
    "SessionConfig",
    "SessionController",
    "SessionError",
    "SessionListeners",
    "SessionState",
    "StateChanged",
    "load_session_config",
    "save_session_config",
    "validate_session_config",
]

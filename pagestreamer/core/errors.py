from __future__ import annotations

from typing import Optional, Sequence


class PageStreamerError(Exception):
    """Base class for every error raised by pagestreamer."""

    code = "PAGESTREAMER_ERROR"
    recoverable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(PageStreamerError, ValueError):
    """Raised when a session or load configuration is invalid."""

    code = "CONFIG_ERROR"

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = [str(e) for e in errors]
        super().__init__("Invalid configuration: " + ", ".join(self.errors))


class AssetFetchError(PageStreamerError):
    """A single fetch of a remote asset failed."""

    code = "FETCH_ERROR"

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class FetchTimeout(AssetFetchError):
    code = "FETCH_TIMEOUT"

    def __init__(self, url: str, timeout_s: float) -> None:
        super().__init__(f"Request timeout after {timeout_s:.2f}s: {url}", url)
        self.timeout_s = timeout_s


class HttpStatusError(AssetFetchError):
    code = "HTTP_STATUS"

    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        text = f"HTTP {status_code}"
        if reason:
            text = f"{text}: {reason}"
        super().__init__(f"{text} ({url})", url)
        self.status_code = int(status_code)


class ContentTypeMismatch(AssetFetchError):
    code = "CONTENT_TYPE_MISMATCH"

    def __init__(self, url: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Invalid content type: expected {expected}, got {actual} ({url})", url
        )
        self.expected = expected
        self.actual = actual


class NetworkError(AssetFetchError):
    code = "NETWORK_ERROR"


class AssetLoadFailure(PageStreamerError):
    """Every primary attempt and every fallback for one asset failed."""

    code = "ASSET_LOAD_ERROR"
    recoverable = True

    def __init__(
        self,
        asset_name: str,
        attempt_count: int,
        fallback_count: int,
        last_cause: Optional[BaseException] = None,
    ) -> None:
        message = (
            f"Failed to load asset {asset_name} after {attempt_count} attempts "
            f"and {fallback_count} fallbacks"
        )
        if last_cause is not None:
            message = f"{message} (caused by: {last_cause})"
        super().__init__(message)
        self.asset_name = asset_name
        self.attempt_count = int(attempt_count)
        self.fallback_count = int(fallback_count)
        self.last_cause = last_cause


class AlreadyInProgress(PageStreamerError):
    code = "ALREADY_IN_PROGRESS"

    def __init__(self) -> None:
        super().__init__("Asset loading already in progress")


class NotReady(PageStreamerError):
    code = "NOT_READY"

    def __init__(self) -> None:
        super().__init__("Assets not loaded yet. Call load_all() first.")


class BridgeCommunicationFault(PageStreamerError):
    """Malformed inbound bridge data. Recovered locally, never propagated."""

    code = "BRIDGE_FAULT"


class RemoteViewerError(PageStreamerError):
    """The embedded viewer runtime reported its own failure."""

    code = "REMOTE_VIEWER_ERROR"
    recoverable = True

    def __init__(self, message: str, remote_code: Optional[str] = None) -> None:
        super().__init__(message)
        self.remote_code = remote_code


class EmbedError(PageStreamerError):
    code = "EMBED_ERROR"
    recoverable = True


class InvalidCommand(PageStreamerError, ValueError):
    """A command argument was rejected before it reached the bridge."""

    code = "INVALID_COMMAND"

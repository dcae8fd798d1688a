"""Qt WebEngine host for the streaming viewer.

The widget is an embedding host for :class:`SessionController`. It shows the
generated viewer page in a ``QWebEngineView`` and connects the page's bridge
runtime to the session through ``QWebChannel``. Run the session's asyncio loop
on the Qt thread (for example with qasync) so bridge events and Qt slots
share one thread.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict, Optional

from qtpy import QtCore, QtWidgets

try:
    from qtpy import QtWebEngineWidgets  # type: ignore

    _WEBENGINE_AVAILABLE = True
except Exception:
    QtWebEngineWidgets = None  # type: ignore
    _WEBENGINE_AVAILABLE = False

try:
    from qtpy import QtWebChannel  # type: ignore

    _WEBCHANNEL_AVAILABLE = True
except Exception:
    QtWebChannel = None  # type: ignore
    _WEBCHANNEL_AVAILABLE = False

from pagestreamer.core.cdn.template import HOST_OBJECT_NAME, RUNTIME_GLOBAL
from pagestreamer.core.errors import EmbedError
from pagestreamer.gui.widgets.page_streamer_bridge import _PageStreamerHostBridge
from pagestreamer.utils.logger import logger

if TYPE_CHECKING:  # pragma: no cover
    from pagestreamer.core.bridge import MessageBridge


class _QtPageTransport:
    """Posts commands into the page by calling the runtime's handler."""

    def __init__(self, web_view: Any) -> None:
        self._web_view = web_view

    def script_for(self, message: Dict[str, Any]) -> str:
        type_literal = json.dumps(str(message.get("type") or ""))
        payload_literal = json.dumps(message.get("payload") or {})
        return (
            f"window.{RUNTIME_GLOBAL} && "
            f"window.{RUNTIME_GLOBAL}.handleHostMessage("
            f"{type_literal}, {payload_literal});"
        )

    def post(self, message: Dict[str, Any]) -> None:
        self._web_view.page().runJavaScript(self.script_for(message))


class PageStreamerWidget(QtWidgets.QWidget):
    documentEmbedded = QtCore.Signal()

    def __init__(
        self, parent: Optional[QtWidgets.QWidget] = None, *, base_url: str = ""
    ) -> None:
        super().__init__(parent)
        self._base_url = base_url
        self._bridge: Optional["MessageBridge"] = None
        self._web_view = None
        self._web_channel = None
        self._host_bridge: Optional[_PageStreamerHostBridge] = None
        self._build_ui()
        logger.info(
            "QtWebEngine available=%s, QtWebChannel available=%s",
            bool(_WEBENGINE_AVAILABLE),
            bool(_WEBCHANNEL_AVAILABLE),
        )

    def _build_ui(self) -> None:
        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        if not _WEBENGINE_AVAILABLE:
            self._placeholder = QtWidgets.QLabel(
                "QtWebEngine is not installed; the viewer cannot be shown.", self
            )
            self._placeholder.setAlignment(QtCore.Qt.AlignCenter)
            layout.addWidget(self._placeholder)
            return

        self._web_view = QtWebEngineWidgets.QWebEngineView(self)
        if _WEBCHANNEL_AVAILABLE:
            try:
                self._web_channel = QtWebChannel.QWebChannel(self._web_view.page())
                self._host_bridge = _PageStreamerHostBridge(self)
                self._web_channel.registerObject(HOST_OBJECT_NAME, self._host_bridge)
                self._web_view.page().setWebChannel(self._web_channel)
            except Exception as exc:
                logger.info("QtWebChannel unavailable: %s", exc)
                self._web_channel = None
                self._host_bridge = None
        try:
            settings = self._web_view.settings()
            remote_attr = getattr(
                QtWebEngineWidgets.QWebEngineSettings,
                "LocalContentCanAccessRemoteUrls",
                None,
            )
            if remote_attr is not None:
                settings.setAttribute(remote_attr, True)
        except Exception as exc:
            logger.debug("Could not adjust QtWebEngine settings: %s", exc)
        self._web_view.loadFinished.connect(self._on_load_finished)
        layout.addWidget(self._web_view)

    @property
    def web_view(self):
        return self._web_view

    @property
    def embedded(self) -> bool:
        return self._bridge is not None

    def embed(self, document: str, bridge: "MessageBridge") -> None:
        if self._web_view is None:
            raise EmbedError("QtWebEngine is unavailable")
        if self._web_channel is None:
            raise EmbedError("QtWebChannel is unavailable")
        self._bridge = bridge
        bridge.attach(_QtPageTransport(self._web_view))
        base = QtCore.QUrl(self._base_url) if self._base_url else QtCore.QUrl()
        self._web_view.setHtml(document, base)
        logger.info("Embedded viewer document (%d chars)", len(document))

    def unembed(self) -> None:
        bridge = self._bridge
        self._bridge = None
        if bridge is not None:
            bridge.detach()
        if self._web_view is not None:
            self._web_view.setHtml("")

    def _on_load_finished(self, ok: bool) -> None:
        if not ok:
            logger.warning("QtWebEngine failed to load the viewer document")
            return
        if self._bridge is not None:
            self.documentEmbedded.emit()

    def _handle_runtime_message(self, payload: object) -> None:
        bridge = self._bridge
        if bridge is None:
            logger.debug("Runtime message with no session attached; dropped")
            return
        bridge.receive(payload)


__all__ = ["PageStreamerWidget"]

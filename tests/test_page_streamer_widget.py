from __future__ import annotations

import json

import pytest

pytest.importorskip("qtpy.QtWidgets")

from pagestreamer.core.bridge import MessageBridge, SetPage  # noqa: E402
from pagestreamer.core.errors import EmbedError  # noqa: E402
from pagestreamer.gui.widgets.page_streamer_widget import (  # noqa: E402
    PageStreamerWidget,
    _QtPageTransport,
)


class _DummyPage:
    def __init__(self) -> None:
        self.scripts: list[str] = []

    def runJavaScript(self, script: str) -> None:  # noqa: N802 - Qt API
        self.scripts.append(script)


class _DummyWebView:
    def __init__(self) -> None:
        self._page = _DummyPage()
        self.html: list[str] = []

    def page(self) -> _DummyPage:
        return self._page

    def setHtml(self, html: str, base_url=None) -> None:  # noqa: N802 - Qt API
        del base_url
        self.html.append(html)


def _widget(web_view=None, web_channel=None) -> PageStreamerWidget:
    widget = PageStreamerWidget.__new__(PageStreamerWidget)
    widget._base_url = ""
    widget._bridge = None
    widget._web_view = web_view
    widget._web_channel = web_channel
    return widget


def test_transport_script_calls_runtime_handler() -> None:
    script = _QtPageTransport(_DummyWebView()).script_for(
        {"type": "SET_PAGE", "payload": {"pageNumber": 4}, "version": 1}
    )
    assert script == (
        "window.pageStreamerBridge && "
        'window.pageStreamerBridge.handleHostMessage("SET_PAGE", {"pageNumber": 4});'
    )


def test_embed_attaches_bridge_and_routes_messages() -> None:
    view = _DummyWebView()
    widget = _widget(view, web_channel=object())
    bridge = MessageBridge("qt")
    events = bridge.events()

    widget.embed("<html>viewer</html>", bridge)
    assert widget.embedded
    assert view.html == ["<html>viewer</html>"]

    assert bridge.send(SetPage(2)) is True
    assert 'handleHostMessage("SET_PAGE", {"pageNumber": 2})' in view.page().scripts[-1]

    widget._handle_runtime_message(
        json.dumps({"type": "ZOOM_CHANGED", "payload": {"zoomLevel": 1.5}, "version": 1})
    )
    assert bridge.stats["received"] == 1
    assert events.pending == 1

    widget.unembed()
    assert not bridge.attached
    assert view.html[-1] == ""
    widget._handle_runtime_message({"type": "ZOOM_CHANGED", "payload": {"zoomLevel": 2}})
    assert bridge.stats["received"] == 1


def test_embed_without_web_engine_raises() -> None:
    with pytest.raises(EmbedError):
        _widget(None).embed("<html></html>", MessageBridge("qt"))
    with pytest.raises(EmbedError):
        _widget(_DummyWebView(), web_channel=None).embed("<html></html>", MessageBridge("qt"))

from __future__ import annotations

from typing import TYPE_CHECKING

from qtpy import QtCore

if TYPE_CHECKING:  # pragma: no cover
    from pagestreamer.gui.widgets.page_streamer_widget import PageStreamerWidget


class _PageStreamerHostBridge(QtCore.QObject):
    """Object published to the page as ``pageStreamerHost``."""

    def __init__(self, widget: "PageStreamerWidget") -> None:
        super().__init__(widget)
        self._widget = widget

    @QtCore.Slot("QVariant")
    def postMessage(self, payload: object) -> None:  # noqa: N802 - Qt slot name
        self._widget._handle_runtime_message(payload)


__all__ = ["_PageStreamerHostBridge"]

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence

HOST_OBJECT_NAME = "pageStreamerHost"
RUNTIME_GLOBAL = "pageStreamerBridge"


@dataclass(frozen=True)
class DocumentParams:
    doc_id: str
    api_base_url: str
    viewer_options: Dict[str, Any] = field(default_factory=dict)
    title: str = "PDF Page Streamer"


def _js_literal(value: Any) -> str:
    text = json.dumps(value)
    # keep literals from closing the surrounding <script> element
    return text.replace("</", "<\\/")


_CONTAINER_CSS = """
body {
    margin: 0;
    padding: 0;
    overflow: hidden;
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
}

#pdf-container {
    width: 100%;
    height: 100vh;
    position: relative;
}

.loading-overlay {
    position: absolute;
    top: 0;
    left: 0;
    right: 0;
    bottom: 0;
    background: rgba(255, 255, 255, 0.9);
    display: flex;
    align-items: center;
    justify-content: center;
    flex-direction: column;
    z-index: 1000;
}

.loading-spinner {
    width: 40px;
    height: 40px;
    border: 4px solid #f3f3f3;
    border-top: 4px solid #3498db;
    border-radius: 50%;
    animation: spin 1s linear infinite;
}

@keyframes spin {
    0% { transform: rotate(0deg); }
    100% { transform: rotate(360deg); }
}
"""

# The runtime side of the bridge. Talks to a Qt host through QWebChannel when
# one is present, otherwise to the parent window through postMessage.
_BRIDGE_INITIALIZER_JS = """
class PageStreamerBridge {
    constructor(config) {
        this.docId = config.docId;
        this.apiBaseUrl = config.apiBaseUrl;
        this.viewerOptions = config.viewerOptions || {};
        this.protocolVersion = config.protocolVersion;
        this.viewerEngine = null;
        this.isInitialized = false;
        this.host = null;
        this.outbox = [];

        this.connectHost();
        this.setupMessageListener();
        this.initializeViewer();
    }

    connectHost() {
        if (window.qt && window.qt.webChannelTransport && window.QWebChannel) {
            new QWebChannel(window.qt.webChannelTransport, (channel) => {
                this.host = channel.objects.__HOST_OBJECT__ || null;
                const pending = this.outbox;
                this.outbox = [];
                pending.forEach((message) => this.deliver(message));
            });
        }
    }

    setupMessageListener() {
        window.addEventListener('message', (event) => {
            if (event.source !== window.parent || !event.data) return;
            const { type, payload } = event.data;
            this.handleHostMessage(type, payload || {});
        });
    }

    async initializeViewer() {
        try {
            const container = document.getElementById('pdf-viewer');
            if (!container) {
                throw new Error('PDF viewer container not found');
            }
            const options = Object.assign({}, this.viewerOptions, {
                apiBaseUrl: this.apiBaseUrl,
                autoInitialize: true
            });
            this.viewerEngine = window.createPdfViewerEngine(container, options);
            this.setupEventListeners();
            await this.viewerEngine.initialize();
            await this.viewerEngine.initializeViewer(this.docId);
            const overlay = document.getElementById('loading-overlay');
            if (overlay) overlay.style.display = 'none';
            this.isInitialized = true;
        } catch (error) {
            this.send('ERROR', { message: String(error && error.message || error), code: 'INIT_ERROR' });
        }
    }

    setupEventListeners() {
        const engine = this.viewerEngine;
        engine.addEventListener('pdfLoaded', (data) => {
            this.send('DOCUMENT_LOADED', {
                docId: data.pdfId || this.docId,
                pageCount: data.totalPages,
                title: (data.metadata && data.metadata.title) || null
            });
        });
        engine.addEventListener('pageChanged', (data) => {
            this.send('PAGE_CHANGED', { currentPage: data.currentPage, totalPages: data.totalPages });
        });
        engine.addEventListener('zoomChanged', (data) => {
            this.send('ZOOM_CHANGED', { zoomLevel: data.zoomLevel });
        });
        engine.addEventListener('loadingChanged', (data) => {
            this.send('LOADING_CHANGED', { isLoading: !!data.isLoading, progress: data.progress || 0 });
        });
        engine.addEventListener('error', (data) => {
            this.send('ERROR', { message: data.message, code: data.code || 'ENGINE_ERROR' });
        });
    }

    reportState() {
        const state = this.viewerEngine.getCurrentState();
        this.send('PAGE_CHANGED', { currentPage: state.currentPage, totalPages: state.totalPages });
    }

    handleHostMessage(type, payload) {
        if (!this.isInitialized || !this.viewerEngine) return;
        try {
            switch (type) {
                case 'LOAD_DOCUMENT':
                case 'LOAD_PDF':
                    if (payload.apiBaseUrl) this.apiBaseUrl = payload.apiBaseUrl;
                    this.docId = payload.docId || payload.pdfId || this.docId;
                    this.viewerEngine.initializeViewer(this.docId);
                    break;
                case 'SET_PAGE':
                    this.viewerEngine.setCurrentPage(payload.pageNumber);
                    break;
                case 'SET_ZOOM':
                    this.viewerEngine.setZoomLevel(payload.zoomLevel);
                    break;
                case 'QUERY_CURRENT_PAGE':
                case 'QUERY_PAGE_COUNT':
                case 'GET_CURRENT_PAGE':
                case 'GET_PAGE_COUNT':
                    this.reportState();
                    break;
            }
        } catch (error) {
            this.send('ERROR', { message: String(error && error.message || error), code: 'MESSAGE_HANDLER_ERROR' });
        }
    }

    deliver(message) {
        if (this.host) {
            this.host.postMessage(JSON.stringify(message));
        } else {
            window.parent.postMessage(message, '*');
        }
    }

    send(type, payload) {
        const message = { type: type, payload: payload || {}, version: this.protocolVersion };
        if (!this.host && window.qt && window.qt.webChannelTransport) {
            this.outbox.push(message);
            return;
        }
        this.deliver(message);
    }
}
""".replace("__HOST_OBJECT__", HOST_OBJECT_NAME)


def render_document(
    styles: Sequence[str],
    behaviors: Sequence[str],
    params: DocumentParams,
    *,
    protocol_version: int,
) -> str:
    """Assemble the embeddable viewer page.

    Styles and behaviors are inserted verbatim, in the order given.
    """
    config = {
        "docId": params.doc_id,
        "apiBaseUrl": params.api_base_url,
        "viewerOptions": dict(params.viewer_options),
        "protocolVersion": int(protocol_version),
    }
    style_block = "\n".join(styles)
    behavior_block = "\n".join(behaviors)
    title = (
        str(params.title)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )
    parts = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '  <meta charset="UTF-8">',
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f"  <title>{title}</title>",
        '  <script src="qrc:///qtwebchannel/qwebchannel.js"></script>',
        "  <style>",
        style_block,
        _CONTAINER_CSS,
        "  </style>",
        "</head>",
        "<body>",
        '  <div id="pdf-container">',
        '    <div id="loading-overlay" class="loading-overlay">',
        '      <div class="loading-spinner"></div>',
        "      <p>Loading PDF Viewer...</p>",
        "    </div>",
        '    <div id="pdf-viewer"></div>',
        "  </div>",
        "  <script>",
        behavior_block,
        "  </script>",
        "  <script>",
        _BRIDGE_INITIALIZER_JS,
        f"    window.__pageStreamerConfig = {_js_literal(config)};",
        "    document.addEventListener('DOMContentLoaded', () => {",
        f"      window.{RUNTIME_GLOBAL} = new PageStreamerBridge(window.__pageStreamerConfig);",
        "    });",
        "  </script>",
        "</body>",
        "</html>",
    ]
    return "\n".join(parts)

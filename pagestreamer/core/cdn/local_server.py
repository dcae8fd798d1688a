from __future__ import annotations

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from pagestreamer.utils.logger import logger

_CONTENT_TYPES = {
    ".css": "text/css",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".map": "application/json",
    ".json": "application/json",
}


def _content_type_for(path: Path) -> Optional[str]:
    return _CONTENT_TYPES.get(path.suffix.lower())


class LocalAssetServer:
    """Serve viewer assets from a directory on 127.0.0.1.

    Used with `LoadConfiguration.local(server.base_url)` so bundled assets go
    through the same fetch/validate path as CDN assets.
    """

    def __init__(self, root: Path | str, *, host: str = "127.0.0.1") -> None:
        self.root = Path(root).expanduser().resolve()
        self.host = host
        self._httpd: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._cache: dict[str, tuple[int, bytes]] = {}

    @property
    def port(self) -> Optional[int]:
        if self._httpd is None:
            return None
        return int(getattr(self._httpd, "server_port", 0) or 0)

    @property
    def base_url(self) -> str:
        if self._httpd is None:
            raise RuntimeError("Local asset server is not running")
        return f"http://{self.host}:{self.port}"

    @property
    def running(self) -> bool:
        return self._httpd is not None

    def resolve_asset(self, name: str) -> Optional[Path]:
        try:
            candidate = (self.root / name).resolve()
            candidate.relative_to(self.root)
        except (OSError, ValueError):
            return None
        if not candidate.is_file() or _content_type_for(candidate) is None:
            return None
        return candidate

    def _read(self, asset: Path) -> bytes:
        key = str(asset)
        mtime_ns = int(asset.stat().st_mtime_ns)
        cached = self._cache.get(key)
        if cached is None or cached[0] != mtime_ns:
            cached = (mtime_ns, asset.read_bytes())
            self._cache[key] = cached
        return cached[1]

    def _make_handler(self):
        server = self

        class _Handler(BaseHTTPRequestHandler):
            server_version = "PageStreamerAssets/1.0"

            def log_message(self, fmt: str, *args: object) -> None:  # noqa: D401
                return

            def do_HEAD(self) -> None:  # noqa: N802 - BaseHTTPRequestHandler
                self._serve(send_body=False)

            def do_GET(self) -> None:  # noqa: N802 - BaseHTTPRequestHandler
                self._serve(send_body=True)

            def _serve(self, *, send_body: bool) -> None:
                name = unquote(urlparse(self.path).path or "").lstrip("/")
                asset = server.resolve_asset(name) if name else None
                if asset is None:
                    self.send_error(404)
                    return
                try:
                    payload = server._read(asset)
                except OSError:
                    self.send_error(404)
                    return
                self.send_response(200)
                self.send_header("Content-Type", _content_type_for(asset) or "")
                self.send_header("Cache-Control", "no-store")
                self.send_header("Access-Control-Allow-Origin", "*")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                if send_body:
                    try:
                        self.wfile.write(payload)
                    except OSError:
                        return

        return _Handler

    def start(self) -> str:
        with self._lock:
            if self._httpd is not None:
                return self.base_url
            httpd = ThreadingHTTPServer((self.host, 0), self._make_handler())
            self._httpd = httpd
            self._thread = threading.Thread(target=httpd.serve_forever, daemon=True)
            self._thread.start()
        logger.info("Local asset server for %s started on %s", self.root, self.base_url)
        return self.base_url

    def stop(self) -> None:
        with self._lock:
            httpd = self._httpd
            thread = self._thread
            self._httpd = None
            self._thread = None
        if httpd is None:
            return
        httpd.shutdown()
        httpd.server_close()
        if thread is not None:
            thread.join(timeout=2.0)
        logger.info("Local asset server for %s stopped", self.root)

    def __enter__(self) -> "LocalAssetServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.stop()


def serve_local_assets(root: Path | str) -> LocalAssetServer:
    server = LocalAssetServer(root)
    server.start()
    return server

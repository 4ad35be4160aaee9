"""Local preview server for postpress.

Builds the blog, serves the output directory over HTTP and rebuilds when
sources change:
- HTML responses get a small script that reloads the page over a websocket.
- Missing paths and bare directories answer 404 instead of a listing.
- Each rebuild goes to a staging directory that then replaces the output,
  so the server never sees a half-written site.

Key classes:
- DevServer: Runs the HTTP server, websocket server and file watcher.
- _ReloadHandler: HTTP handler that injects the reload script.
- _ChangeHandler: watchdog handler that triggers rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
import shutil
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import CONFIG_FILENAME, build_project, load_config
from .errors import BuildError

logger = logging.getLogger(__name__)

RELOAD_SCRIPT_TEMPLATE = """
<script>
(() => {{
  const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
  ws.onmessage = (event) => {{
    const data = JSON.parse(event.data || '{{}}');
    if (data.type === 'reload') location.reload();
  }};
}})();
</script>
"""


def inject_reload_script(html: str, script: str) -> str:
    """Insert the reload script before ``</body>``, or append it."""
    if "</body>" in html:
        return html.replace("</body>", f"{script}</body>", 1)
    return html + script


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Static file handler that injects the live reload script into HTML."""

    reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=4001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._send_html(None, 404)

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._send_html(None, 404)
            path_obj = index_path
        elif not path_obj.exists():
            return self._send_html(None, 404)

        if path_obj.suffix == ".html":
            return self._send_html(path_obj, 200)
        return super().send_head()

    def _send_html(self, path: Path | None, status: int):
        """Send an HTML file with the reload script; a 404 uses ``404.html`` if present."""
        if path is None:
            path = Path(self.directory) / "404.html"
            if not path.exists():
                self.send_error(404, "File not found")
                return None
        content = inject_reload_script(path.read_text(encoding="utf-8"), self.reload_script)
        encoded = content.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)
        return None


class DevServer:
    """Preview server with rebuild-on-change and browser live reload.

    Attributes:
        project_root: Root directory of the project.
        config: Site configuration.
        output_dir: Directory being served.
        http_port: Port for the HTTP server.
        ws_port: Port for the reload websocket.
    """

    def __init__(
        self, project_root: Path, http_port: int | None = None, ws_port: int | None = None
    ):
        """Initialize the server.

        Args:
            project_root: Root directory of the project.
            http_port: Override for ``port`` in the configuration.
            ws_port: Override for ``ws_port``; defaults to the HTTP port plus one
                when only the HTTP port is overridden.
        """
        self.project_root = project_root
        self.config = load_config(project_root)
        self.output_dir = project_root / str(self.config["output_dir"])
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self.http_port = int(http_port or self.config["port"])
        if ws_port is not None:
            self.ws_port = int(ws_port)
        elif http_port is not None:
            self.ws_port = self.http_port + 1
        else:
            self.ws_port = int(self.config["ws_port"])
        self._reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=self.ws_port)
        # Links are absolutized against the local server while previewing.
        self._root_url = f"http://localhost:{self.http_port}"
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05

    @property
    def watched_dirs(self) -> list[Path]:
        """Source folders whose changes trigger a rebuild."""
        return [
            self.project_root / str(self.config["posts_dir"]),
            self.project_root / "_layouts",
            self.project_root / str(self.config["static_dir"]),
        ]

    def start(self) -> None:  # pragma: no cover - integration path
        self._build()
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _build(self) -> None:
        staging = self._prepare_staging_dir()
        result = build_project(
            self.project_root,
            root_url=self._root_url,
            clean_output=True,
            output_dir_override=staging,
        )
        self._activate_staging(staging)
        logger.info("Built %d posts", len(result.posts))

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        logger.info("Serving %s at http://localhost:%d", self.output_dir, self.http_port)
        httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("Live reload unavailable on port %d: %s", self.ws_port, exc)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, "0.0.0.0", self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str) -> None:
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except websockets.ConnectionClosed:
                stale.add(ws)
        self._ws_clients -= stale

    def _start_watcher(self) -> None:  # pragma: no cover - integration path
        handler = _ChangeHandler(self)
        observer = Observer()
        for watch_path in self.watched_dirs:
            if watch_path.exists():
                observer.schedule(handler, str(watch_path), recursive=True)
        # _config.yml lives at the root
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def rebuild(self) -> None:
        """Rebuild after a change, unless nothing relevant changed.

        A failed rebuild is logged and the previous output keeps being served.
        """
        now = time.time()
        if self._rebuilding or (now - self._last_rebuild_at) < self._debounce_seconds:
            return
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return
        self._rebuilding = True
        try:
            logger.info("Change detected; rebuilding...")
            try:
                self._build()
            except BuildError as exc:
                logger.error("Rebuild failed: %s", exc)
                return
            self._last_signature = signature
            self._broadcast_reload()
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        sources = [self.project_root / CONFIG_FILENAME]
        for root in self.watched_dirs:
            if root.is_dir():
                sources.extend(sorted(root.rglob("*")))
        for path in sources:
            try:
                if path.is_dir():
                    continue
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.project_root)
            entries.append((str(rel), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None

    def _prepare_staging_dir(self) -> Path:
        staging = self._staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True, exist_ok=True)
        return staging

    def _activate_staging(self, staging: Path) -> None:
        if self.output_dir.exists():
            shutil.rmtree(self.output_dir)
        os.replace(staging, self.output_dir)


class _ChangeHandler(FileSystemEventHandler):
    """Forwards source changes to the server, ignoring its own output."""

    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        for ignored in (self.server.output_dir, self.server._staging_dir):
            if path.is_relative_to(ignored):
                return
        try:
            rel = path.relative_to(self.server.project_root)
        except ValueError:
            rel = path
        if any(part.startswith(".") for part in rel.parts):
            return
        self.server.rebuild()

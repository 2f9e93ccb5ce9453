"""Development server for Weaving.

Serves the built site with live reload on a single port:
- ``/ws`` upgrades to a WebSocket that receives ``reload`` after every rebuild.
- ``/__weaving_sw.js`` serves the service worker that relays reloads to tabs.
- Every other path serves a file from the build directory. HTML responses
  get the reload client injected before ``</body>``; missing paths get the
  site's 404 page (when present) with a 404 status.

Source changes are picked up by the watcher, debounced, rebuilt in a worker
thread and announced through the ``ReloadBroadcaster``.

Key classes:
- DevServer: Runs the initial build, the watcher and the HTTP/WebSocket server.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from http import HTTPStatus
from pathlib import Path
from urllib.parse import unquote, urlsplit

from websockets.asyncio.server import ServerConnection, serve
from websockets.datastructures import Headers
from websockets.http11 import Request, Response

from .build import BuildReport, build
from .config import SiteConfig
from .errors import WeavingError
from .html_utils import inject_before_body_end
from .reload import ReloadBroadcaster, Subscription
from .watcher import DEFAULT_DEBOUNCE, RebuildScheduler, SourceWatcher

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).parent / "assets"
WS_PATH = "/ws"
SERVICE_WORKER_PATH = "/__weaving_sw.js"
RELOAD_MESSAGE = "reload"


class DevServer:
    """Development server with live reload.

    Attributes:
        config: Site configuration.
        broadcaster: Channel the rebuilds publish reload events to.
        debounce: Quiet period before a change triggers a rebuild.
        port: Port actually bound, available once the server is listening.
    """

    def __init__(
        self,
        config: SiteConfig,
        broadcaster: ReloadBroadcaster | None = None,
        debounce: float = DEFAULT_DEBOUNCE,
    ):
        self.config = config
        self.broadcaster = broadcaster or ReloadBroadcaster()
        self.debounce = debounce
        self.port: int | None = None
        self.started = asyncio.Event()
        script = (ASSETS_DIR / "inject-page.js").read_text(encoding="utf-8")
        self._reload_snippet = f"<script>\n{script}</script>\n"
        self._service_worker = (ASSETS_DIR / "service-worker.js").read_bytes()

    def run(self) -> None:  # pragma: no cover - integration path
        """Serve until interrupted with Ctrl+C.

        Raises:
            WeavingError: If the initial build aborts.
        """
        try:
            asyncio.run(self.serve())
        except KeyboardInterrupt:
            logger.info("Shutting down")

    async def serve(
        self,
        stop: asyncio.Event | None = None,
        host: str | None = None,
        port: int | None = None,
        watch: bool = True,
    ) -> None:
        """Build once, then serve and rebuild on changes until ``stop`` is set.

        Args:
            stop: Event ending the server; runs forever when omitted.
            host: Interface to bind, defaults to the configured address.
            port: Port to bind, defaults to the configured address.
            watch: Whether to watch sources for changes.

        Raises:
            WeavingError: If the initial build aborts; nothing is served.
        """
        host = host if host is not None else self.config.serve_config.host
        port = port if port is not None else self.config.serve_config.port
        report = await asyncio.to_thread(build, self.config, True)
        self._log_page_errors(report)

        scheduler = RebuildScheduler(self.rebuild, self.debounce)
        watcher = None
        if watch:
            watcher = SourceWatcher(self.config, scheduler, asyncio.get_running_loop())
            watcher.start()
        try:
            async with serve(
                self._ws_handler, host, port, process_request=self._process_request
            ) as server:
                self.port = next(iter(server.sockets)).getsockname()[1]
                logger.info(
                    "Serving %s at http://%s:%d", self.config.build_dir, host, self.port
                )
                self.started.set()
                if stop is None:
                    await asyncio.Future()
                else:
                    await stop.wait()
        finally:
            if watcher is not None:
                watcher.stop()
            scheduler.cancel()

    async def rebuild(self) -> BuildReport | None:
        """Rebuild the site and announce a reload if every page built."""
        report = await self._build()
        if report is not None and report.ok:
            self.broadcaster.publish()
        return report

    async def _build(self) -> BuildReport | None:
        try:
            report = await asyncio.to_thread(build, self.config, True)
        except WeavingError as exc:
            logger.error("Build failed: %s", exc)
            return None
        self._log_page_errors(report)
        return report

    @staticmethod
    def _log_page_errors(report: BuildReport) -> None:
        for error in report.errors:
            logger.warning("%s", error)

    async def _process_request(
        self, connection: ServerConnection, request: Request
    ) -> Response | None:
        path = urlsplit(request.path).path
        if path == WS_PATH:
            return None
        return await asyncio.to_thread(self.respond, path)

    def respond(self, path: str) -> Response:
        """Build the HTTP response for a non-WebSocket request path."""
        if path == SERVICE_WORKER_PATH:
            return _response(HTTPStatus.OK, "application/javascript", self._service_worker)

        target = self._resolve(path)
        if target is None:
            return self._not_found()
        return self._file_response(HTTPStatus.OK, target)

    def _resolve(self, path: str) -> Path | None:
        segments = [
            part for part in unquote(path).split("/") if part not in ("", ".", "..")
        ]
        target = self.config.build_dir.joinpath(*segments)
        if path.endswith("/") or target.is_dir():
            target = target / "index.html"
        return target if target.is_file() else None

    def _not_found(self) -> Response:
        """Serve the site's 404 page (when present) with a 404 status."""
        for candidate in ("404/index.html", "404.html"):
            error_page = self.config.build_dir / candidate
            if error_page.is_file():
                return self._file_response(HTTPStatus.NOT_FOUND, error_page)
        return _response(HTTPStatus.NOT_FOUND, "text/plain; charset=utf-8", b"404 Not Found")

    def _file_response(self, status: HTTPStatus, target: Path) -> Response:
        content_type, _ = mimetypes.guess_type(target.name)
        content_type = content_type or "application/octet-stream"
        body = target.read_bytes()
        if content_type == "text/html":
            html = body.decode("utf-8", errors="replace")
            body = inject_before_body_end(html, self._reload_snippet).encode("utf-8")
            content_type = "text/html; charset=utf-8"
        return _response(status, content_type, body)

    async def _ws_handler(self, websocket: ServerConnection) -> None:
        async with self.broadcaster.subscribe() as subscription:
            logger.debug("Reload client connected (%d connected)", len(self.broadcaster))
            sender = asyncio.create_task(self._relay(websocket, subscription))
            reader = asyncio.create_task(self._drain(websocket))
            try:
                await asyncio.wait({sender, reader}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (sender, reader):
                    task.cancel()
                await asyncio.gather(sender, reader, return_exceptions=True)
        logger.debug("Reload client disconnected (%d connected)", len(self.broadcaster))

    @staticmethod
    async def _relay(websocket: ServerConnection, subscription: Subscription) -> None:
        async for _ in subscription:
            await websocket.send(RELOAD_MESSAGE)

    @staticmethod
    async def _drain(websocket: ServerConnection) -> None:
        # Clients send nothing meaningful; reading detects the close.
        async for _ in websocket:
            pass


def _response(status: HTTPStatus, content_type: str, body: bytes) -> Response:
    headers = Headers(
        [
            ("Content-Type", content_type),
            ("Content-Length", str(len(body))),
            ("Cache-Control", "no-cache, no-store, must-revalidate"),
            ("Connection", "close"),
        ]
    )
    return Response(status.value, status.phrase, headers, body)

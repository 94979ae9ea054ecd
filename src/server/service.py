from __future__ import annotations

import asyncio
import json
import logging
import threading
from http import HTTPStatus
from pathlib import Path
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlsplit

from websockets.asyncio.server import ServerConnection, broadcast, serve
from websockets.datastructures import Headers
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from contracts.ui_protocol import EVENT_HELLO, EVENT_STATE_UPDATE, STATE_IDLE

from .config import HEALTHZ_PATH, INDEX_PATH, ROOT_PATH, UIServerConfig
from .events import StickyEventStore, make_event
from .static_files import guess_content_type, resolve_static_file

CommandHandler = Callable[[Mapping[str, Any]], None]
Route = tuple[HTTPStatus, bytes, str]

_TEXT = "text/plain; charset=utf-8"
_HTML = "text/html; charset=utf-8"


class UIServer:
    """Websocket event hub and static page server for the focus timer UI.

    The asyncio loop runs in a daemon thread. `publish` may be called from
    any thread; events are fanned out to connected clients and sticky ones
    are replayed to clients that connect later. Incoming text frames are
    decoded into commands and passed to `command_handler` on the server
    thread, so the handler must only enqueue.
    """

    def __init__(
        self,
        config: UIServerConfig,
        logger: Optional[logging.Logger] = None,
        command_handler: Optional[CommandHandler] = None,
    ):
        self._config = config
        self._logger = logger or logging.getLogger("ui_server")
        self._command_handler = command_handler
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_async: Optional[asyncio.Event] = None
        self._started = threading.Event()
        self._startup_error: Optional[Exception] = None
        self._clients: set[ServerConnection] = set()
        self._sticky_events = StickyEventStore()
        self._index_html = Path(self._config.index_file).read_bytes()

    @property
    def host(self) -> str:
        return self._config.host

    @property
    def port(self) -> int:
        return self._config.port

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and self._startup_error is None
        )

    def set_command_handler(self, handler: Optional[CommandHandler]) -> None:
        self._command_handler = handler

    def start(self, timeout_seconds: float = 5.0) -> None:
        if self.is_running:
            self._logger.warning("UI server is already running")
            return

        self._startup_error = None
        self._started.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="ui-server")
        self._thread.start()

        if not self._started.wait(timeout_seconds):
            raise RuntimeError(f"UI server did not start within {timeout_seconds:.1f}s")
        if self._startup_error is not None:
            raise RuntimeError(f"UI server startup failed: {self._startup_error}")

    def stop(self, timeout_seconds: float = 5.0) -> None:
        if self._thread is None:
            return

        if self._loop and self._stop_async:
            self._loop.call_soon_threadsafe(self._stop_async.set)

        self._thread.join(timeout=timeout_seconds)
        if self._thread.is_alive():
            self._logger.error("UI server thread did not stop within %.1fs", timeout_seconds)

        self._thread = None
        self._loop = None
        self._stop_async = None

    def publish_state(self, state: str, *, message: Optional[str] = None, **payload) -> None:
        event_payload = {"state": state, **payload}
        if message:
            event_payload["message"] = message
        self.publish(EVENT_STATE_UPDATE, **event_payload)

    def publish(self, event_type: str, **payload) -> None:
        message = make_event(event_type, **payload)
        # Remembered even while stopped so the first client still sees it.
        self._sticky_events.remember(event_type, message)

        loop = self._loop
        if not self.is_running or loop is None:
            return
        try:
            loop.call_soon_threadsafe(self._fan_out, message)
        except RuntimeError:
            # Loop closed between the check and the call.
            self._logger.debug("Dropped %s event during shutdown", event_type)

    def _fan_out(self, message: str) -> None:
        if self._clients:
            broadcast(self._clients, message)

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._stop_async = asyncio.Event()

        try:
            loop.run_until_complete(self._serve())
        except Exception as error:  # pragma: no cover - exercised manually
            self._startup_error = error
            self._logger.error("UI server failed: %s", error, exc_info=True)
            self._started.set()
        finally:
            loop.close()

    async def _serve(self) -> None:
        # Leaving the context closes open client connections with 1001.
        async with serve(
            self._handle_client,
            host=self._config.host,
            port=self._config.port,
            process_request=self._process_request,
            logger=self._logger,
        ):
            self._logger.info(
                "UI server running at http://%s:%d (websocket: %s)",
                self._config.host,
                self._config.port,
                self._config.websocket_path,
            )
            self._started.set()
            await self._stop_async.wait()
        self._clients.clear()

    async def _handle_client(self, websocket: ServerConnection) -> None:
        self._logger.info("Client connected: %s", websocket.remote_address)
        try:
            for frame in self._greeting():
                await websocket.send(frame)
            # Joined after the replay so live events never overtake it.
            self._clients.add(websocket)
            async for message in websocket:
                self._dispatch_incoming(message)
        except ConnectionClosed:
            pass
        finally:
            self._clients.discard(websocket)
            self._logger.info("Client disconnected: %s", websocket.remote_address)

    def _greeting(self) -> list[str]:
        hello = make_event(EVENT_HELLO, state=STATE_IDLE, message="UI websocket connected")
        return [hello, *self._sticky_events.snapshot()]

    def _dispatch_incoming(self, message: str | bytes) -> None:
        self._logger.debug("Received from UI: %s", message)
        command = decode_command(message)
        if command is None:
            self._logger.warning("Ignoring malformed UI message: %r", message)
            return
        if self._command_handler is None:
            self._logger.debug("No command handler configured; dropping %s", command)
            return
        try:
            self._command_handler(command)
        except Exception as error:
            self._logger.error("UI command handler failed: %s", error, exc_info=True)

    async def _process_request(
        self,
        connection: ServerConnection,
        request: Request,
    ) -> Optional[Response]:
        route = self._route(urlsplit(request.path).path)
        if route is None:
            return None
        status, body, content_type = route
        return _http_response(status, body, content_type)

    def _route(self, path: str) -> Optional[Route]:
        """Answer plain HTTP requests; None lets the websocket handshake proceed."""
        if path == self._config.websocket_path:
            return None
        if path in (ROOT_PATH, INDEX_PATH):
            return HTTPStatus.OK, self._index_html, _HTML
        if path == HEALTHZ_PATH:
            return HTTPStatus.OK, b"ok\n", _TEXT

        asset = resolve_static_file(self._config.static_root, path)
        if asset is None:
            return HTTPStatus.NOT_FOUND, b"not found\n", _TEXT
        return HTTPStatus.OK, asset.read_bytes(), guess_content_type(asset)


def _http_response(status: HTTPStatus, body: bytes, content_type: str) -> Response:
    headers = Headers()
    headers["Content-Type"] = content_type
    headers["Content-Length"] = str(len(body))
    headers["Cache-Control"] = "no-store"
    return Response(status.value, status.phrase, headers, body)


def decode_command(message: str | bytes) -> Optional[dict[str, Any]]:
    """Decode a websocket frame into a command object, or None if malformed."""
    if isinstance(message, bytes):
        try:
            message = message.decode("utf-8")
        except UnicodeDecodeError:
            return None
    try:
        decoded = json.loads(message)
    except ValueError:
        return None
    if not isinstance(decoded, dict):
        return None
    action = decoded.get("action")
    if not isinstance(action, str) or not action.strip():
        return None
    return decoded

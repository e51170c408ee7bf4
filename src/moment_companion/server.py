"""aiohttp server for the companion control channel.

Endpoints (one listening socket):
  GET /  (WebSocket upgrade) -> control channel
  GET /ws                    -> same control channel
  GET /  (plain HTTP)        -> liveness text
  GET /image?path=<rel>      -> screenshot bytes from under the save directory
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import signal
from typing import Any, Dict, Optional, Set

from aiohttp import WSMsgType, web

from .config import CompanionSettings
from .paths import resolve_client_path
from .protocol import (
    ArchiveEventCommand,
    CaptureCommand,
    CommandError,
    DeleteScreenshotCommand,
    EndArchiveCommand,
    GetConfigCommand,
    StartArchiveCommand,
    UpdateConfigCommand,
    error_message,
    parse_command,
)
from .service import CompanionService

logger = logging.getLogger("moment_companion")

LIVENESS_TEXT = "Moment Companion OK"

MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def mime_for(path: str) -> str:
    return MIME_TYPES.get(os.path.splitext(path)[1].lower(), "application/octet-stream")


def origin_allowed(origin: Optional[str], settings: CompanionSettings) -> bool:
    if not origin:
        return True
    if origin in settings.allowed_origins:
        return True
    return any(origin.endswith(suffix) for suffix in settings.allowed_origin_suffixes)


class CompanionServer:
    """Accepts control channels and routes their commands to the service."""

    def __init__(self, service: CompanionService, settings: CompanionSettings):
        self.service = service
        self.settings = settings
        self.clients: Set[web.WebSocketResponse] = set()
        self.had_connection = False
        self.stopped = asyncio.Event()
        self._idle_handle: Optional[asyncio.TimerHandle] = None
        self._shutdown_task: Optional[asyncio.Task] = None
        self._shutting_down = False

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self.handle_root)
        app.router.add_get("/ws", self.handle_websocket)
        app.router.add_get("/image", self.handle_image)
        app.on_shutdown.append(self._close_clients)
        return app

    # HTTP side channel

    async def handle_root(self, request: web.Request) -> web.StreamResponse:
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return await self.handle_websocket(request)
        return web.Response(text=LIVENESS_TEXT, content_type="text/plain")

    async def handle_image(self, request: web.Request) -> web.Response:
        rel = request.query.get("path")
        if not rel:
            return web.Response(
                status=400, text="Missing path parameter", content_type="text/plain"
            )
        target = resolve_client_path(self.service.config.save_dir, rel)
        if target is None:
            logger.warning("Image request outside save directory: %s", rel)
            return web.Response(status=403, text="Forbidden", content_type="text/plain")

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, _read_bytes, target)
        except OSError:
            return web.Response(status=404, text="Not found", content_type="text/plain")
        return web.Response(
            body=data,
            content_type=mime_for(target),
            headers={"Cache-Control": "public, max-age=3600"},
        )

    # Control channel

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        origin = request.headers.get("Origin")
        if not origin_allowed(origin, self.settings):
            logger.warning("Rejected connection from origin %s", origin)
            raise web.HTTPForbidden(text="Origin not allowed")

        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self._on_connect(ws)
        try:
            await self._send(ws, self.service.config_payload())
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self.handle_message(ws, msg.data)
                elif msg.type == WSMsgType.BINARY:
                    await self.handle_message(ws, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.warning("Channel error: %s", ws.exception())
        finally:
            self._on_disconnect(ws)
        return ws

    def _on_connect(self, ws: web.WebSocketResponse) -> None:
        self.clients.add(ws)
        self.had_connection = True
        self._cancel_idle_timer()
        logger.info("Meeting app connected (%d open)", len(self.clients))

    def _on_disconnect(self, ws: web.WebSocketResponse) -> None:
        self.clients.discard(ws)
        logger.info("Meeting app disconnected (%d open)", len(self.clients))
        if not self.clients and self.had_connection and not self._shutting_down:
            self._start_idle_timer()

    async def handle_message(self, ws: web.WebSocketResponse, raw: Any) -> None:
        try:
            command = parse_command(raw)
            reply = await self.dispatch(command)
        except CommandError as exc:
            reply = error_message(str(exc))
        except Exception:
            logger.exception("Error processing message")
            reply = error_message("Internal error")
        if reply is not None:
            await self._send(ws, reply)

    async def dispatch(self, command: Any) -> Optional[Dict[str, Any]]:
        service = self.service
        if isinstance(command, CaptureCommand):
            return await service.capture(command)
        if isinstance(command, UpdateConfigCommand):
            payload = service.update_config(command.fields)
            # The broadcast doubles as the sender's reply.
            await self.broadcast(payload)
            return None
        if isinstance(command, GetConfigCommand):
            return service.config_payload()
        if isinstance(command, StartArchiveCommand):
            return await service.start_archive(command)
        if isinstance(command, ArchiveEventCommand):
            return await service.archive_event(command)
        if isinstance(command, EndArchiveCommand):
            return await service.end_archive()
        if isinstance(command, DeleteScreenshotCommand):
            return await service.delete_screenshot(command)
        raise CommandError("Unknown command")

    async def broadcast(self, payload: Dict[str, Any]) -> None:
        clients = list(self.clients)
        if not clients:
            return
        await asyncio.gather(*(self._send(ws, payload) for ws in clients))

    async def _send(self, ws: web.WebSocketResponse, payload: Dict[str, Any]) -> None:
        if ws.closed:
            return
        try:
            await ws.send_str(json.dumps(payload))
        except (ConnectionError, RuntimeError) as exc:
            logger.debug("Send failed: %s", exc)

    # Lifetime

    def _start_idle_timer(self) -> None:
        self._cancel_idle_timer()
        timeout = self.settings.idle_timeout_seconds
        logger.info("No connections. Shutting down in %ss...", timeout)
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(timeout, self._on_idle_timeout)

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def _on_idle_timeout(self) -> None:
        self._idle_handle = None
        if self.clients:
            return
        self.request_shutdown()

    def request_shutdown(self) -> None:
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self.shutdown())

    async def shutdown(self) -> None:
        """End any active archive, then signal the run loop to stop."""
        if self._shutting_down:
            return
        self._shutting_down = True
        self._cancel_idle_timer()
        logger.info("Shutting down...")
        await self.service.shutdown()
        self.stopped.set()

    async def _close_clients(self, _: web.Application) -> None:
        for ws in list(self.clients):
            with contextlib.suppress(Exception):
                await ws.close()


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as handle:
        return handle.read()


async def serve(server: CompanionServer) -> None:
    settings = server.settings
    app = server.build_app()
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, settings.host, settings.port)
    await site.start()
    logger.info(
        "Moment Companion listening on ws://%s:%s", settings.host, settings.port
    )
    logger.info("Capture mode: %s", server.service.config.capture_mode)
    logger.info("Save directory: %s", server.service.config.save_dir)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, server.request_shutdown)

    try:
        await server.stopped.wait()
    finally:
        if not server.stopped.is_set():
            await server.shutdown()
        await runner.cleanup()

"""
Route registration for the dev stream server.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Run the server half of the stream protocol
  (origin check -> auth frame -> periodic snapshots)
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from constants import (
    AUTH_READ_TIMEOUT_S,
    CLOSE_INTERNAL_ERROR,
    CLOSE_NORMAL,
    CLOSE_POLICY_VIOLATION,
    STREAM_PATH_DASHBOARD,
    STREAM_PATH_DOCKER,
    STREAM_PATH_HOST,
    STREAM_PATH_NETWORK,
)
from config import AppConfig
from observability.logger import log_event
from realtime.handshake import HandshakeError, build_auth_error_frame, read_auth_frame

from server.origin import is_allowed_origin
from server.snapshots import SnapshotSource


SnapshotFn = Callable[[], Awaitable[dict[str, Any]]]


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket(STREAM_PATH_DASHBOARD)
    async def dashboard_stream(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        snapshots: SnapshotSource = app.state.snapshots
        await serve_stream(ws, app.state.config, snapshots.dashboard)

    @app.websocket(STREAM_PATH_HOST)
    async def host_stream(ws: WebSocket, host_id: str) -> None: # pyright: ignore[reportUnusedFunction]
        snapshots: SnapshotSource = app.state.snapshots
        await serve_stream(ws, app.state.config, lambda: snapshots.host_detail(host_id))

    @app.websocket(STREAM_PATH_DOCKER)
    async def docker_stream(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        snapshots: SnapshotSource = app.state.snapshots
        await serve_stream(ws, app.state.config, snapshots.docker)

    @app.websocket(STREAM_PATH_NETWORK)
    async def network_stream(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        snapshots: SnapshotSource = app.state.snapshots
        await serve_stream(ws, app.state.config, snapshots.network)


# ------------------------------------------------------------------
# Stream protocol
# ------------------------------------------------------------------

async def serve_stream(
    ws: WebSocket,
    config: AppConfig,
    build_snapshot: SnapshotFn,
) -> None:
    """
    One connection = one authenticated snapshot stream.

    Origin refusal closes before accept (client sees HTTP 403).
    Auth failures send auth_error and close.
    """
    origin = ws.headers.get("origin", "")
    if not is_allowed_origin(origin, config.base_url, config.allowed_origins):
        await ws.close(code=CLOSE_POLICY_VIOLATION)
        return

    await ws.accept()

    reader: asyncio.Task[None] | None = None
    try:
        if not await _authenticate(ws, config):
            return

        reader = asyncio.create_task(_discard_client_frames(ws))
        while True:
            try:
                snapshot = await build_snapshot()
            except KeyError as exc:
                log_event({
                    "event_type": "ws_snapshot_unavailable",
                    "path": ws.url.path,
                    "missing": str(exc),
                }, level="warning")
                await ws.close(code=CLOSE_INTERNAL_ERROR)
                return

            await ws.send_text(json.dumps(snapshot))

            done, _ = await asyncio.wait({reader}, timeout=config.snapshot_interval_s)
            if reader in done:
                return

    except WebSocketDisconnect:
        return

    except Exception as exc:  # pylint: disable=broad-exception-caught
        log_event({
            "event_type": "WS_FATAL_ERROR",
            "path": ws.url.path,
            "exception": type(exc).__name__,
            "message": str(exc),
        }, level="error")

    finally:
        if reader is not None:
            reader.cancel()


async def _authenticate(ws: WebSocket, config: AppConfig) -> bool:
    try:
        msg = await asyncio.wait_for(ws.receive(), timeout=AUTH_READ_TIMEOUT_S)
    except asyncio.TimeoutError:
        await _reject(ws, "missing auth")
        return False

    if msg["type"] == "websocket.disconnect":
        return False

    raw = msg.get("text")
    if raw is None:
        raw = (msg.get("bytes") or b"").decode("utf-8", errors="replace")

    try:
        token = read_auth_frame(raw)
    except HandshakeError as exc:
        await _reject(ws, str(exc))
        return False

    if token not in config.stream_tokens:
        await _reject(ws, "unauthorized")
        return False

    log_event({"event_type": "ws_authenticated", "path": ws.url.path}, level="debug")
    return True


async def _reject(ws: WebSocket, reason: str) -> None:
    log_event({"event_type": "ws_auth_rejected", "path": ws.url.path, "reason": reason}, level="warning")
    await ws.send_text(build_auth_error_frame(reason))
    await ws.close(code=CLOSE_NORMAL)


async def _discard_client_frames(ws: WebSocket) -> None:
    """Read and drop client frames; returns when the client goes away."""
    while True:
        msg = await ws.receive()
        if msg["type"] == "websocket.disconnect":
            return

"""
Realtime stream transport.

Responsibilities:
- Define the narrow Transport capability the manager consumes
- Open websocket client connections (websockets asyncio API)
- Normalize termination into a CloseSignal
- Map handshake failures to close codes the classifier understands

Non-responsibilities:
- Retry, backoff, or any state decisions
- Frame parsing
"""

from __future__ import annotations

import asyncio
import urllib.parse
from typing import AsyncIterator, Awaitable, Callable, Protocol, runtime_checkable

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from constants import (
    CLOSE_ABNORMAL,
    CLOSE_POLICY_VIOLATION,
    HTTP_FORBIDDEN,
    TRANSPORT_MAX_FRAME_BYTES,
)
from realtime.close_classifier import CloseSignal


_SCHEMES: dict[str, str] = {
    "http": "ws",
    "https": "wss",
    "ws": "ws",
    "wss": "wss",
}


# ---------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------

@runtime_checkable
class Transport(Protocol):
    async def send(self, frame: str) -> None: ...
    def frames(self) -> AsyncIterator[str | bytes]:
        """Yield inbound frames until the transport terminates (never raises on close)."""
    def close_signal(self) -> CloseSignal:
        """Close code/reason once frames() is exhausted."""
    async def close(self) -> None: ...


TransportFactory = Callable[[str], Awaitable[Transport]]


class TransportOpenError(Exception):
    """Transport could not be opened. Carries the close code to classify."""

    def __init__(self, code: int, reason: str) -> None:
        super().__init__(f"{code}: {reason}")
        self.code = code
        self.reason = reason


# ---------------------------------------------------------------------
# URL building
# ---------------------------------------------------------------------

def build_stream_url(base_url: str, path: str) -> str:
    """
    Resolve a stream path against the application base URL.

    https -> wss, http -> ws. ws/wss base URLs are kept as-is.

    Raises:
        ValueError for any other scheme or a base URL without a host.
    """
    parsed = urllib.parse.urlsplit(base_url)
    scheme = _SCHEMES.get(parsed.scheme.lower())
    if scheme is None or not parsed.netloc:
        raise ValueError(f"Unsupported base URL for streaming: {base_url!r}")

    if not path.startswith("/"):
        path = "/" + path

    return urllib.parse.urlunsplit((scheme, parsed.netloc, path, "", ""))


# ---------------------------------------------------------------------
# websockets implementation
# ---------------------------------------------------------------------

class WebsocketTransport:
    """Adapter from a websockets ClientConnection to the Transport protocol."""

    def __init__(self, conn: ClientConnection) -> None:
        self._conn = conn

    async def send(self, frame: str) -> None:
        await self._conn.send(frame)

    async def frames(self) -> AsyncIterator[str | bytes]:
        try:
            async for message in self._conn:
                yield message
        except ConnectionClosed:
            # Abnormal closure; close_signal() carries the code
            return

    def close_signal(self) -> CloseSignal:
        code = self._conn.close_code
        return CloseSignal(
            code=code if code is not None else CLOSE_ABNORMAL,
            reason=self._conn.close_reason or None,
        )

    async def close(self) -> None:
        await self._conn.close()


def websocket_factory(
    *,
    origin: str | None = None,
    open_timeout_s: float = 10.0,
) -> TransportFactory:
    """
    Build a TransportFactory that opens websockets client connections.

    Open failures raise TransportOpenError:
    - HTTP 403 on upgrade (origin refused) -> 1008 policy violation
    - anything else (refused, DNS, timeout, other status) -> 1006
    """

    async def _open(url: str) -> Transport:
        try:
            conn = await ws_connect(
                url,
                origin=origin,  # type: ignore[arg-type]
                max_size=TRANSPORT_MAX_FRAME_BYTES,
                open_timeout=open_timeout_s,
            )
        except InvalidStatus as e:
            status = e.response.status_code
            code = CLOSE_POLICY_VIOLATION if status == HTTP_FORBIDDEN else CLOSE_ABNORMAL
            raise TransportOpenError(code, f"http_{status}") from e
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportOpenError(CLOSE_ABNORMAL, f"{type(e).__name__}: {e}") from e

        return WebsocketTransport(conn)

    return _open

"""
Inbound message dispatcher.

Responsibilities:
- Parse raw transport frames into payload dicts
- Drop malformed frames (logged, never raised)
- Route auth_error frames to the reducer as AuthRejected
- Route every other payload to the reducer as PayloadReceived
- Deliver accepted payloads to the consumer, isolating its failures

Non-responsibilities:
- Any state machine logic (the reducer decides whether a payload is
  delivered)
- Payload semantics beyond the discriminator
"""

from __future__ import annotations

import json
from typing import Any, Callable

from constants import FRAME_TYPE_FIELD
from observability.logger import log_event
from realtime.events import AuthRejected, EventType, PayloadReceived, TransportEvent
from realtime.handshake import is_auth_rejection, rejection_reason


Consumer = Callable[[dict[str, Any]], None]

_PREVIEW_CHARS = 100


def parse_frame(raw: str | bytes) -> dict[str, Any] | None:
    """
    Decode one frame.

    Returns None unless the frame is a JSON object with a string
    discriminator.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None

    if not isinstance(data, dict):
        return None

    if not isinstance(data.get(FRAME_TYPE_FIELD), str):
        return None

    return data


class MessageDispatcher:
    """
    One dispatcher per ConnectionManager.

    route() runs before the reducer; deliver() runs as a reducer
    command, so payloads reach the consumer in arrival order and only
    while the transport that produced them is current.
    """

    def __init__(self, consumer: Consumer) -> None:
        self._consumer = consumer

    def route(
        self,
        *,
        transport_id: int,
        raw: str | bytes,
        ts_ms: int,
    ) -> TransportEvent | None:
        payload = parse_frame(raw)
        if payload is None:
            log_event({
                "ts_ms": ts_ms,
                "event_type": "malformed_frame_dropped",
                "transport_id": transport_id,
                "frame_len": len(raw),
                "frame_preview": _preview(raw),
            }, level="debug")
            return None

        if is_auth_rejection(payload):
            return AuthRejected(
                event_type=EventType.AUTH_REJECTED,
                ts_ms=ts_ms,
                transport_id=transport_id,
                reason=rejection_reason(payload),
            )

        return PayloadReceived(
            event_type=EventType.PAYLOAD_RECEIVED,
            ts_ms=ts_ms,
            transport_id=transport_id,
            payload=payload,
        )

    def deliver(self, payload: dict[str, Any]) -> None:
        """Invoke the consumer once. Consumer exceptions are logged and swallowed."""
        try:
            self._consumer(payload)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "consumer_error",
                "payload_type": payload.get(FRAME_TYPE_FIELD),
                "exception": type(exc).__name__,
                "message": str(exc),
            }, level="warning")


def _preview(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        return raw[:_PREVIEW_CHARS].decode("utf-8", errors="replace")
    return raw[:_PREVIEW_CHARS]

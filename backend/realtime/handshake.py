"""
Auth handshake frames.

Client -> server, immediately after transport open:
    {"type": "auth", "token": <credential>}

Server -> client on rejection:
    {"type": "auth_error", "error": <reason>}

Both halves of the exchange live here so the client runtime and the
dev stream server cannot drift apart.
"""
from __future__ import annotations

import json
from typing import Any, Mapping

from constants import FRAME_TYPE_AUTH, FRAME_TYPE_AUTH_ERROR, FRAME_TYPE_FIELD


class HandshakeError(ValueError):
    """Raised by the server side when the first frame is not a valid auth frame."""


def build_auth_frame(token: str) -> str:
    """Serialize the handshake frame. The token is forwarded as-is."""
    return json.dumps({FRAME_TYPE_FIELD: FRAME_TYPE_AUTH, "token": token})


def build_auth_error_frame(reason: str) -> str:
    return json.dumps({FRAME_TYPE_FIELD: FRAME_TYPE_AUTH_ERROR, "error": reason})


def is_auth_rejection(payload: Mapping[str, Any]) -> bool:
    """True iff a parsed inbound payload is the server's auth_error frame."""
    return payload.get(FRAME_TYPE_FIELD) == FRAME_TYPE_AUTH_ERROR


def rejection_reason(payload: Mapping[str, Any]) -> str | None:
    reason = payload.get("error")
    return reason if isinstance(reason, str) else None


def read_auth_frame(raw: str) -> str:
    """
    Server side: extract the token from the first client frame.

    Raises:
        HandshakeError("missing auth") if the frame is not JSON
        HandshakeError("invalid auth") if it is not a non-empty auth frame
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HandshakeError("missing auth") from e

    if not isinstance(data, dict) or data.get(FRAME_TYPE_FIELD) != FRAME_TYPE_AUTH:
        raise HandshakeError("invalid auth")

    token = data.get("token")
    if not isinstance(token, str) or not token:
        raise HandshakeError("invalid auth")

    return token

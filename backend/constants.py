"""
PROTOCOL-AS-CONSTANTS
---------------------
Single source of truth for every behavioural constant of the realtime
stream client and the development stream server.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Reconnect backoff
# =============================================================================

RETRY_BASE_DELAY_MS: Final[int] = 2_000
RETRY_MAX_DELAY_MS: Final[int] = 30_000

# =============================================================================
# Websocket close codes (RFC 6455 + application range)
# =============================================================================

CLOSE_NORMAL: Final[int] = 1000
CLOSE_GOING_AWAY: Final[int] = 1001
CLOSE_PROTOCOL_ERROR: Final[int] = 1002
CLOSE_ABNORMAL: Final[int] = 1006
CLOSE_POLICY_VIOLATION: Final[int] = 1008
CLOSE_INTERNAL_ERROR: Final[int] = 1011

# Reserved for a server-side "session expired" signal; the server does not
# send it yet but the client already treats it as terminal.
CLOSE_SESSION_EXPIRED: Final[int] = 4001

# Codes that mean "the server will keep refusing this client as configured".
POLICY_CLOSE_CODES: Final[frozenset[int]] = frozenset({
    CLOSE_PROTOCOL_ERROR,
    CLOSE_POLICY_VIOLATION,
})

# HTTP status returned by the server when it refuses the upgrade (origin check)
HTTP_FORBIDDEN: Final[int] = 403

# =============================================================================
# Frame discriminators
# =============================================================================

FRAME_TYPE_FIELD: Final[str] = "type"
FRAME_TYPE_AUTH: Final[str] = "auth"
FRAME_TYPE_AUTH_ERROR: Final[str] = "auth_error"

# =============================================================================
# Stream endpoints
# =============================================================================

STREAM_PATH_PREFIX: Final[str] = "/api/v1/ws"
STREAM_PATH_DASHBOARD: Final[str] = f"{STREAM_PATH_PREFIX}/dashboard"
STREAM_PATH_DOCKER: Final[str] = f"{STREAM_PATH_PREFIX}/docker"
STREAM_PATH_NETWORK: Final[str] = f"{STREAM_PATH_PREFIX}/network"
STREAM_PATH_HOST: Final[str] = f"{STREAM_PATH_PREFIX}/hosts/{{host_id}}"

# =============================================================================
# Server-side timing
# =============================================================================

AUTH_READ_TIMEOUT_S: Final[float] = 5.0
SNAPSHOT_INTERVAL_S_DEFAULT: Final[float] = 10.0

# =============================================================================
# Transport limits
# =============================================================================

# Snapshots carry full host lists; keep well above the websockets default.
TRANSPORT_MAX_FRAME_BYTES: Final[int] = 2**22

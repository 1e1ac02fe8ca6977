"""
Connection state enumeration.

Rules:
- This enum defines ONLY the connection lifecycle states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """
    Lifecycle of one realtime stream connection, as seen by observers.

    Exactly one state is active at a time.

    CONNECTING:
        Explicit connect in progress; no payload received yet.

    CONNECTED:
        At least one accepted application payload arrived on the
        current transport.

    RECONNECTING:
        Transport was lost with a retryable disposition; a retry is
        scheduled or a retry transport is opening.

    ERROR:
        Terminal rejection (auth or policy). No automatic retry.

    DISCONNECTED:
        Manually closed by the owner. No automatic retry.
    """

    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ERROR = "error"
    DISCONNECTED = "disconnected"


# States from which only an explicit connect() resumes the cycle.
TERMINAL_STATES: frozenset[ConnectionState] = frozenset({
    ConnectionState.ERROR,
    ConnectionState.DISCONNECTED,
})

"""
Authoritative connection context container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
- One instance per ConnectionManager; never shared.
"""
from __future__ import annotations

from dataclasses import dataclass

from realtime.enums.state import ConnectionState


@dataclass(frozen=True)
class ConnectionContext:
    """Immutable snapshot of all manager-owned connection state."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    state: ConnectionState = ConnectionState.CONNECTING

    # Human-readable cause of the last terminal failure, or of a failed
    # first attempt. None while healthy or merely reconnecting.
    last_error: str | None = None

    # Set by disconnect(), cleared by connect().
    manual_close: bool = False

    # ------------------------------------------------------------------
    # Retry bookkeeping
    # ------------------------------------------------------------------
    # Failures since the last CONNECTED or explicit connect().
    attempt: int = 0

    # ------------------------------------------------------------------
    # Transport tracking
    # ------------------------------------------------------------------
    # Monotonic; bumped on every OpenTransport. 0 = never opened.
    transport_id: int = 0

    # True while the transport with transport_id is opening or open.
    transport_active: bool = False


@dataclass(frozen=True)
class ConnectionStatus:
    """
    Read-only projection handed to observers.

    Carries no transport bookkeeping.
    """
    state: ConnectionState
    last_error: str | None
    attempt: int

    @staticmethod
    def from_context(context: ConnectionContext) -> ConnectionStatus:
        return ConnectionStatus(
            state=context.state,
            last_error=context.last_error,
            attempt=context.attempt,
        )

"""
Unified event definitions for the connection reducer (v1).

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Transport events carry transport_id for stale gating.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Owner requests
    # ------------------------------------------------------------------
    CONNECT_REQUESTED = "CONNECT_REQUESTED"
    DISCONNECT_REQUESTED = "DISCONNECT_REQUESTED"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    TRANSPORT_OPENED = "TRANSPORT_OPENED"
    TRANSPORT_CLOSED = "TRANSPORT_CLOSED"

    # ------------------------------------------------------------------
    # Inbound frames (already parsed by the dispatcher)
    # ------------------------------------------------------------------
    PAYLOAD_RECEIVED = "PAYLOAD_RECEIVED"
    AUTH_REJECTED = "AUTH_REJECTED"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    RETRY_READY = "RETRY_READY"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class TransportEvent(Event):
    """
    Base class for events produced by one specific transport.

    The reducer MUST ignore events whose transport_id does not match the
    currently active transport.
    """

    transport_id: int


# =============================================================================
# Owner Requests
# =============================================================================

@dataclass(frozen=True)
class ConnectRequested(Event):
    """Owner called connect() and a credential was available."""
    token: str


@dataclass(frozen=True)
class DisconnectRequested(Event):
    """Owner called disconnect()."""


# =============================================================================
# Transport Events
# =============================================================================

@dataclass(frozen=True)
class TransportOpened(TransportEvent):
    """Transport-level connection established (not yet authenticated)."""


@dataclass(frozen=True)
class TransportClosed(TransportEvent):
    """
    Transport terminated, or failed to open.

    code follows websocket close code semantics; open failures use
    1006 (or 1008 when the upgrade was refused by policy).
    """
    code: int
    reason: str | None = None


@dataclass(frozen=True)
class PayloadReceived(TransportEvent):
    """A well-formed application payload (not an auth rejection)."""
    payload: dict[str, Any]


@dataclass(frozen=True)
class AuthRejected(TransportEvent):
    """Server answered the handshake with an auth_error frame."""
    reason: str | None = None


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class RetryReady(Event):
    """
    Backoff delay elapsed.

    token is the credential read at expiry time; None when the
    credential store was empty.
    """
    token: str | None

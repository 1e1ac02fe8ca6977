"""
Side-effect command definitions for the connection reducer (v1).

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    Stable discriminants used for logging and runtime dispatch.
    """

    # Transport
    OPEN_TRANSPORT = "OPEN_TRANSPORT"
    SEND_HANDSHAKE = "SEND_HANDSHAKE"
    CLOSE_TRANSPORT = "CLOSE_TRANSPORT"

    # Retry timer
    SCHEDULE_RETRY = "SCHEDULE_RETRY"
    CANCEL_RETRY = "CANCEL_RETRY"

    # Consumer
    DELIVER_PAYLOAD = "DELIVER_PAYLOAD"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Transport Commands
# =============================================================================

@dataclass(frozen=True)
class OpenTransport(Command):
    """
    Request to open a new transport.

    The runtime must have no open transport when this is executed.
    """
    transport_id: int
    token: str
    command_type: CommandType = CommandType.OPEN_TRANSPORT


@dataclass(frozen=True)
class SendHandshake(Command):
    """Send the auth frame on the given transport."""
    transport_id: int
    command_type: CommandType = CommandType.SEND_HANDSHAKE


@dataclass(frozen=True)
class CloseTransport(Command):
    """Release the given transport. Idempotent."""
    transport_id: int
    command_type: CommandType = CommandType.CLOSE_TRANSPORT


# =============================================================================
# Retry Commands
# =============================================================================

@dataclass(frozen=True)
class ScheduleRetry(Command):
    """
    Request that runtime arm the retry timer.

    Runtime responsibilities:
    - cancel any previously armed retry timer
    - wait delay_ms
    - emit RetryReady(token=<current credential>)

    attempt is the counter value after this failure (observability only).
    """
    delay_ms: int
    attempt: int
    command_type: CommandType = CommandType.SCHEDULE_RETRY


@dataclass(frozen=True)
class CancelRetry(Command):
    """Cancel the retry timer if armed. Idempotent."""
    command_type: CommandType = CommandType.CANCEL_RETRY


# =============================================================================
# Consumer Commands
# =============================================================================

@dataclass(frozen=True)
class DeliverPayload(Command):
    """Forward one payload, unmodified, to the registered consumer."""
    payload: dict[str, Any]
    command_type: CommandType = CommandType.DELIVER_PAYLOAD


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    level: str = "info"
    command_type: CommandType = CommandType.LOG_EVENT

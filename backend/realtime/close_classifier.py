"""
Close reason classification.

(close signal, lifecycle position) -> CloseDisposition

Rules:
- Pure: no side effects, no IO, no clocks.
- The only place that decides retryable vs terminal.
- Messages are operator-facing and distinguish configuration
  problems from credential problems.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import CLOSE_SESSION_EXPIRED, POLICY_CLOSE_CODES
from realtime.enums.disposition import CloseCause, Disposition
from realtime.enums.state import ConnectionState


MSG_POLICY_REJECTED = (
    "Connection refused by the server: check the base URL / allowed origins "
    "configuration"
)
MSG_AUTH_REJECTED = "Authentication rejected: sign in again"
MSG_SESSION_EXPIRED = "Session expired: reload and sign in again"
MSG_UNREACHABLE = (
    "Unable to connect: check that the server is reachable and the base URL "
    "is configured correctly"
)


@dataclass(frozen=True)
class CloseSignal:
    """Status code + optional reason received when a transport terminates."""
    code: int
    reason: str | None = None


@dataclass(frozen=True)
class CloseDisposition:
    """
    Classifier output.

    message is None for causes that must not be surfaced as an alarm
    (plain interruptions).
    """
    disposition: Disposition
    cause: CloseCause
    message: str | None = None

    @property
    def retryable(self) -> bool:
        return self.disposition is Disposition.RETRYABLE


AUTH_REJECTED = CloseDisposition(
    disposition=Disposition.TERMINAL,
    cause=CloseCause.AUTH_REJECTED,
    message=MSG_AUTH_REJECTED,
)


def classify_close(
    signal: CloseSignal,
    *,
    state: ConnectionState,
    attempt: int,
) -> CloseDisposition:
    """
    Map a transport termination to a disposition.

    state/attempt describe the lifecycle position at the moment of
    closure. A closure while CONNECTING with attempt 0 means the very
    first attempt never produced a payload: still retryable, but the
    cause is UNREACHABLE so observers get a diagnostic message.
    """
    if signal.code in POLICY_CLOSE_CODES:
        return CloseDisposition(
            disposition=Disposition.TERMINAL,
            cause=CloseCause.POLICY_REJECTED,
            message=MSG_POLICY_REJECTED,
        )

    if signal.code == CLOSE_SESSION_EXPIRED:
        return CloseDisposition(
            disposition=Disposition.TERMINAL,
            cause=CloseCause.SESSION_EXPIRED,
            message=MSG_SESSION_EXPIRED,
        )

    if state is ConnectionState.CONNECTING and attempt == 0:
        return CloseDisposition(
            disposition=Disposition.RETRYABLE,
            cause=CloseCause.UNREACHABLE,
            message=MSG_UNREACHABLE,
        )

    return CloseDisposition(
        disposition=Disposition.RETRYABLE,
        cause=CloseCause.INTERRUPTED,
    )

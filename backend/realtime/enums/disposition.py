"""
Failure disposition enumerations.

Rules:
- Disposition answers: "may the runtime retry?"
- CloseCause answers:  "why did the stream end?" (diagnostics only)
- The classifier decides the mapping; these enums encode no behavior.
"""

from __future__ import annotations

from enum import Enum


class Disposition(str, Enum):
    """Retry eligibility of a stream termination."""

    RETRYABLE = "retryable"
    TERMINAL = "terminal"


class CloseCause(str, Enum):
    """
    Diagnostic cause attached to a disposition.

    POLICY_REJECTED:
        Server refused origin/protocol. Reconfiguration required.

    AUTH_REJECTED:
        Server sent an auth_error frame. Credential is invalid.

    SESSION_EXPIRED:
        Application close code reserved for expired sessions.

    UNREACHABLE:
        First-ever attempt failed before any payload arrived.

    INTERRUPTED:
        Any other closure. Transient.
    """

    POLICY_REJECTED = "policy_rejected"
    AUTH_REJECTED = "auth_rejected"
    SESSION_EXPIRED = "session_expired"
    UNREACHABLE = "unreachable"
    INTERRUPTED = "interrupted"

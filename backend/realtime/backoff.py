"""
Reconnect backoff policy (v1).

Purpose:
- Centralize the reconnect delay rule
- Keep reducer pure
- Allow runtime to make deterministic retry decisions

This module contains NO timers, NO async, NO side effects.

No jitter is applied. Many clients dropped by the same outage will
retry in lockstep; see DESIGN.md before adding randomness here.
"""
from __future__ import annotations

from constants import RETRY_BASE_DELAY_MS, RETRY_MAX_DELAY_MS


def retry_delay_ms(attempt: int) -> int:
    """
    Returns delay before the retry that follows `attempt` prior failures.

    delay(n) = min(base * 2**n, max)

    attempt == 0 is the first retry (2000 ms). The cap is reached at
    attempt 4 (32000 ms clamped to 30000 ms).

    Raises:
        ValueError if attempt is negative.
    """
    if attempt < 0:
        raise ValueError(f"attempt must be >= 0, got {attempt}")

    # Past this the cap always wins
    if attempt >= 32:
        return RETRY_MAX_DELAY_MS

    return min(RETRY_BASE_DELAY_MS * (2 ** attempt), RETRY_MAX_DELAY_MS)

"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- Drop lines below the configured minimum level
- No side effects beyond logging
"""

from __future__ import annotations

import json
import sys
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "error": 40,
}


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_min_level: int = _LEVELS["info"]
_enabled: bool = True


def configure_logging(*, level: str = "INFO", enabled: bool = True) -> None:
    """
    Set the minimum level and master switch.

    Called once at process startup from AppConfig.
    Unknown level names fall back to INFO.
    """
    global _min_level, _enabled  # pylint: disable=global-statement
    _min_level = _LEVELS.get(level.lower(), _LEVELS["info"])
    _enabled = enabled


def log_event(event: Mapping[str, Any], level: str = "info") -> None:
    """
    Write a single JSONL event to stdout.

    The caller is responsible for:
    - Supplying a fully-formed event dict
    - Including ts_ms, event_type, etc.

    This function:
    - Serializes to JSON (with the level attached)
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    if not _enabled or _LEVELS.get(level, _LEVELS["info"]) < _min_level:
        return

    try:
        line = json.dumps(
            {"level": level, **event},
            ensure_ascii=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the runtime
        fallback: dict[str, Any] = {
            "level": "error",
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)

"""
Websocket origin policy for the dev stream server.

Accepted:
- no Origin header (non-browser clients)
- localhost / 127.0.0.1 / [::1]
- the base URL's host (scheme mismatch tolerated, logged)
- any ALLOWED_ORIGINS entry (scheme + host)
"""

from __future__ import annotations

import urllib.parse

from observability.logger import log_event


_LOCAL_HOSTS = ("localhost", "127.0.0.1", "[::1]")


def is_allowed_origin(
    origin: str,
    base_url: str,
    extra_origins: tuple[str, ...] = (),
) -> bool:
    if not origin:
        return True

    parsed_origin = urllib.parse.urlsplit(origin)
    if not parsed_origin.netloc:
        log_event({"event_type": "ws_origin_rejected", "origin": origin, "reason": "unparseable"})
        return False

    if any(local in parsed_origin.netloc for local in _LOCAL_HOSTS):
        return True

    parsed_base = urllib.parse.urlsplit(base_url)
    if parsed_origin.netloc == parsed_base.netloc:
        if parsed_origin.scheme != parsed_base.scheme:
            log_event({
                "event_type": "ws_origin_scheme_mismatch",
                "origin": origin,
                "base_url": base_url,
            }, level="warning")
        return True

    for allowed in extra_origins:
        parsed_allowed = urllib.parse.urlsplit(allowed.strip())
        if not parsed_allowed.netloc:
            continue
        if (
            parsed_origin.netloc == parsed_allowed.netloc
            and parsed_origin.scheme == parsed_allowed.scheme
        ):
            return True

    log_event({
        "event_type": "ws_origin_rejected",
        "origin": origin,
        "base_url": base_url,
        "reason": "not_allowed",
    }, level="warning")
    return False

"""
Watch a dashboard stream from the terminal.

    python tools/watch_stream.py --base-url http://localhost:8080 --token $TOKEN

Prints one line per payload and per status change. Ctrl-C disconnects.
Exit code 1 if the stream ends in the error state.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from typing import Any

from dotenv import load_dotenv

from config import AppConfig
from observability.logger import configure_logging
from realtime.collaborators import StaticCredentialStore
from realtime.context import ConnectionStatus
from realtime.enums.state import ConnectionState
from realtime.manager import ConnectionManager


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Follow a realtime dashboard stream")
    parser.add_argument("--base-url", help="Overrides DASHBOARD_BASE_URL")
    parser.add_argument("--path", help="Stream path, e.g. /api/v1/ws/docker")
    parser.add_argument("--token", help="Overrides DASHBOARD_TOKEN")
    parser.add_argument("--origin", help="Origin header to present")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.load_from_env()
    overrides = {
        "base_url": args.base_url,
        "stream_path": args.path,
        "token": args.token,
        "origin": args.origin,
    }
    return dataclasses.replace(
        config, **{k: v for k, v in overrides.items() if v is not None}
    )


async def watch(config: AppConfig) -> int:
    failed = asyncio.Event()

    def on_message(payload: dict[str, Any]) -> None:
        print(f"payload type={payload.get('type')} keys={sorted(payload)}")

    def on_status(status: ConnectionStatus) -> None:
        suffix = f" ({status.last_error})" if status.last_error else ""
        print(f"status {status.state.value} attempt={status.attempt}{suffix}")
        if status.state is ConnectionState.ERROR:
            failed.set()

    manager = ConnectionManager.from_config(
        config,
        credentials=StaticCredentialStore(config.token),
        on_message=on_message,
        on_status=on_status,
    )

    if config.token is None:
        print("no token configured (DASHBOARD_TOKEN / --token); nothing to do")
        return 1

    async with manager:
        await failed.wait()

    return 1


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    config = build_config(parse_args(argv))
    configure_logging(level=config.log_level, enabled=config.enable_json_logs)

    try:
        return asyncio.run(watch(config))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Dev stream server launcher.

    python backend/server/main.py --port 8080

Serves the same app as server.asgi under uvicorn.
"""

from __future__ import annotations

import argparse
from pathlib import Path

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the fleet dashboard dev stream server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--reload", action="store_true", help="Dev mode only")
    args = parser.parse_args()

    uvicorn.run(
        "server.asgi:app",
        app_dir=str(Path(__file__).resolve().parent.parent),
        host=args.host,
        port=args.port,
        log_level="info",
        reload=args.reload,
    )


if __name__ == "__main__":
    main()

"""
FastAPI app factory for the dev stream server.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (config, snapshot source)
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig

from server.routes import register_routes
from server.snapshots import MemorySnapshotSource, SnapshotSource


def create_app(
    config: AppConfig | None = None,
    snapshots: SnapshotSource | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Arguments default to environment configuration and an empty
    in-memory snapshot source, so tests can inject both.
    """
    config = config or AppConfig.load_from_env()

    app = FastAPI(title="Fleet Dashboard Stream Server")

    app.state.config = config
    app.state.snapshots = snapshots or MemorySnapshotSource()

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.allowed_origins) or [config.base_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app

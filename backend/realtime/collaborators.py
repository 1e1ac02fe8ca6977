"""
Collaborator capabilities consumed by the connection manager.

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Minimal in-process credential stores
- Zero connection logic
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable, Callable

from realtime.context import ConnectionStatus


# ---------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------

@runtime_checkable
class CredentialStore(Protocol):
    def get_token(self) -> str | None:
        """
        Current bearer token, or None when signed out.

        Read once per connect() and once per retry. The manager never
        parses or validates the value.
        """


class StaticCredentialStore:
    """Token fixed at construction (CLI, config-driven clients)."""

    def __init__(self, token: str | None) -> None:
        self._token = token or None

    def get_token(self) -> str | None:
        return self._token


class MemoryCredentialStore:
    """Mutable store for clients whose sign-in state changes at runtime."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None

    def get_token(self) -> str | None:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token or None

    def clear(self) -> None:
        self._token = None


# ---------------------------------------------------------------------
# Observer
# ---------------------------------------------------------------------

StatusObserver = Callable[[ConnectionStatus], None]

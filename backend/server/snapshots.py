"""
Snapshot sources for the dev stream server.

A snapshot is one complete server -> client frame. Its "type" is the
discriminator the client forwards to its consumer untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SnapshotSource(Protocol):
    async def dashboard(self) -> dict[str, Any]: ...
    async def host_detail(self, host_id: str) -> dict[str, Any]:
        """Raises KeyError for an unknown host."""
    async def docker(self) -> dict[str, Any]: ...
    async def network(self) -> dict[str, Any]: ...


@dataclass
class MemorySnapshotSource:
    """In-memory fleet state; empty by default."""

    hosts: dict[str, dict[str, Any]] = field(default_factory=dict)
    host_metrics: dict[str, dict[str, Any]] = field(default_factory=dict)
    containers: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    interfaces: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    async def dashboard(self) -> dict[str, Any]:
        return {
            "type": "dashboard",
            "hosts": list(self.hosts.values()),
            "host_metrics": dict(self.host_metrics),
            "version_comparisons": [],
        }

    async def host_detail(self, host_id: str) -> dict[str, Any]:
        host = self.hosts[host_id]
        return {
            "type": "host_detail",
            "host": host,
            "metrics": self.host_metrics.get(host_id),
            "containers": self.containers.get(host_id, []),
        }

    async def docker(self) -> dict[str, Any]:
        return {
            "type": "docker",
            "containers": [c for per_host in self.containers.values() for c in per_host],
        }

    async def network(self) -> dict[str, Any]:
        return {
            "type": "network",
            "hosts": [
                {"host_id": host_id, "interfaces": ifaces}
                for host_id, ifaces in self.interfaces.items()
            ],
        }

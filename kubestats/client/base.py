"""Resource client capability interfaces.

ResourceClient -- list snapshots of a resource kind and open event watches.
Subscription   -- one live event-feed connection owned by a single consumer.

Snapshots are plain dicts in Kubernetes JSON shape (camelCase keys), which
keeps the reducers in the collector independent of any client library.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

REPLICATION_CONTROLLER = "ReplicationController"
SERVICE = "Service"
ENDPOINTS = "Endpoints"
NODE = "Node"
POD = "Pod"


def format_selector(labels: dict[str, str] | None) -> str:
    """Render a label map as an equality-based selector string."""
    if not labels:
        return ""
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


class Subscription(ABC):
    """A single live connection to the cluster event feed."""

    @abstractmethod
    async def next(self) -> dict[str, Any] | None:
        """Return the next watch frame, or None once the stream is closed."""

    @abstractmethod
    async def stop(self) -> None:
        """Release the connection. Idempotent."""


class ResourceClient(ABC):
    """List and watch capability against the orchestration API.

    Implementations raise ``ResourceConnectionError`` when the client cannot
    be constructed and ``ResourceQueryError`` when a call fails.
    """

    @abstractmethod
    async def list(self, kind: str, namespace: str | None = None, selector: str = "") -> list[dict[str, Any]]:
        """List every *kind* object in *namespace* (all namespaces if None)."""

    @abstractmethod
    async def watch(self, namespace: str | None = None) -> Subscription:
        """Open an event watch on *namespace* (all namespaces if None)."""

    async def close(self) -> None:  # noqa: B027
        """Release shared connection state."""

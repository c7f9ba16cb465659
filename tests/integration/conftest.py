"""Shared fixtures for kubestats integration tests.

Provides in-memory fakes of the resource client and the event subscription,
plus snapshot builders for nodes, pods, services and controllers, so the
poll orchestrator, watch supervisor and lifecycle controller can be driven
end to end without a real cluster.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from kubestats.client.base import ResourceClient, Subscription
from kubestats.lifecycle import ShutdownSignal
from kubestats.models.config import WatchConfig
from kubestats.observability.metrics import MemorySink

# ---------------------------------------------------------------------------
# Snapshot builders
# ---------------------------------------------------------------------------


def make_node(name: str, address: str, ready: str | None = "True") -> dict[str, Any]:
    """Node with one address; ``ready=None`` omits the Ready condition."""
    conditions = [{"type": "MemoryPressure", "status": "False"}]
    if ready is not None:
        conditions.append({"type": "Ready", "status": ready})
    return {
        "metadata": {"name": name},
        "status": {
            "addresses": [{"type": "InternalIP", "address": address}, {"type": "Hostname", "address": name}],
            "conditions": conditions,
        },
    }


def make_pod(name: str, host_ip: str | None, namespace: str = "default") -> dict[str, Any]:
    status: dict[str, Any] = {"phase": "Running" if host_ip else "Pending"}
    if host_ip:
        status["hostIP"] = host_ip
    return {"metadata": {"name": name, "namespace": namespace}, "status": status}


def make_rc(name: str, replicas: int, namespace: str = "default") -> dict[str, Any]:
    return {
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"replicas": replicas, "selector": {"app": name}},
        "status": {"replicas": replicas},
    }


def make_service(name: str, selector: dict[str, str] | None, namespace: str = "default") -> dict[str, Any]:
    spec: dict[str, Any] = {"ports": [{"port": 80}]}
    if selector is not None:
        spec["selector"] = selector
    return {"metadata": {"name": name, "namespace": namespace}, "spec": spec}


def make_endpoints(name: str, *subset_sizes: int, namespace: str = "default") -> dict[str, Any]:
    subsets = [
        {"addresses": [{"ip": f"10.1.{i}.{j}"} for j in range(size)], "ports": [{"port": 80}]}
        for i, size in enumerate(subset_sizes)
    ]
    return {"metadata": {"name": name, "namespace": namespace}, "subsets": subsets}


def make_watch_frame(
    reason: str = "Started",
    component: str = "kubelet",
    kind: str = "Pod",
    namespace: str = "default",
    name: str = "web-1",
    count: int = 1,
    last_seen: datetime | None = None,
    message: str = "Started container web",
    frame_type: str = "ADDED",
) -> dict[str, Any]:
    """Raw watch frame carrying a core/v1 Event."""
    last_seen = last_seen or datetime.now(tz=UTC)
    return {
        "type": frame_type,
        "object": {
            "kind": "Event",
            "apiVersion": "v1",
            "metadata": {"name": f"{name}.17a", "namespace": namespace},
            "involvedObject": {"kind": kind, "namespace": namespace, "name": name},
            "reason": reason,
            "message": message,
            "source": {"component": component},
            "count": count,
            "firstTimestamp": (last_seen - timedelta(minutes=1)).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "lastTimestamp": last_seen.strftime("%Y-%m-%dT%H:%M:%SZ"),
        },
    }


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeSubscription(Subscription):
    """Yields scripted frames, then either closes or idles forever."""

    def __init__(self, frames: list[dict[str, Any]] | None = None, idle: bool = False) -> None:
        self._frames = list(frames or [])
        self._idle = idle
        self.stopped = False
        self.delivered = 0

    async def next(self) -> dict[str, Any] | None:
        if self.stopped:
            return None
        if self._frames:
            self.delivered += 1
            return self._frames.pop(0)
        if self._idle:
            await asyncio.Event().wait()
        return None

    async def stop(self) -> None:
        self.stopped = True


ListResult = list[dict[str, Any]] | Exception | Callable[[str | None, str], Any]


class FakeResourceClient(ResourceClient):
    """Scripted ResourceClient.

    ``lists`` maps a kind to its snapshot, an exception to raise, or a
    callable ``(namespace, selector) -> snapshot``. ``watches`` is consumed
    in order (subscriptions or exceptions); once exhausted every further
    watch returns an idle subscription.
    """

    def __init__(
        self,
        lists: dict[str, ListResult] | None = None,
        watches: list[Subscription | Exception] | None = None,
    ) -> None:
        self.lists: dict[str, ListResult] = dict(lists or {})
        self.watches = list(watches or [])
        self.list_calls: list[tuple[str, str | None, str]] = []
        self.watch_times: list[float] = []
        self.subscriptions: list[Subscription] = []
        self.closed = False

    async def list(self, kind: str, namespace: str | None = None, selector: str = "") -> list[dict[str, Any]]:
        self.list_calls.append((kind, namespace, selector))
        await asyncio.sleep(0)
        result = self.lists.get(kind, [])
        if isinstance(result, Exception):
            raise result
        if callable(result):
            result = result(namespace, selector)
            if isinstance(result, Exception):
                raise result
        return list(result)

    async def watch(self, namespace: str | None = None) -> Subscription:
        self.watch_times.append(asyncio.get_running_loop().time())
        await asyncio.sleep(0)
        outcome: Subscription | Exception = self.watches.pop(0) if self.watches else FakeSubscription(idle=True)
        if isinstance(outcome, Exception):
            raise outcome
        self.subscriptions.append(outcome)
        return outcome

    @property
    def open_subscriptions(self) -> int:
        return sum(1 for sub in self.subscriptions if not getattr(sub, "stopped", False))

    def kinds_called(self) -> list[str]:
        return [kind for kind, _, _ in self.list_calls]

    async def close(self) -> None:
        self.closed = True


async def wait_for_condition(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* until it holds or *timeout* elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture()
def shutdown() -> ShutdownSignal:
    return ShutdownSignal()


@pytest.fixture()
def fast_watch_config() -> WatchConfig:
    return WatchConfig(retry_seconds=0.05, freshness_seconds=5.0, failure_reason="failed")

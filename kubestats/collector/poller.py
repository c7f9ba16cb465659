"""Poll orchestrator: periodic snapshot queries reduced to gauges.

Each cycle fans out three independent queries (replication controllers,
services, nodes). Services fan out again, one endpoints query per service.
The node query builds an address-to-name map that the dependent pod query
consumes within the same cycle.

Query failures never abort a cycle: they are logged, counted on
``kubestats.errors`` and the next tick retries naturally.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any

import structlog

from kubestats.client.base import (
    ENDPOINTS,
    NODE,
    POD,
    REPLICATION_CONTROLLER,
    SERVICE,
    ResourceClient,
    format_selector,
)
from kubestats.client.errors import ResourceConnectionError, ResourceQueryError
from kubestats.lifecycle import ShutdownSignal
from kubestats.models.config import PollConfig
from kubestats.observability.metrics import ERRORS_COUNTER, MetricsSink

_log = structlog.get_logger(component="collector.poller")

READY = "ready"
NOT_READY = "notready"
UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Snapshot reducers
# ---------------------------------------------------------------------------


def _section(obj: dict[str, Any], key: str) -> dict[str, Any]:
    value = obj.get(key)
    return value if isinstance(value, dict) else {}


def namespace_name(obj: dict[str, Any]) -> tuple[str, str]:
    metadata = _section(obj, "metadata")
    return str(metadata.get("namespace") or ""), str(metadata.get("name") or "")


def replica_count(controller: dict[str, Any]) -> int:
    """Declared replica count of a replication controller."""
    replicas = _section(controller, "spec").get("replicas")
    return replicas if isinstance(replicas, int) else 0


def endpoint_address_count(endpoints: list[dict[str, Any]]) -> int:
    """Total ready addresses across every subset of every Endpoints object."""
    total = 0
    for ep in endpoints:
        for subset in ep.get("subsets") or []:
            if isinstance(subset, dict):
                total += len(subset.get("addresses") or [])
    return total


def node_readiness(node: dict[str, Any]) -> str:
    """Bucket a node by its Ready condition.

    ``unknown`` only when the node reports no Ready condition at all.
    """
    for condition in _section(node, "status").get("conditions") or []:
        if isinstance(condition, dict) and condition.get("type") == "Ready":
            return READY if condition.get("status") == "True" else NOT_READY
    return UNKNOWN


def node_status_counts(nodes: list[dict[str, Any]]) -> dict[str, int]:
    counts = {READY: 0, NOT_READY: 0, UNKNOWN: 0}
    for node in nodes:
        counts[node_readiness(node)] += 1
    return counts


def address_map(nodes: list[dict[str, Any]]) -> dict[str, str]:
    """Map each node's first reported address to the node name."""
    names: dict[str, str] = {}
    for node in nodes:
        addresses = _section(node, "status").get("addresses") or []
        if not addresses or not isinstance(addresses[0], dict):
            continue
        address = addresses[0].get("address")
        if address:
            names[str(address)] = namespace_name(node)[1]
    return names


def pods_per_node(pods: list[dict[str, Any]], names: dict[str, str]) -> dict[str, int]:
    """Count pods per node name.

    Pods are grouped by host address first. Pods on an address missing from
    *names*, or without a host address, are reported under ``""`` so they
    never add to a real node's count.
    """
    by_address = Counter(str(_section(pod, "status").get("hostIP") or "") for pod in pods)
    per_node: Counter[str] = Counter()
    for address, count in by_address.items():
        per_node[names.get(address, "")] += count
    return dict(per_node)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class PollOrchestrator:
    """Runs one poll cycle eagerly, then one per tick, until shutdown.

    Ticks are fixed-rate: a slow cycle runs alongside the next one instead of
    delaying it. In-flight cycles are cancelled when the signal fires.
    """

    def __init__(
        self,
        client: ResourceClient,
        sink: MetricsSink,
        signal: ShutdownSignal,
        config: PollConfig | None = None,
    ) -> None:
        self._client = client
        self._sink = sink
        self._signal = signal
        self._interval = (config or PollConfig()).interval_seconds
        self._cycles: set[asyncio.Task[None]] = set()

        self.cycles_started = 0

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        self._launch_cycle()
        next_tick = loop.time() + self._interval
        try:
            while await self._signal.sleep(max(0.0, next_tick - loop.time())):
                _log.debug("scheduler_ticked")
                next_tick += self._interval
                # Missed ticks are dropped rather than replayed in a burst.
                if next_tick <= loop.time():
                    next_tick = loop.time() + self._interval
                self._launch_cycle()
        finally:
            for task in self._cycles:
                task.cancel()
            if self._cycles:
                await asyncio.gather(*self._cycles, return_exceptions=True)
            _log.debug("scheduler_cancelled")

    def _launch_cycle(self) -> None:
        self.cycles_started += 1
        task = asyncio.create_task(self.poll_once(), name=f"poll-cycle-{self.cycles_started}")
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)

    async def poll_once(self) -> None:
        """Run a single poll cycle to completion."""
        _log.debug("polling_kubernetes_api")
        results = await asyncio.gather(
            self._poll_controllers(),
            self._poll_services(),
            self._poll_nodes(),
            return_exceptions=True,
        )
        for name, result in zip(("controllers", "services", "nodes"), results, strict=True):
            if isinstance(result, Exception):
                _log.error("poll_unexpected_error", query=name, error=str(result))

    async def _query(self, kind: str, namespace: str | None = None, selector: str = "") -> list[dict[str, Any]] | None:
        """List *kind*, absorbing client failures.

        Returns None when the client could not be created (nothing to
        report) and an empty snapshot when the query itself failed.
        """
        try:
            return await self._client.list(kind, namespace, selector)
        except ResourceConnectionError as exc:
            _log.debug("poll_client_unavailable", kind=kind, error=str(exc))
            return None
        except ResourceQueryError as exc:
            _log.debug("poll_query_failed", kind=kind, namespace=namespace, status=exc.status, error=exc.detail)
            self._sink.counter(ERRORS_COUNTER, 1)
            return []

    async def _poll_controllers(self) -> None:
        _log.debug("polling_replication_controllers")
        controllers = await self._query(REPLICATION_CONTROLLER)
        for controller in controllers or []:
            namespace, name = namespace_name(controller)
            self._sink.gauge(f"rc.{namespace}.{name}", replica_count(controller))

    async def _poll_services(self) -> None:
        _log.debug("polling_services")
        services = await self._query(SERVICE)
        if not services:
            return
        results = await asyncio.gather(*(self._report_service(svc) for svc in services), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                _log.error("poll_unexpected_error", query="endpoints", error=str(result))

    async def _report_service(self, service: dict[str, Any]) -> None:
        namespace, name = namespace_name(service)
        selector = _section(service, "spec").get("selector")
        count = 0
        # A service without a selector has no managed endpoints; an empty
        # selector would otherwise match every Endpoints in the namespace.
        if isinstance(selector, dict) and selector:
            endpoints = await self._query(ENDPOINTS, namespace=namespace, selector=format_selector(selector))
            if endpoints is None:
                return
            count = endpoint_address_count(endpoints)
        self._sink.gauge(f"svc.{namespace}.{name}", count)

    async def _poll_nodes(self) -> None:
        _log.debug("polling_nodes")
        nodes = await self._query(NODE)
        if nodes is None:
            return
        for status, count in node_status_counts(nodes).items():
            self._sink.gauge(f"nodes.status.{status}", count)
        await self._poll_pods(address_map(nodes))

    async def _poll_pods(self, names: dict[str, str]) -> None:
        pods = await self._query(POD)
        for name, count in pods_per_node(pods or [], names).items():
            self._sink.gauge(f"nodes.pods.{name}", count)

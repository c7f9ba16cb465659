"""Application bootstrap for kubestats.

Wires the components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → metrics sink → resource client
              → shutdown signal → watch supervisor + poll orchestrator

The watch supervisor and the poll orchestrator run as independent tasks that
share one ShutdownSignal. A termination request flips the signal; tasks get
a short grace period to release their subscription and timers, after which
anything still running is cancelled.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable

import structlog

from kubestats.client.base import ResourceClient
from kubestats.collector.classifier import EventClassifier
from kubestats.collector.poller import PollOrchestrator
from kubestats.collector.watcher import WatchSupervisor
from kubestats.config import load_config
from kubestats.lifecycle import ShutdownSignal
from kubestats.models.config import KubeStatsConfig
from kubestats.observability.logging import get_logger, setup_logging
from kubestats.observability.metrics import MetricsSink, build_sink


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubeStatsApp:
    """Lifecycle controller. Owns the shutdown signal and both observation tasks.

    ``client`` and ``sink`` may be injected; otherwise they are built from
    ``config`` on ``start()``. Calling ``stop()`` on an app that was never
    started (or already stopped) is safe.
    """

    def __init__(
        self,
        config: KubeStatsConfig | None = None,
        client: ResourceClient | None = None,
        sink: MetricsSink | None = None,
    ) -> None:
        self.config = config or KubeStatsConfig()
        self._client = client
        self._sink = sink
        self._signal: ShutdownSignal | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._log: structlog.stdlib.BoundLogger = get_logger("app")

        self.watcher: WatchSupervisor | None = None
        self.poller: PollOrchestrator | None = None

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    @property
    def signal(self) -> ShutdownSignal | None:
        return self._signal

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def start(self) -> Callable[[], None]:
        """Launch both observation tasks and return the cancel trigger.

        Must be called from a running event loop. A second call returns the
        trigger of the already-running instance.
        """
        if self._signal is not None:
            return self._signal.trigger

        sink = self._sink or self._build_sink()
        client = self._client or self._build_client()
        self._sink, self._client = sink, client

        shutdown = ShutdownSignal()
        classifier = EventClassifier(sink, self.config.watch)
        self.watcher = WatchSupervisor(client, classifier, sink, shutdown, self.config.watch)
        self.poller = PollOrchestrator(client, sink, shutdown, self.config.poll)

        self._tasks = [
            asyncio.create_task(self.watcher.run(), name="event-watcher"),
            asyncio.create_task(self.poller.run(), name="poll-scheduler"),
        ]
        self._signal = shutdown
        self._log.info(
            "kubestats_started",
            interval_seconds=self.config.poll.interval_seconds,
            kube_addr=self.config.kube.address or "auto",
            sink=self.config.sink.kind,
            prefix=self.config.sink.prefix,
        )
        return shutdown.trigger

    def _build_sink(self) -> MetricsSink:
        try:
            return build_sink(self.config.sink)
        except (OSError, ValueError) as exc:
            raise _ComponentError("metrics_sink", exc) from exc

    def _build_client(self) -> ResourceClient:
        # kubernetes-asyncio is only loaded when no client is injected.
        from kubestats.client.kube import KubeResourceClient

        return KubeResourceClient(self.config.kube)

    async def wait_stopped(self) -> None:
        """Block until the shutdown signal fires."""
        if self._signal is not None:
            await self._signal.wait()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Trigger the signal and drain tasks for at most the grace period.

        Tasks that miss the window are cancelled; their in-flight results are
        discarded.
        """
        if self._signal is None:
            return
        self._signal.trigger()

        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=self.config.shutdown_grace_seconds)
            for task in pending:
                self._log.debug("task_abandoned", task=task.get_name())
                task.cancel()
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for task, result in zip(self._tasks, results, strict=True):
                if isinstance(result, Exception):
                    self._log.error("task_failed", task=task.get_name(), error=str(result))
        self._tasks = []

        await self._close_component("client", self._client)
        await self._close_component("metrics_sink", self._sink)
        self._log.info("kubestats_stopped")

    async def _close_component(self, name: str, component: object | None) -> None:
        """Call close() on a component if it has that method, catching all errors."""
        close_fn = getattr(component, "close", None)
        if close_fn is None:
            return
        try:
            result = close_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=self.config.shutdown_grace_seconds)
        except TimeoutError:
            self._log.debug("component_close_timed_out", component=name)
        except Exception as exc:  # noqa: BLE001
            self._log.debug("component_close_failed", component=name, error=str(exc))


def _kubestats_version() -> str:
    from kubestats import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: KubeStatsConfig | None = None) -> None:
    """Start the exporter, map SIGINT/SIGTERM to the shutdown signal, drain on exit."""
    if config is None:
        try:
            config = load_config()
        except ValueError as exc:
            setup_logging()
            get_logger("app").critical("invalid_config", error=str(exc))
            raise SystemExit(1) from exc
    setup_logging(config.log.level, json_output=config.log.json_output)
    log = get_logger("app")
    log.info(
        "kubestats_starting",
        version=_kubestats_version(),
        interval_seconds=config.poll.interval_seconds,
        kube_addr=config.kube.address or "auto",
        prefix=config.sink.prefix,
    )

    app = KubeStatsApp(config)
    try:
        cancel = app.start()
    except _ComponentError as exc:
        log.critical("fatal_startup_error", component=exc.component, error=str(exc.cause))
        raise SystemExit(1) from exc

    def _request_shutdown(signame: str) -> None:
        log.info("stopping", signal=signame)
        cancel()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown, sig.name)

    try:
        await app.wait_stopped()
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        await app.stop()

"""Watch supervisor: keeps one event subscription alive until shutdown.

State machine::

    DISCONNECTED -> ACQUIRING -> CONNECTED -> DISCONNECTED -> ...
                           \\            \\
                            +------------+--> CANCELLED

Acquisition tries immediately, then retries on a fixed interval (2s by
default) with no attempt cap until it succeeds or the shutdown signal fires.
A closed stream is never resumed: the next subscription starts from scratch
and the classifier's freshness window filters the replayed backlog.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

import structlog

from kubestats.client.base import ResourceClient, Subscription
from kubestats.client.errors import ResourceConnectionError, ResourceQueryError
from kubestats.collector.classifier import EventClassifier
from kubestats.lifecycle import ShutdownSignal
from kubestats.models.config import WatchConfig
from kubestats.models.events import WatchEventType
from kubestats.observability.metrics import ERRORS_COUNTER, MetricsSink

_log = structlog.get_logger(component="collector.watcher")


class WatchState(StrEnum):
    """Lifecycle state of the watch supervisor."""

    DISCONNECTED = "disconnected"
    ACQUIRING = "acquiring"
    CONNECTED = "connected"
    CANCELLED = "cancelled"


class WatchSupervisor:
    """Owns the event subscription for the lifetime of the process.

    At most one subscription is open and at most one acquisition attempt is
    in flight at any time; both are sequential steps of ``run``.
    """

    def __init__(
        self,
        client: ResourceClient,
        classifier: EventClassifier,
        sink: MetricsSink,
        signal: ShutdownSignal,
        config: WatchConfig | None = None,
        namespace: str | None = None,
    ) -> None:
        self._client = client
        self._classifier = classifier
        self._sink = sink
        self._signal = signal
        self._retry_seconds = (config or WatchConfig()).retry_seconds
        self._namespace = namespace
        self._state = WatchState.DISCONNECTED

        self.attempts = 0
        self.acquisitions = 0

    @property
    def state(self) -> WatchState:
        return self._state

    async def run(self) -> None:
        """Acquire, consume and re-acquire until the shutdown signal fires."""
        _log.debug("watcher_starting", namespace=self._namespace or "*")
        try:
            while not self._signal.is_set:
                subscription = await self._acquire()
                if subscription is None:
                    break
                try:
                    await self._consume(subscription)
                except Exception as exc:  # noqa: BLE001
                    _log.error("watch_consume_unexpected_error", error=str(exc))
                    if not await self._signal.sleep(self._retry_seconds):
                        break
        finally:
            self._state = WatchState.CANCELLED
            _log.debug("watcher_cancelled")

    async def _open(self) -> Subscription | None:
        """One acquisition attempt. Returns None on any failure."""
        self.attempts += 1
        try:
            return await self._client.watch(self._namespace)
        except ResourceConnectionError as exc:
            _log.debug("watch_client_unavailable", error=str(exc))
        except ResourceQueryError as exc:
            _log.debug("watch_open_failed", error=str(exc), status=exc.status)
            self._sink.counter(ERRORS_COUNTER, 1)
        except Exception as exc:  # noqa: BLE001
            _log.error("watch_open_unexpected_error", error=str(exc), error_type=type(exc).__name__)
            self._sink.counter(ERRORS_COUNTER, 1)
        return None

    async def _acquire(self) -> Subscription | None:
        """Open a subscription, retrying forever. None means cancelled."""
        self._state = WatchState.ACQUIRING
        while True:
            completed, subscription = await self._signal.race(self._open())
            if not completed:
                _log.debug("watch_acquisition_cancelled")
                return None
            if subscription is not None:
                self._state = WatchState.CONNECTED
                self.acquisitions += 1
                _log.debug("watch_acquired", attempts=self.attempts, acquisitions=self.acquisitions)
                return subscription

            _log.debug("watch_acquisition_retrying", delay_seconds=self._retry_seconds)
            if not await self._signal.sleep(self._retry_seconds):
                _log.debug("watch_acquisition_cancelled")
                return None

    async def _consume(self, subscription: Subscription) -> None:
        """Classify frames in delivery order until the stream closes."""
        try:
            while True:
                completed, frame = await self._signal.race(subscription.next())
                if not completed:
                    return
                if frame is None:
                    _log.debug("watch_closed")
                    return
                if not self._dispatch(frame):
                    return
        finally:
            await subscription.stop()
            if self._state is WatchState.CONNECTED:
                self._state = WatchState.DISCONNECTED

    def _dispatch(self, frame: dict[str, Any]) -> bool:
        """Handle one frame. Returns False when the frame ends the stream."""
        frame_type = frame.get("type")
        if frame_type == WatchEventType.ERROR:
            status = frame.get("object")
            _log.debug(
                "watch_closed_with_error",
                code=status.get("code") if isinstance(status, dict) else None,
                message=status.get("message") if isinstance(status, dict) else None,
            )
            return False
        if frame_type == WatchEventType.BOOKMARK:
            return True
        self._classifier.handle(frame)
        return True

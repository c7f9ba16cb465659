"""Collector package for kubestats.

Provides the two observation loops that turn cluster state into metrics.

Submodules
----------
classifier -- EventClassifier: freshness filter, log level and event counters.
watcher    -- WatchSupervisor: event subscription with fixed-interval reconnect.
poller     -- PollOrchestrator: periodic fan-out of list queries into gauges.
"""

from kubestats.collector.classifier import EventClassifier, classify
from kubestats.collector.poller import PollOrchestrator
from kubestats.collector.watcher import WatchState, WatchSupervisor

__all__ = [
    "EventClassifier",
    "PollOrchestrator",
    "WatchState",
    "WatchSupervisor",
    "classify",
]

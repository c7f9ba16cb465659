"""Core data structures for kubestats."""

from kubestats.models.config import (
    KubeConfig,
    KubeStatsConfig,
    LogConfig,
    PollConfig,
    SinkConfig,
    WatchConfig,
)
from kubestats.models.events import ChangeEvent, Verdict, WatchEventType

__all__ = [
    "ChangeEvent",
    "KubeConfig",
    "KubeStatsConfig",
    "LogConfig",
    "PollConfig",
    "SinkConfig",
    "Verdict",
    "WatchConfig",
    "WatchEventType",
]

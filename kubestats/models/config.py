"""Configuration data structures.

Every structure is frozen: configuration is resolved once before the core
starts and is passed by reference into each component constructor.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class KubeConfig:
    """Kubernetes API access."""

    address: str = ""
    watch_timeout_seconds: int = 240


@dataclass(frozen=True)
class PollConfig:
    """Poll orchestrator configuration."""

    interval_seconds: float = 60.0


@dataclass(frozen=True)
class WatchConfig:
    """Event watch supervisor and classifier configuration."""

    retry_seconds: float = 2.0
    freshness_seconds: float = 5.0
    failure_reason: str = "failed"


@dataclass(frozen=True)
class SinkConfig:
    """Metrics sink configuration."""

    kind: str = "statsd"
    address: str = "localhost:8125"
    prefix: str = "kubernetes"
    prometheus_port: int = 9102


@dataclass(frozen=True)
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    json_output: bool = True


@dataclass(frozen=True)
class KubeStatsConfig:
    """Top-level kubestats configuration."""

    kube: KubeConfig = field(default_factory=KubeConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    sink: SinkConfig = field(default_factory=SinkConfig)
    log: LogConfig = field(default_factory=LogConfig)
    shutdown_grace_seconds: float = 0.1

"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from kubestats.models.config import (
    KubeConfig,
    KubeStatsConfig,
    LogConfig,
    PollConfig,
    SinkConfig,
    WatchConfig,
)

_DURATION_RE = re.compile(r"^([0-9]+(?:\.[0-9]+)?)(ms|s|m|h)$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

SINK_KINDS = frozenset({"statsd", "prometheus"})


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBESTATS_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def parse_duration(value: str) -> float:
    """Parse a duration such as ``60s``, ``1.5m`` or ``100ms`` into seconds."""
    match = _DURATION_RE.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid duration format: {value}")
    seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value}")
    return seconds


def split_address(value: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts."""
    host, sep, port = value.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Invalid address (expected host:port): {value}")
    return host, int(port)


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_sink_kind(value: str) -> str:
    if value.lower() not in SINK_KINDS:
        raise ValueError(f"Invalid sink: {value}. Must be one of {set(SINK_KINDS)}")
    return value.lower()


def _validate_address(value: str) -> str:
    split_address(value)
    return value


def load_config() -> KubeStatsConfig:
    """Load configuration from KUBESTATS_* environment variables."""
    level = _validate_log_level(_env("LOG_LEVEL", "info"))
    if _env_bool("DEBUG", False):
        level = "debug"
    return KubeStatsConfig(
        kube=KubeConfig(
            address=_env("KUBE_ADDR", ""),
            watch_timeout_seconds=_env_int("WATCH_TIMEOUT", 240, min_val=10, max_val=3600),
        ),
        poll=PollConfig(
            interval_seconds=parse_duration(_env("INTERVAL", "60s")),
        ),
        watch=WatchConfig(
            retry_seconds=parse_duration(_env("WATCH_RETRY", "2s")),
            freshness_seconds=parse_duration(_env("FRESHNESS_WINDOW", "5s")),
            failure_reason=_env("FAILURE_REASON", "failed"),
        ),
        sink=SinkConfig(
            kind=_validate_sink_kind(_env("SINK", "statsd")),
            address=_validate_address(_env("STATSD_ADDR", "localhost:8125")),
            prefix=_env("STATSD_PREFIX", "kubernetes"),
            prometheus_port=_env_int("PROMETHEUS_PORT", 9102, min_val=1024, max_val=65535),
        ),
        log=LogConfig(level=level, json_output=_env_bool("LOG_JSON", True)),
        shutdown_grace_seconds=parse_duration(_env("SHUTDOWN_GRACE", "100ms")),
    )

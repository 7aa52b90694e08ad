"""Health checking and bounded recovery for monitored workloads."""

from .checker import HealthChecker, HealthCheckResult, HealthStatus
from .monitor import StopSignal, WatchdogLoop
from .recovery import (
    RecoveryExecutor,
    RecoveryOutcome,
    RecoveryState,
    RetryPolicy,
    effective_timeout,
)

__all__ = [
    "HealthChecker",
    "HealthCheckResult",
    "HealthStatus",
    "RecoveryExecutor",
    "RecoveryOutcome",
    "RecoveryState",
    "RetryPolicy",
    "StopSignal",
    "WatchdogLoop",
    "effective_timeout",
]

"""Health checks for recovery items."""

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from ..config.models import RecoveryItem
from ..utils.logging import (
    CheckError,
    EventSink,
    LogContext,
    LoggerEventSink,
    get_logger,
)
from ..utils.process import StatusQueryRunner, list_process_names, process_name_matches

logger = get_logger(__name__, LogContext.HEALTH)


class HealthStatus(Enum):
    """Health status of a recovery item."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    status: HealthStatus
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    duration_ms: float = 0.0

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY


class StatusQuery(Protocol):
    """Anything that can report the application status text for a database."""

    async def query(self, database: str, bin_directory: str | None = None) -> str: ...


def app_marker(app_name: str, database_name: str) -> str:
    """Text the status query prints for an application running in a database."""
    return f"{app_name} (in {database_name})"


class HealthChecker:
    """Decides whether a recovery item's processes and applications are running."""

    def __init__(
        self,
        sink: EventSink | None = None,
        process_lister: Callable[[], Iterable[str]] = list_process_names,
        status_query: StatusQuery | None = None,
    ):
        """Initialize health checker.

        Args:
            sink: Event sink for warnings about missing processes
            process_lister: Returns the names of running OS processes
            status_query: Status-query collaborator (default runner if None)
        """
        self.sink = sink or LoggerEventSink()
        self.process_lister = process_lister
        self.status_query = status_query or StatusQueryRunner()

    async def is_healthy(self, item: RecoveryItem) -> bool:
        """Return True only when every required process and app is running."""
        result = await self.check(item)
        return result.healthy

    async def check(self, item: RecoveryItem) -> HealthCheckResult:
        """Run the process check and, if it passes, the application check."""
        start_time = time.time()

        def elapsed() -> float:
            return (time.time() - start_time) * 1000

        try:
            if item.process_names:
                running = set(self.process_lister())
                for process_name in item.process_names:
                    if not any(process_name_matches(process_name, r) for r in running):
                        self.sink.warning(
                            f"Watchdog couldn't find the process {process_name}.",
                            recovery_action=item.recovery_action,
                        )
                        return HealthCheckResult(
                            status=HealthStatus.UNHEALTHY,
                            message=f"Process {process_name} is not running",
                            details={"missing_process": process_name},
                            duration_ms=elapsed(),
                        )

            if not item.app_names:
                return HealthCheckResult(
                    status=HealthStatus.HEALTHY,
                    message="All required processes are running",
                    duration_ms=elapsed(),
                )

            output = await self.status_query.query(
                item.database_name, item.bin_directory
            )

        except CheckError as e:
            self.sink.warning(
                f"Health check for {item.recovery_action} failed: {e.message}",
                recovery_action=item.recovery_action,
            )
            return HealthCheckResult(
                status=HealthStatus.UNKNOWN,
                message=e.message,
                details=dict(e.context),
                duration_ms=elapsed(),
            )

        missing_apps = [
            app_name
            for app_name in item.app_names
            if app_marker(app_name, item.database_name) not in output
        ]
        if missing_apps:
            logger.debug(
                "Applications not reported running",
                recovery_action=item.recovery_action,
                database=item.database_name,
                missing_apps=missing_apps,
            )
            return HealthCheckResult(
                status=HealthStatus.UNHEALTHY,
                message=(
                    f"Applications not running in {item.database_name}: "
                    + ", ".join(missing_apps)
                ),
                details={"missing_apps": missing_apps},
                duration_ms=elapsed(),
            )

        return HealthCheckResult(
            status=HealthStatus.HEALTHY,
            message="All required processes and applications are running",
            duration_ms=elapsed(),
        )

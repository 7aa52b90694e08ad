"""Configuration models for the watchdog.

Field aliases accept both the current camelCase keys and the key names used
by existing ``cbwatchdog.json`` files. Durations are milliseconds on disk and
seconds in code.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_HEALTH_CHECK_INTERVAL_MS = 10_000
DEFAULT_RECOVERY_EXECUTION_TIMEOUT_MS = 300_000
DEFAULT_CRITICAL_COUNTS = 10
DEFAULT_STATUS_QUERY_TIMEOUT_MS = 30_000


class RecoveryItem(BaseModel):
    """One monitored unit, its health criteria and its recovery action."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    recovery_action: str = Field(
        validation_alias=AliasChoices(
            "recoveryAction", "recoveryBatch", "recovery_action"
        ),
        min_length=1,
        description="Command or script path executed to attempt recovery",
    )
    recovery_execution_timeout_override_ms: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices(
            "recoveryExecutionTimeoutOverride",
            "overrideRecoveryExecutionTimeout",
            "recovery_execution_timeout_override_ms",
        ),
        description="Per-item execution timeout in ms (0 uses the config default)",
    )
    bin_directory: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "binDirectory", "starcounterBinDirectory", "bin_directory"
        ),
        description="Directory holding the status-query executable",
    )
    database_name: str = Field(
        default="",
        validation_alias=AliasChoices("databaseName", "scDatabase", "database_name"),
        description="Database scope passed to the status query",
    )
    process_names: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("processNames", "processes", "process_names"),
        description="OS processes that must all be running",
    )
    app_names: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("appNames", "scAppNames", "app_names"),
        description="Applications that must all be reported running",
    )
    run_elevated: bool = Field(
        default=False,
        validation_alias=AliasChoices("runElevated", "run_elevated"),
        description="Ask the launcher for elevated privileges",
    )

    @field_validator("bin_directory")
    @classmethod
    def empty_bin_directory_is_none(cls, v):
        return v or None

    @property
    def recovery_execution_timeout_override(self) -> float:
        """Override in seconds; 0.0 when unset."""
        return self.recovery_execution_timeout_override_ms / 1000.0

    def describe(self) -> str:
        """Multi-line summary used in the startup event."""
        lines = [
            f"    recoveryAction : {self.recovery_action}",
            f"    recoveryExecutionTimeoutOverride : {self.recovery_execution_timeout_override_ms}",
            f"    binDirectory : {self.bin_directory or ''}",
            f"    databaseName : {self.database_name}",
            f"    processNames : {', '.join(self.process_names)}",
            f"    appNames : {', '.join(self.app_names)}",
        ]
        if self.run_elevated:
            lines.append("    runElevated : True")
        return "\n".join(lines) + "\n"


class WatchdogConfig(BaseModel):
    """Process-wide watchdog configuration, read-only after load."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    health_check_interval_ms: int = Field(
        default=DEFAULT_HEALTH_CHECK_INTERVAL_MS,
        gt=0,
        validation_alias=AliasChoices(
            "healthCheckInterval", "health_check_interval_ms"
        ),
    )
    recovery_execution_timeout_ms: int = Field(
        default=DEFAULT_RECOVERY_EXECUTION_TIMEOUT_MS,
        gt=0,
        validation_alias=AliasChoices(
            "defaultRecoveryExecutionTimeout",
            "recoveryExecutionTimeout",
            "recovery_execution_timeout_ms",
        ),
    )
    critical_counts: int = Field(
        default=DEFAULT_CRITICAL_COUNTS,
        ge=1,
        validation_alias=AliasChoices("criticalCounts", "critical_counts"),
    )
    suppress_recovery_console: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "suppressRecoveryConsole",
            "noConsoleForRecoveryScript",
            "suppress_recovery_console",
        ),
    )
    status_query_executable: str = Field(
        default="staradmin",
        min_length=1,
        validation_alias=AliasChoices(
            "statusQueryExecutable", "status_query_executable"
        ),
    )
    status_query_timeout_ms: int = Field(
        default=DEFAULT_STATUS_QUERY_TIMEOUT_MS,
        gt=0,
        validation_alias=AliasChoices("statusQueryTimeout", "status_query_timeout_ms"),
    )
    recovery_items: tuple[RecoveryItem, ...] = Field(
        default=(),
        validation_alias=AliasChoices("recoveryItems", "recovery_items"),
    )

    @property
    def health_check_interval(self) -> float:
        return self.health_check_interval_ms / 1000.0

    @property
    def default_recovery_execution_timeout(self) -> float:
        return self.recovery_execution_timeout_ms / 1000.0

    @property
    def status_query_timeout(self) -> float:
        return self.status_query_timeout_ms / 1000.0

    def describe(self) -> str:
        """Summary announced when the watchdog starts."""
        return (
            "Watchdog will be started with:\n"
            f"    healthCheckInterval : {self.health_check_interval_ms}\n"
            f"    recoveryExecutionTimeout : {self.recovery_execution_timeout_ms}\n"
            f"    suppressRecoveryConsole : {self.suppress_recovery_console}\n"
            f"    criticalCounts : {self.critical_counts}\n"
            + "".join(item.describe() for item in self.recovery_items)
        )

"""Recovery of unhealthy recovery items."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from ..config.models import RecoveryItem, WatchdogConfig
from ..utils.logging import (
    EventSink,
    LogContext,
    LoggerEventSink,
    RecoveryLaunchError,
    get_logger,
)
from ..utils.process import LaunchResult, RecoveryLauncher
from .checker import HealthChecker

logger = get_logger(__name__, LogContext.RECOVERY)


class RecoveryState(Enum):
    """States of the per-item recovery state machine."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    RECOVERING = "recovering"
    EXHAUSTED = "exhausted"


@dataclass
class RecoveryAttempt:
    """Information about a recovery attempt."""

    number: int
    timestamp: datetime
    launched: bool
    healthy_after: bool
    error_message: str | None = None


@dataclass
class RecoveryOutcome:
    """Terminal result of one item's recovery sequence for one cycle."""

    item: RecoveryItem
    state: RecoveryState
    transitions: list[RecoveryState] = field(default_factory=list)
    attempts: list[RecoveryAttempt] = field(default_factory=list)

    @property
    def launches(self) -> int:
        return sum(1 for attempt in self.attempts if attempt.launched)


def effective_timeout(item: RecoveryItem, config: WatchdogConfig) -> float:
    """Execution timeout in seconds for one recovery of ``item``.

    The item's override wins when non-zero; otherwise the config default.
    """
    if item.recovery_execution_timeout_override_ms:
        return item.recovery_execution_timeout_override
    return config.default_recovery_execution_timeout


class Launcher(Protocol):
    async def launch(
        self,
        command: str,
        suppress_console: bool,
        timeout: float,
        notify,
        elevated: bool = False,
    ) -> LaunchResult: ...


class RecoveryExecutor:
    """Launches the configured recovery action for a recovery item."""

    def __init__(
        self,
        config: WatchdogConfig,
        sink: EventSink | None = None,
        launcher: Launcher | None = None,
    ):
        self.config = config
        self.sink = sink or LoggerEventSink()
        self.launcher = launcher or RecoveryLauncher()

    async def execute(self, item: RecoveryItem) -> LaunchResult:
        """Launch the recovery action.

        Raises:
            RecoveryLaunchError: If the action fails to start or times out
        """
        timeout = effective_timeout(item, self.config)
        logger.debug(
            "Launching recovery action",
            recovery_action=item.recovery_action,
            timeout=timeout,
            suppress_console=self.config.suppress_recovery_console,
        )

        result = await self.launcher.launch(
            item.recovery_action,
            self.config.suppress_recovery_console,
            timeout,
            self.sink.info,
            item.run_elevated,
        )

        if result.return_code != 0:
            self.sink.warning(
                f"Recovery action {item.recovery_action} exited with code {result.return_code}",
                recovery_action=item.recovery_action,
            )
        return result


class RetryPolicy:
    """Bounded-attempt recovery state machine.

    At most ``critical_counts - 1`` recovery actions are launched per item per
    cycle: reaching attempt number ``critical_counts`` ends the sequence
    instead of launching. Nothing is carried over between cycles.
    """

    def __init__(
        self,
        config: WatchdogConfig,
        checker: HealthChecker,
        executor: RecoveryExecutor,
        sink: EventSink | None = None,
    ):
        self.critical_counts = config.critical_counts
        self.checker = checker
        self.executor = executor
        self.sink = sink or LoggerEventSink()

    async def run(self, item: RecoveryItem) -> RecoveryOutcome:
        """Drive ``item`` to a terminal state (HEALTHY or EXHAUSTED).

        Recovery log records emitted meanwhile are tagged with the item's
        recovery action.
        """
        logger.set_item(item.recovery_action)
        try:
            outcome = await self._drive(item)
            logger.debug(
                "Recovery sequence finished",
                state=outcome.state.value,
                launches=outcome.launches,
            )
            return outcome
        finally:
            logger.set_item(None)

    async def _drive(self, item: RecoveryItem) -> RecoveryOutcome:
        action = item.recovery_action
        outcome = RecoveryOutcome(item=item, state=RecoveryState.HEALTHY)

        if await self.checker.is_healthy(item):
            outcome.transitions.append(RecoveryState.HEALTHY)
            return outcome

        self._enter(outcome, RecoveryState.UNHEALTHY)
        attempt = 0

        while True:
            attempt += 1

            if attempt == self.critical_counts:
                self._enter(outcome, RecoveryState.EXHAUSTED)
                self.sink.info(
                    f"{self.critical_counts - 1} recovery attempts for {action} "
                    "have been made, aborting further attempts and moving on "
                    "with next recovery item",
                    recovery_action=action,
                    attempts=self.critical_counts - 1,
                )
                return outcome

            self._enter(outcome, RecoveryState.RECOVERING)
            self.sink.info(
                f"Watchdog's recovery attempt #{attempt} procedure started: {action}",
                recovery_action=action,
                attempt=attempt,
            )

            launched = True
            error_message = None
            try:
                await self.executor.execute(item)
            except RecoveryLaunchError as e:
                error_message = e.message
                launched = "pid" in e.context
                self.sink.error(
                    f"Watchdog's recovery attempt #{attempt} could not complete: "
                    f"{e.message}: {action}",
                    recovery_action=action,
                    attempt=attempt,
                )

            healthy = await self.checker.is_healthy(item)
            outcome.attempts.append(
                RecoveryAttempt(
                    number=attempt,
                    timestamp=datetime.now(),
                    launched=launched,
                    healthy_after=healthy,
                    error_message=error_message,
                )
            )

            if healthy:
                self._enter(outcome, RecoveryState.HEALTHY)
                self.sink.info(
                    f"Watchdog's recovery attempt #{attempt} SUCCESS: {action}",
                    recovery_action=action,
                    attempt=attempt,
                )
                return outcome

            self.sink.info(
                f"Watchdog's recovery attempt #{attempt} FAILED: {action}",
                recovery_action=action,
                attempt=attempt,
            )

    def _enter(self, outcome: RecoveryOutcome, state: RecoveryState) -> None:
        outcome.state = state
        outcome.transitions.append(state)

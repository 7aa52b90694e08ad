"""Watchdog loop: periodic health checks and recovery for all recovery items."""

import asyncio
import threading

from ..config.models import WatchdogConfig
from ..utils.logging import EventSink, LogContext, LoggerEventSink, get_logger
from .checker import HealthChecker
from .recovery import RecoveryExecutor, RecoveryOutcome, RecoveryState, RetryPolicy

logger = get_logger(__name__, LogContext.WATCHDOG)


class StopSignal:
    """Set-once stop flag, raisable from any thread and awaitable by the worker.

    ``set()`` may be called before, during or after the worker's event loop
    starts waiting; a pending ``wait()`` wakes immediately either way.
    """

    def __init__(self) -> None:
        self._flag = threading.Event()
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._event: asyncio.Event | None = None

    def is_set(self) -> bool:
        return self._flag.is_set()

    def set(self) -> bool:
        """Raise the signal. Returns False if it was already raised."""
        with self._lock:
            if self._flag.is_set():
                return False
            self._flag.set()
            loop, event = self._loop, self._event

        if loop is not None and event is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(event.set)
            except RuntimeError:
                # Loop closed between the check and the call; nobody is waiting.
                logger.debug("Stop signal raised after the worker loop closed")
        return True

    def _bind(self) -> asyncio.Event:
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._event is None or self._loop is not loop:
                self._loop = loop
                self._event = asyncio.Event()
                if self._flag.is_set():
                    self._event.set()
            return self._event

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait until the signal is raised or ``timeout`` elapses.

        Returns:
            True if the signal was raised
        """
        event = self._bind()
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except TimeoutError:
            pass
        return self._flag.is_set()


class WatchdogLoop:
    """Runs health-check cycles over all recovery items until stopped."""

    def __init__(
        self,
        config: WatchdogConfig,
        checker: HealthChecker,
        executor: RecoveryExecutor,
        sink: EventSink | None = None,
        policy: RetryPolicy | None = None,
    ):
        """Initialize the watchdog loop.

        Args:
            config: Loaded watchdog configuration
            checker: Health checker used for every check and re-check
            executor: Recovery executor used by the retry policy
            sink: Event sink for milestones and transitions
            policy: Retry policy (built from the other collaborators if None)
        """
        self.config = config
        self.sink = sink or LoggerEventSink()
        self.policy = policy or RetryPolicy(config, checker, executor, self.sink)
        self.cycles_completed = 0

    async def run_cycle(self) -> list[RecoveryOutcome]:
        """Check (and if needed recover) every item once, in configured order."""
        outcomes = []

        for item in self.config.recovery_items:
            try:
                outcome = await self.policy.run(item)
            except Exception as e:
                self.sink.error(
                    f"Unexpected error while checking {item.recovery_action}: {e}",
                    recovery_action=item.recovery_action,
                )
                logger.error(
                    "Recovery sequence failed",
                    exception=e,
                    recovery_action=item.recovery_action,
                )
                continue

            outcomes.append(outcome)
            if outcome.state == RecoveryState.EXHAUSTED:
                logger.warning(
                    "Recovery item exhausted for this cycle",
                    recovery_action=item.recovery_action,
                    launches=outcome.launches,
                )

        self.cycles_completed += 1
        logger.debug(
            "Health check cycle completed",
            cycle=self.cycles_completed,
            items=len(self.config.recovery_items),
        )
        return outcomes

    async def run(self, stop: StopSignal) -> None:
        """Run cycles until ``stop`` is raised.

        The signal is observed before each cycle and during the interval wait.
        A recovery sequence that has started always reaches a terminal state.
        """
        self.sink.info(
            "Watchdog loop started",
            interval=self.config.health_check_interval,
            items=len(self.config.recovery_items),
        )

        while not stop.is_set():
            await self.run_cycle()
            if await stop.wait(self.config.health_check_interval):
                break

        self.sink.info("Watchdog loop stopped", cycles=self.cycles_completed)

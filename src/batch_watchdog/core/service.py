"""Lifecycle control for the watchdog: start, stop and the worker thread."""

import asyncio
import threading
from collections.abc import Callable, Sequence
from pathlib import Path

from ..config.loader import DEFAULT_CONFIG_FILE, load_watchdog_config
from ..config.models import WatchdogConfig
from ..health.checker import HealthChecker
from ..health.monitor import StopSignal, WatchdogLoop
from ..health.recovery import RecoveryExecutor
from ..utils.logging import (
    DEFAULT_EVENT_SOURCE,
    EventSink,
    LogContext,
    LoggerEventSink,
    get_logger,
)
from ..utils.process import StatusQueryRunner

logger = get_logger(__name__, LogContext.SERVICE)

PATH_SEPARATORS = ("/", "\\")


def sanitize_override(value: str) -> str:
    """Strip path separators from a startup override."""
    for separator in PATH_SEPARATORS:
        value = value.replace(separator, "")
    return value


class WatchdogService:
    """Host-facing start/stop surface around the watchdog loop."""

    def __init__(
        self,
        config_file: str = DEFAULT_CONFIG_FILE,
        event_source: str = DEFAULT_EVENT_SOURCE,
        config_dir: str | Path | None = None,
        config_loader: Callable[..., WatchdogConfig] = load_watchdog_config,
        sink_factory: Callable[[str], EventSink] = LoggerEventSink,
    ):
        self.config_file = config_file
        self.event_source = event_source
        self.config_dir = config_dir
        self.config_loader = config_loader
        self.sink_factory = sink_factory
        self.sink = sink_factory(event_source)

        self.config: WatchdogConfig | None = None
        self.stop_signal = StopSignal()
        self._thread: threading.Thread | None = None
        self._error: BaseException | None = None

    def override_settings(self, args: Sequence[str]) -> None:
        """Apply positional overrides: config file name, then event source."""
        if len(args) > 0:
            self.config_file = sanitize_override(args[0])
            self.sink.info(f"Config file updated to: {self.config_file}")

        if len(args) > 1:
            self.event_source = sanitize_override(args[1])
            self.sink = self.sink_factory(self.event_source)
            self.sink.info(f"Event Source Name updated to: {self.event_source}")

    def start(self, args: Sequence[str] = ()) -> None:
        """Load configuration and spawn the worker.

        Raises:
            ConfigurationError: If the configuration cannot be loaded; the
                worker is not started in that case
        """
        if self._thread is not None:
            raise RuntimeError("Watchdog service already started")

        self.sink.info("Custom batch watchdog has been started.")

        if args:
            self.override_settings(args)

        try:
            self.config = self.config_loader(self.config_file, self.config_dir)
        except Exception as e:
            self.sink.error(f"Watchdog failed to start: {e}")
            raise

        self.sink.info(self.config.describe())

        self._thread = threading.Thread(
            target=self._run, name="batch-watchdog", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Raise the stop signal and return without waiting for the worker."""
        self.sink.info("Custom batch watchdog has been signalled to stop.")
        self.stop_signal.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker to finish. Returns True if it has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def error(self) -> BaseException | None:
        """Exception that ended the worker, if any."""
        return self._error

    def build_loop(self, config: WatchdogConfig) -> WatchdogLoop:
        """Wire the default collaborators for ``config``."""
        status_query = StatusQueryRunner(
            executable=config.status_query_executable,
            timeout=config.status_query_timeout,
        )
        checker = HealthChecker(sink=self.sink, status_query=status_query)
        executor = RecoveryExecutor(config, sink=self.sink)
        return WatchdogLoop(config, checker, executor, sink=self.sink)

    def _run(self) -> None:
        assert self.config is not None
        watchdog_loop = self.build_loop(self.config)
        try:
            asyncio.run(watchdog_loop.run(self.stop_signal))
        except Exception as e:
            self._error = e
            self.sink.error(f"Watchdog worker terminated unexpectedly: {e}")
            logger.critical("Watchdog worker terminated", exception=e)

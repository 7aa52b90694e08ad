"""
Pytest configuration and shared fixtures for batch-watchdog tests.
"""

import sys
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from batch_watchdog.config.models import RecoveryItem, WatchdogConfig
from batch_watchdog.utils.logging import CheckError
from batch_watchdog.utils.process import LaunchResult


class RecordingSink:
    """Event sink that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def info(self, message: str, **fields: Any) -> None:
        self.events.append(("info", message, fields))

    def warning(self, message: str, **fields: Any) -> None:
        self.events.append(("warning", message, fields))

    def error(self, message: str, **fields: Any) -> None:
        self.events.append(("error", message, fields))

    def messages(self, level: str | None = None) -> list[str]:
        return [m for lvl, m, _ in self.events if level is None or lvl == level]


class FakeStatusQuery:
    """Status query returning canned output, or raising CheckError."""

    def __init__(self, output: str = "", error: str | None = None) -> None:
        self.output = output
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def query(self, database: str, bin_directory: str | None = None) -> str:
        self.calls.append((database, bin_directory))
        if self.error:
            raise CheckError(self.error)
        return self.output


class FakeLauncher:
    """Launcher that records launches and can run a side effect per launch."""

    def __init__(self, on_launch: Callable[[int], None] | None = None) -> None:
        self.launches: list[dict[str, Any]] = []
        self.on_launch = on_launch

    async def launch(self, command, suppress_console, timeout, notify, elevated=False):
        self.launches.append(
            {
                "command": command,
                "suppress_console": suppress_console,
                "timeout": timeout,
                "elevated": elevated,
            }
        )
        notify(f"Recovery action started: {command}")
        if self.on_launch:
            self.on_launch(len(self.launches))
        return LaunchResult(
            pid=1000 + len(self.launches),
            command=[command],
            return_code=0,
            duration_seconds=0.0,
        )


class ProcessTable:
    """Mutable stand-in for the OS process table."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self.names = set(names)
        self.calls = 0

    def __call__(self) -> set[str]:
        self.calls += 1
        return set(self.names)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def process_table() -> ProcessTable:
    return ProcessTable()


@pytest.fixture
def make_item() -> Callable[..., RecoveryItem]:
    def _make(**kwargs: Any) -> RecoveryItem:
        kwargs.setdefault("recovery_action", "/opt/recover.sh")
        return RecoveryItem(**kwargs)

    return _make


@pytest.fixture
def make_config() -> Callable[..., WatchdogConfig]:
    def _make(**kwargs: Any) -> WatchdogConfig:
        kwargs.setdefault("health_check_interval_ms", 10)
        return WatchdogConfig(**kwargs)

    return _make


@pytest.fixture
def status_query_factory() -> type[FakeStatusQuery]:
    return FakeStatusQuery


@pytest.fixture
def launcher_factory() -> type[FakeLauncher]:
    return FakeLauncher

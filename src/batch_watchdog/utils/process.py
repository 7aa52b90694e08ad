"""Process utilities: enumeration, status queries and recovery launches."""

import asyncio
import contextlib
import os
import shutil
import subprocess  # nosec B404
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import psutil

from .logging import CheckError, LogContext, RecoveryLaunchError, get_logger

logger = get_logger(__name__, LogContext.PROCESS)

DEFAULT_STATUS_QUERY_EXECUTABLE = "staradmin"

IS_WINDOWS = sys.platform == "win32"


def list_process_names() -> set[str]:
    """Return the names of all currently running OS processes.

    Raises:
        CheckError: If the process table cannot be read
    """
    names: set[str] = set()
    try:
        for proc in psutil.process_iter(["name"]):
            name = proc.info.get("name")
            if name:
                names.add(name)
    except (psutil.Error, OSError) as e:
        raise CheckError(f"Failed to enumerate processes: {e}") from e
    return names


def process_name_matches(required: str, running: str) -> bool:
    """Exact, case-sensitive match; ``<name>.exe`` image names also match ``<name>``."""
    if running == required:
        return True
    return running.endswith(".exe") and running[: -len(".exe")] == required


@dataclass
class LaunchResult:
    """Outcome of a recovery launch that completed within its timeout."""

    pid: int
    command: list[str]
    return_code: int
    duration_seconds: float


class StatusQueryRunner:
    """Runs the external status-query command and captures its standard output."""

    def __init__(
        self,
        executable: str = DEFAULT_STATUS_QUERY_EXECUTABLE,
        timeout: float = 30.0,
    ):
        """Initialize the runner.

        Args:
            executable: Status-query program name
            timeout: Maximum seconds to wait for the command output
        """
        self.executable = executable
        self.timeout = timeout

    def build_command(self, database: str, bin_directory: str | None = None) -> list[str]:
        """Build the status-query command line for a database."""
        program = (
            str(Path(bin_directory) / self.executable)
            if bin_directory
            else self.executable
        )
        return [program, f"--database={database}", "list", "app"]

    async def query(self, database: str, bin_directory: str | None = None) -> str:
        """Run the status query and return its standard output as text.

        Raises:
            CheckError: If the command cannot be run, times out or exits non-zero
        """
        command = self.build_command(database, bin_directory)
        logger.debug("Running status query", command=command)

        try:
            process = await asyncio.create_subprocess_exec(  # nosec B603
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **_no_window_kwargs(),
            )
        except OSError as e:
            raise CheckError(
                f"Failed to run status query {command[0]}: {e}",
                context={"command": command},
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except TimeoutError as e:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise CheckError(
                f"Status query timed out after {self.timeout}s",
                context={"command": command},
            ) from e
        except OSError as e:
            raise CheckError(
                f"Failed to read status query output: {e}",
                context={"command": command},
            ) from e

        if process.returncode != 0:
            raise CheckError(
                f"Status query exited with code {process.returncode}",
                context={
                    "command": command,
                    "stderr": stderr.decode(errors="replace").strip(),
                },
            )

        return stdout.decode(errors="replace")


class RecoveryLauncher:
    """Starts recovery actions as detached OS processes with an enforced timeout."""

    def build_command(self, command: str, elevated: bool = False) -> list[str]:
        """Wrap a recovery command line in the platform shell.

        Elevation uses non-interactive ``sudo`` on POSIX hosts when the
        watchdog is not already running as root.
        """
        if IS_WINDOWS:
            argv = [os.environ.get("COMSPEC", "cmd.exe"), "/c", command]
        else:
            argv = ["/bin/sh", "-c", command]

        if elevated:
            if IS_WINDOWS:
                logger.warning(
                    "Elevation is not available on this platform, "
                    "launching with the watchdog identity",
                    command=command,
                )
            elif os.geteuid() != 0:
                sudo = shutil.which("sudo")
                if sudo:
                    argv = [sudo, "-n", *argv]
                else:
                    logger.warning(
                        "sudo not found, launching with the watchdog identity",
                        command=command,
                    )

        return argv

    async def launch(
        self,
        command: str,
        suppress_console: bool,
        timeout: float,
        notify: Callable[[str], None],
        elevated: bool = False,
    ) -> LaunchResult:
        """Launch a recovery action and wait up to ``timeout`` for it to finish.

        The process is started in its own session, so it outlives the watchdog.
        It is never killed: on timeout it keeps running and the launch is
        reported as failed.

        Args:
            command: Recovery command line or script path
            suppress_console: Run without an attached console window
            timeout: Maximum seconds to wait for completion
            notify: Callback receiving lifecycle notifications
            elevated: Request elevated privileges

        Returns:
            LaunchResult for an action that completed in time

        Raises:
            RecoveryLaunchError: If the action fails to start or times out
        """
        argv = self.build_command(command, elevated)
        loop = asyncio.get_running_loop()
        started_at = loop.time()

        try:
            process = self._start_process(argv, suppress_console)
        except OSError as e:
            raise RecoveryLaunchError(
                f"Failed to start recovery action {command}: {e}",
                context={"command": argv},
            ) from e

        notify(f"Recovery action started (pid {process.pid}): {command}")

        try:
            return_code = await asyncio.wait_for(
                self._wait_for_process(process), timeout=timeout
            )
        except TimeoutError as e:
            notify(
                f"Recovery action still running after {timeout}s (pid {process.pid}): {command}"
            )
            raise RecoveryLaunchError(
                f"Recovery action exceeded its {timeout}s execution timeout",
                context={"command": argv, "pid": process.pid},
            ) from e

        duration = loop.time() - started_at
        notify(
            f"Recovery action completed with exit code {return_code} "
            f"in {duration:.1f}s: {command}"
        )
        return LaunchResult(
            pid=process.pid,
            command=argv,
            return_code=return_code,
            duration_seconds=duration,
        )

    def _start_process(
        self, argv: list[str], suppress_console: bool
    ) -> subprocess.Popen[bytes]:
        """Start the recovery process.

        A plain Popen is used rather than an asyncio subprocess transport,
        which would kill the child when the worker's event loop closes.
        """
        logger.debug("Starting recovery process", command=argv)
        return subprocess.Popen(argv, **_launch_kwargs(suppress_console))  # nosec B603

    async def _wait_for_process(self, process: subprocess.Popen[bytes]) -> int:
        """Wait for a process to terminate and return its exit code."""
        while process.poll() is None:
            await asyncio.sleep(0.1)
        return process.returncode


def _no_window_kwargs() -> dict:
    if IS_WINDOWS:
        return {"creationflags": getattr(subprocess, "CREATE_NO_WINDOW", 0)}
    return {}


def _launch_kwargs(suppress_console: bool) -> dict:
    if IS_WINDOWS:
        flag = "CREATE_NO_WINDOW" if suppress_console else "CREATE_NEW_CONSOLE"
        return {
            "creationflags": getattr(subprocess, flag, 0)
            | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
        }

    kwargs: dict = {"start_new_session": True}
    if suppress_console:
        kwargs.update(
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    return kwargs

"""Commands that run the watchdog."""

import asyncio
import signal

import click

from ..config.loader import DEFAULT_CONFIG_FILE, load_watchdog_config
from ..core.service import WatchdogService
from ..health.checker import HealthChecker, HealthCheckResult
from ..utils.logging import ConfigurationError, LogContext, get_logger
from ..utils.process import StatusQueryRunner
from .utils import format_output, handle_error, output_table

logger = get_logger(__name__, LogContext.CLI)

JOIN_POLL_SECONDS = 0.5


@click.command()
@click.argument("config_file", required=False)
@click.argument("event_source", required=False)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    help="Directory holding the configuration file (default: current directory)",
)
def run(
    config_file: str | None,
    event_source: str | None,
    config_dir: str | None,
) -> None:
    """Run the watchdog until SIGINT or SIGTERM.

    CONFIG_FILE and EVENT_SOURCE override the configuration file name and the
    event source name. Path separators are stripped from both. A relative
    CONFIG_FILE is looked up in --config-dir, or in the current directory
    when --config-dir is not given; service hosts that start in / should
    pass --config-dir.
    """
    args = [value for value in (config_file, event_source) if value is not None]
    service = WatchdogService(config_dir=config_dir)

    try:
        service.start(args)
    except ConfigurationError as e:
        handle_error(f"Configuration error: {e.message}")

    def _request_stop(signum, frame) -> None:
        logger.info("Stop requested", signal=signal.Signals(signum).name)
        service.stop()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    # Poll so that signal handlers run on the main thread
    while not service.join(timeout=JOIN_POLL_SECONDS):
        pass

    if service.error is not None:
        handle_error(f"Watchdog stopped unexpectedly: {service.error}")


@click.command()
@click.argument("config_file", required=False, default=DEFAULT_CONFIG_FILE)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    help="Directory holding the configuration file (default: current directory)",
)
@click.pass_context
def check(ctx: click.Context, config_file: str, config_dir: str | None) -> None:
    """Run one health pass over all recovery items without recovering."""
    try:
        watchdog_config = load_watchdog_config(config_file, config_dir)
    except ConfigurationError as e:
        handle_error(f"Configuration error: {e.message}")

    checker = HealthChecker(
        status_query=StatusQueryRunner(
            executable=watchdog_config.status_query_executable,
            timeout=watchdog_config.status_query_timeout,
        )
    )

    async def _check_all() -> list[HealthCheckResult]:
        return [await checker.check(item) for item in watchdog_config.recovery_items]

    results = asyncio.run(_check_all())
    items = [
        {
            "recovery_action": item.recovery_action,
            "status": result.status.value,
            "message": result.message,
        }
        for item, result in zip(watchdog_config.recovery_items, results, strict=True)
    ]

    def _human(data: dict) -> None:
        output_table(
            ["Recovery action", "Status", "Message"],
            [[i["recovery_action"], i["status"], i["message"]] for i in data["items"]],
        )

    all_healthy = all(result.healthy for result in results)
    format_output(ctx, {"healthy": all_healthy, "items": items}, _human)

    if not all_healthy:
        ctx.exit(2)

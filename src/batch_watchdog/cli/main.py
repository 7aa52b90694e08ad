"""Main CLI entry point for batch-watchdog."""

from pathlib import Path

import click

from .. import __version__
from ..utils.logging import setup_logging
from .config import config
from .run import check, run


@click.group()
@click.version_option(version=__version__, prog_name="batch-watchdog")
@click.option(
    "--log-level",
    type=click.Choice(
        ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
    ),
    default="INFO",
    show_default=True,
    help="Minimum log level for the watchdog",
)
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also log to a file")
@click.option("--plain", is_flag=True, help="Plain text logs instead of JSON lines")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.pass_context
def main(
    ctx: click.Context,
    log_level: str,
    log_file: str | None,
    plain: bool,
    json: bool,
) -> None:
    """Custom Batch Watchdog - keep managed workloads alive.

    Periodically checks that required processes and applications are
    running and launches the configured recovery action, a bounded number
    of times, when they are not.

    Use commands to organize functionality:
    - run: Run the watchdog until interrupted
    - check: Run one health pass without recovery
    - config: Inspect and validate configuration
    """
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    ctx.obj["log_file"] = log_file
    ctx.obj["plain"] = plain
    ctx.obj["json"] = json

    setup_logging(
        log_level=log_level,
        log_file=Path(log_file) if log_file else None,
        enable_structured=not plain,
    )


main.add_command(run)
main.add_command(check)
main.add_command(config)


if __name__ == "__main__":
    main()

"""Configuration inspection commands."""

import click

from ..config.loader import DEFAULT_CONFIG_FILE, load_watchdog_config
from ..config.models import WatchdogConfig
from ..utils.logging import ConfigurationError
from .utils import format_output, handle_error

config_dir_option = click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    help="Directory holding the configuration file (default: current directory)",
)


def _load(config_file: str, config_dir: str | None) -> WatchdogConfig:
    try:
        return load_watchdog_config(config_file, config_dir)
    except ConfigurationError as e:
        handle_error(f"Configuration error: {e.message}")
        raise  # handle_error exits


@click.group()
def config() -> None:
    """Inspect and validate configuration."""
    pass


@config.command()
@click.argument("config_file", required=False, default=DEFAULT_CONFIG_FILE)
@config_dir_option
@click.pass_context
def show(ctx: click.Context, config_file: str, config_dir: str | None) -> None:
    """Show the effective configuration, including defaults and overrides."""
    watchdog_config = _load(config_file, config_dir)

    def _human(data: dict) -> None:
        click.echo(watchdog_config.describe())

    format_output(ctx, {"configuration": watchdog_config.model_dump(mode="json")}, _human)


@config.command()
@click.argument("config_file", required=False, default=DEFAULT_CONFIG_FILE)
@config_dir_option
def validate(config_file: str, config_dir: str | None) -> None:
    """Check that the configuration loads cleanly."""
    watchdog_config = _load(config_file, config_dir)
    click.echo(
        f"Configuration is valid: {len(watchdog_config.recovery_items)} recovery item(s)"
    )

"""Configuration loading and management."""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..utils.logging import ConfigurationError, LogContext, get_logger
from .models import WatchdogConfig

logger = get_logger(__name__, LogContext.CONFIG)

DEFAULT_CONFIG_FILE = "cbwatchdog.json"

ENV_PREFIX = "BATCH_WATCHDOG_"


def resolve_config_path(
    config_file: str = DEFAULT_CONFIG_FILE, config_dir: str | Path | None = None
) -> Path:
    """Resolve the configuration file location.

    A rooted path is used as given; anything else is taken relative to
    ``config_dir`` (the current directory when not set).
    """
    path = Path(config_file).expanduser()
    if path.is_absolute():
        return path

    base = Path(config_dir).expanduser() if config_dir else Path.cwd()
    return base / path


def load_config_file(config_path: Path) -> dict[str, Any]:
    """Load raw configuration data from a JSON or YAML file."""
    try:
        text = config_path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(
            f"Invalid format on: {config_path}: {e}", context={"path": str(config_path)}
        ) from e

    try:
        if config_path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Invalid format on: {config_path}: {e}", context={"path": str(config_path)}
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid format on: {config_path}: top level must be a mapping",
            context={"path": str(config_path)},
        )
    return data


def load_env_vars() -> dict[str, Any]:
    """Load configuration overrides from environment variables."""
    config: dict[str, Any] = {}

    env_mappings = {
        f"{ENV_PREFIX}HEALTH_CHECK_INTERVAL": "health_check_interval_ms",
        f"{ENV_PREFIX}RECOVERY_EXECUTION_TIMEOUT": "recovery_execution_timeout_ms",
        f"{ENV_PREFIX}CRITICAL_COUNTS": "critical_counts",
        f"{ENV_PREFIX}SUPPRESS_RECOVERY_CONSOLE": "suppress_recovery_console",
        f"{ENV_PREFIX}STATUS_QUERY_EXECUTABLE": "status_query_executable",
        f"{ENV_PREFIX}STATUS_QUERY_TIMEOUT": "status_query_timeout_ms",
    }

    # Values are validated (and type converted) by the model
    for env_var, config_key in env_mappings.items():
        if env_var in os.environ:
            config[config_key] = os.environ[env_var]

    return config


def _without_aliases_of(data: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Drop file keys that would shadow an override of the same field."""
    if not overrides:
        return data

    shadowed: set[str] = set()
    for field_name in overrides:
        alias = WatchdogConfig.model_fields[field_name].validation_alias
        choices = getattr(alias, "choices", [])
        shadowed.update(c for c in choices if isinstance(c, str))
    return {k: v for k, v in data.items() if k not in shadowed}


def load_watchdog_config(
    config_file: str = DEFAULT_CONFIG_FILE,
    config_dir: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> WatchdogConfig:
    """Load and validate the watchdog configuration.

    Precedence order (highest to lowest):
    1. Explicit overrides
    2. Environment variables
    3. Configuration file
    4. Default values

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_path = resolve_config_path(config_file, config_dir)
    logger.info("Reading configuration file", path=str(config_path))

    file_data = load_config_file(config_path)

    override_data = load_env_vars()
    if overrides:
        override_data.update(overrides)

    config_data = _without_aliases_of(file_data, override_data)
    config_data.update(override_data)

    try:
        config = WatchdogConfig.model_validate(config_data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid format on: {config_path}: {e}",
            context={"path": str(config_path), "errors": e.errors()},
        ) from e

    logger.info(
        "Configuration loaded",
        path=str(config_path),
        recovery_items=len(config.recovery_items),
    )
    return config

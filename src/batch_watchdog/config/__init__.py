"""Configuration management module."""

from .loader import DEFAULT_CONFIG_FILE, load_watchdog_config, resolve_config_path
from .models import RecoveryItem, WatchdogConfig

__all__ = [
    "WatchdogConfig",
    "RecoveryItem",
    "load_watchdog_config",
    "resolve_config_path",
    "DEFAULT_CONFIG_FILE",
]

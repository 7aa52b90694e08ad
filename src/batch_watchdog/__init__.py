"""batch-watchdog: keeps managed workloads alive with bounded, policy-driven recovery."""

__version__ = "0.1.0"

from .config.models import RecoveryItem, WatchdogConfig
from .core.service import WatchdogService

__all__ = ["WatchdogService", "WatchdogConfig", "RecoveryItem", "__version__"]

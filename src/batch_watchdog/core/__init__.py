"""Core lifecycle components."""

from .service import WatchdogService, sanitize_override

__all__ = ["WatchdogService", "sanitize_override"]

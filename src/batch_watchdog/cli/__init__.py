"""Command line interface for batch-watchdog."""

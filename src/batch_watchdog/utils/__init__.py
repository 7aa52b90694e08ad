"""Shared utilities: logging, errors and OS process primitives."""

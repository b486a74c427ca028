"""Shared helpers used across layers: logging and time utilities."""

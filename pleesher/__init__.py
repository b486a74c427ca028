"""Pleesher API client with a layered, invalidatable cache."""

__version__ = "1.0.0"

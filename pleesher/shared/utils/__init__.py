"""Shared utilities (time helpers)."""

from pleesher.shared.utils.datetime import is_expired, utc_now, utc_timestamp

__all__ = ["is_expired", "utc_now", "utc_timestamp"]

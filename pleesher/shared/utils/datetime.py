"""
UTC time utilities for token expiry bookkeeping.

All times stored in the cache are Unix timestamps (seconds, UTC) so
that cached payloads stay JSON-serializable.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Return the current UTC datetime with timezone info.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(UTC)


def utc_timestamp() -> float:
    """Return the current Unix timestamp (seconds since epoch, UTC)."""
    return utc_now().timestamp()


def is_expired(expiration_timestamp: float | None) -> bool:
    """
    Return True when a Unix expiration timestamp is missing or in the past.

    Args:
        expiration_timestamp: Unix timestamp after which a value is stale

    Returns:
        True if the value must be renewed
    """
    if expiration_timestamp is None:
        return True
    return utc_timestamp() > expiration_timestamp

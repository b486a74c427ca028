"""Tests for UTC time helpers used for token expiry."""

from datetime import UTC

from pleesher.shared.utils.datetime import is_expired, utc_now, utc_timestamp


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo == UTC


def test_is_expired() -> None:
    now = utc_timestamp()
    assert is_expired(None)
    assert is_expired(now - 10)
    assert not is_expired(now + 3600)

"""Tests for domain exceptions (error_code, message, details)."""

import pytest

from pleesher.domain.exceptions import (
    ApiError,
    ConfigurationError,
    InvalidKeyError,
    InvalidPayloadError,
    NoSuchObjectError,
    PleesherException,
    ScopeNotInitializedError,
    StorageError,
)


def test_pleesher_exception_default_error_code() -> None:
    """Base PleesherException uses class name as error_code when not provided."""
    exc = PleesherException("Something failed")
    assert exc.message == "Something failed"
    assert exc.error_code == "PleesherException"
    assert exc.details == {}
    assert str(exc) == "Something failed"


def test_pleesher_exception_custom_error_code_and_details() -> None:
    exc = PleesherException("Oops", error_code="CUSTOM", details={"key": "value"})
    assert exc.error_code == "CUSTOM"
    assert exc.details == {"key": "value"}
    assert str(exc) == "Oops (CUSTOM)"


def test_storage_error() -> None:
    """StorageError names the operation and backend in message and details."""
    exc = StorageError("save_all", "DatabaseStorage", "database is locked")
    assert exc.error_code == "STORAGE_ERROR"
    assert exc.message == "Cache save_all failed on DatabaseStorage: database is locked"
    assert exc.details == {
        "operation": "save_all",
        "backend": "DatabaseStorage",
        "reason": "database is locked",
    }


def test_invalid_key_error() -> None:
    exc = InvalidKeyError("bad key", "goal_*")
    assert exc.error_code == "INVALID_CACHE_KEY"
    assert exc.details == {"key": "goal_*"}


def test_invalid_key_error_without_key() -> None:
    assert InvalidKeyError("bad key").details == {}


def test_invalid_payload_error() -> None:
    exc = InvalidPayloadError("goal", "Object of type object is not JSON serializable")
    assert exc.error_code == "INVALID_CACHE_PAYLOAD"
    assert exc.details == {"key": "goal"}
    assert "not JSON-serializable" in exc.message


def test_scope_not_initialized_error() -> None:
    exc = ScopeNotInitializedError("DatabaseStorage")
    assert exc.error_code == "SCOPE_NOT_INITIALIZED"
    assert exc.details == {"backend": "DatabaseStorage"}
    assert "set_scope()" in exc.message


def test_configuration_error() -> None:
    assert ConfigurationError("missing url").error_code == "CONFIGURATION_ERROR"


def test_api_error_uses_remote_code() -> None:
    exc = ApiError("The access token provided is invalid", "invalid_token", 401)
    assert exc.error_code == "invalid_token"
    assert exc.details == {"status_code": 401}
    assert str(exc) == "The access token provided is invalid (invalid_token)"


def test_api_error_default_code() -> None:
    exc = ApiError("Could not parse webservice query result")
    assert exc.error_code == "API_ERROR"
    assert exc.details == {}


def test_no_such_object_error_is_api_error() -> None:
    exc = NoSuchObjectError("Unknown goal", "not_found", 404)
    assert isinstance(exc, ApiError)
    assert exc.details == {"status_code": 404}


@pytest.mark.parametrize(
    "exc",
    [
        StorageError("load", "LocalStorage", "x"),
        InvalidKeyError("x"),
        InvalidPayloadError("goal", "x"),
        ScopeNotInitializedError("LocalStorage"),
        ConfigurationError("x"),
        ApiError("x"),
        NoSuchObjectError("x"),
    ],
)
def test_all_inherit_from_base(exc: PleesherException) -> None:
    assert isinstance(exc, PleesherException)

"""Domain exceptions for the Pleesher client.

Defines the error taxonomy shared by the cache backends and the remote
API client. Callers can catch PleesherException to handle every client
error, or a subclass for a specific failure.
"""

from typing import Any


class PleesherException(Exception):
    """Base exception for all Pleesher client errors.

    All custom exceptions should inherit from this class to allow
    consistent error handling and logging.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. key, owner_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.error_code and self.error_code != self.__class__.__name__:
            return f"{self.message} ({self.error_code})"
        return self.message


class StorageError(PleesherException):
    """Raised when a cache backend cannot read or write its store.

    Always surfaced to the caller; never turned into a cache miss.
    """

    def __init__(self, operation: str, backend: str, reason: str) -> None:
        """Initialize with the failed operation and backend.

        Args:
            operation: Storage operation that failed (e.g. 'save_all').
            backend: Backend class name.
            reason: Underlying error description.
        """
        super().__init__(
            f"Cache {operation} failed on {backend}: {reason}",
            "STORAGE_ERROR",
            {"operation": operation, "backend": backend, "reason": reason},
        )


class InvalidKeyError(PleesherException):
    """Raised when a cache key, owner id or entry id is malformed."""

    def __init__(self, message: str, key: Any = None) -> None:
        details = {"key": key} if key is not None else {}
        super().__init__(message, "INVALID_CACHE_KEY", details)


class InvalidPayloadError(PleesherException):
    """Raised when data to cache cannot be stored as JSON."""

    def __init__(self, key: Any, reason: str) -> None:
        super().__init__(
            f"Cache payload for {key!r} is not JSON-serializable: {reason}",
            "INVALID_CACHE_PAYLOAD",
            {"key": key},
        )


class ScopeNotInitializedError(PleesherException):
    """Raised when a backend that requires a scope is used before set_scope()."""

    def __init__(self, backend: str) -> None:
        super().__init__(
            f"No cache scope selected on {backend}; call set_scope() first",
            "SCOPE_NOT_INITIALIZED",
            {"backend": backend},
        )


class ConfigurationError(PleesherException):
    """Raised when settings cannot build the requested component."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "CONFIGURATION_ERROR")


class ApiError(PleesherException):
    """Raised when the remote API answers with an error payload."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Initialize with the remote error description.

        Args:
            message: error_description returned by the API.
            error_code: error returned by the API (e.g. 'invalid_token').
            status_code: HTTP status code if a response was received.
        """
        details = {"status_code": status_code} if status_code is not None else {}
        super().__init__(message, error_code or "API_ERROR", details)


class NoSuchObjectError(ApiError):
    """Raised when the remote API answers 404 for the requested object."""

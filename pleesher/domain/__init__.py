"""Domain layer: exceptions shared by the cache and the API client.

No dependencies on infrastructure.
"""

from pleesher.domain.exceptions import (
    ApiError,
    ConfigurationError,
    InvalidKeyError,
    NoSuchObjectError,
    PleesherException,
    ScopeNotInitializedError,
    StorageError,
)

__all__ = [
    "ApiError",
    "ConfigurationError",
    "InvalidKeyError",
    "NoSuchObjectError",
    "PleesherException",
    "ScopeNotInitializedError",
    "StorageError",
]

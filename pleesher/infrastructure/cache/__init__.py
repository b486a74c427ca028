"""Cache: Storage contract, backends and the configured chain.

Backends implement the local primitives of Storage; the base class
composes them into a fallback chain. StorageFactory builds the chain from
settings and loads the SQLAlchemy and Redis backed layers lazily.
"""

from pleesher.infrastructure.cache.factory import StorageFactory
from pleesher.infrastructure.cache.fetch_storage import FetchStorage
from pleesher.infrastructure.cache.keys import CacheKey, key_matches
from pleesher.infrastructure.cache.local_storage import LocalStorage
from pleesher.infrastructure.cache.session_storage import SessionStorage
from pleesher.infrastructure.cache.storage_protocol import MISS, EntryState, Storage

__all__ = [
    "MISS",
    "CacheKey",
    "EntryState",
    "FetchStorage",
    "LocalStorage",
    "SessionStorage",
    "Storage",
    "StorageFactory",
    "key_matches",
]

"""Session stores: external per-session snapshot storage for SessionStorage.

RedisSessionStore loads redis lazily through the factory; InMemorySessionStore
has no dependencies.
"""

from pleesher.infrastructure.session.memory_store import InMemorySessionStore
from pleesher.infrastructure.session.protocol import SessionStoreProtocol

__all__ = [
    "InMemorySessionStore",
    "SessionStoreProtocol",
]

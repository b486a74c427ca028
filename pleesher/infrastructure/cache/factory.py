"""Cache chain factory: builds the configured Storage chain from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pleesher.domain.exceptions import ConfigurationError
from pleesher.infrastructure.cache.fetch_storage import Fetcher, FetchStorage
from pleesher.infrastructure.cache.storage_protocol import Storage
from pleesher.infrastructure.session.protocol import SessionStoreProtocol
from pleesher.shared.telemetry.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from pleesher.core.config import Settings

logger = get_logger(__name__)


class StorageFactory:
    """Factory for cache chains and session stores based on configuration."""

    @staticmethod
    def create_session_store(settings: "Settings | None" = None) -> SessionStoreProtocol:
        """Create the session store named by settings.session_store_backend.

        Raises:
            ConfigurationError: Unknown backend.
        """
        from pleesher.core.config import get_settings

        s = settings or get_settings()
        backend = s.session_store_backend.lower()

        if backend == "memory":
            from pleesher.infrastructure.session.memory_store import InMemorySessionStore

            return InMemorySessionStore()
        if backend == "redis":
            from pleesher.infrastructure.session.redis_store import RedisSessionStore

            return RedisSessionStore(settings=s)
        raise ConfigurationError(
            f"Unknown session store backend: {backend}. Supported: 'memory', 'redis'"
        )

    @staticmethod
    def create_storage(
        settings: "Settings | None" = None,
        fetch: Fetcher | None = None,
        session_store: SessionStoreProtocol | None = None,
        session_factory: "sessionmaker[Session] | None" = None,
    ) -> Storage:
        """Create the cache chain described by settings.cache_chain.

        Layers are built back to front so each one gets the next as its
        fallback. When fetch is given, a FetchStorage closes the chain.

        Args:
            settings: Client settings; if None, uses get_settings().
            fetch: Optional remote fetch callable for the bottom layer.
            session_store: Store for a 'session' layer; defaults to
                create_session_store(settings).
            session_factory: SQLAlchemy session factory for a 'database'
                layer; defaults to the settings-built one.

        Returns:
            Front layer of the chain, with settings.cache_scope applied.

        Raises:
            ConfigurationError: Unknown layer name.
        """
        from pleesher.core.config import get_settings

        s = settings or get_settings()
        fallback: Storage | None = FetchStorage(fetch) if fetch is not None else None

        for layer in reversed(s.cache_layers):
            if layer == "local":
                from pleesher.infrastructure.cache.local_storage import LocalStorage

                fallback = LocalStorage(fallback=fallback)
            elif layer == "session":
                from pleesher.infrastructure.cache.session_storage import SessionStorage

                fallback = SessionStorage(
                    session_store or StorageFactory.create_session_store(s),
                    s.session_key,
                    fallback=fallback,
                )
            elif layer == "database":
                from pleesher.infrastructure.cache.database_storage import DatabaseStorage

                fallback = DatabaseStorage(
                    session_factory=session_factory,
                    fallback=fallback,
                    require_scope=s.cache_require_scope,
                )
            else:
                raise ConfigurationError(
                    f"Unknown cache layer: {layer}. Supported: 'local', 'session', 'database'"
                )

        if fallback is None:
            raise ConfigurationError("PLEESHER_CACHE_CHAIN must name at least one layer")
        if s.cache_scope:
            fallback.set_scope(s.cache_scope)
        logger.info("Cache chain created: %s", " -> ".join(s.cache_layers))
        return fallback

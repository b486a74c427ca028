"""Redis-backed session store for cross-request cache persistence.

Snapshots are stored as JSON strings under pleesher_cache:<session_key>.
Unlike a best-effort cache, a session store that cannot be reached is an
error: Redis failures are raised as StorageError.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis

from pleesher.core.config import Settings, get_settings
from pleesher.core.constants import SESSION_KEY_PREFIX, SESSION_KEY_SEP
from pleesher.domain.exceptions import StorageError

logger = logging.getLogger(__name__)


def session_redis_key(session_key: str) -> str:
    """Redis key holding the snapshot of one session."""
    return f"{SESSION_KEY_PREFIX}{SESSION_KEY_SEP}{session_key}"


class RedisSessionStore:
    """Sync Redis session store.

    Pass redis_client for DI/testing; otherwise a client is created from
    settings on first use.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            redis_client: Optional Redis client for testing or DI.
            settings: Settings for connection parameters; defaults to get_settings().
        """
        self.redis = redis_client
        self.settings = settings or get_settings()

    def _client(self) -> redis.Redis:
        if self.redis is None:
            self.redis = redis.Redis(
                host=self.settings.redis_host,
                port=self.settings.redis_port,
                db=self.settings.redis_db,
                password=(
                    self.settings.redis_password.get_secret_value()
                    if self.settings.redis_password
                    else None
                ),
                decode_responses=True,
                socket_connect_timeout=5,
                socket_keepalive=True,
            )
            logger.info(
                "Redis session store configured: %s:%s",
                self.settings.redis_host,
                self.settings.redis_port,
            )
        return self.redis

    def load(self, session_key: str) -> dict[str, Any] | None:
        """Return the session snapshot, or None if absent.

        Raises:
            StorageError: Redis unavailable or stored value is not valid JSON.
        """
        key = session_redis_key(session_key)
        try:
            raw = self._client().get(key)
        except redis.RedisError as e:
            logger.exception("Session store get error for key %s", key)
            raise StorageError("load", self.__class__.__name__, str(e)) from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise StorageError("load", self.__class__.__name__, f"corrupt snapshot: {e}") from e

    def save(self, session_key: str, snapshot: dict[str, Any]) -> None:
        """Store the session snapshot.

        Raises:
            StorageError: Redis unavailable.
        """
        key = session_redis_key(session_key)
        try:
            self._client().set(key, json.dumps(snapshot))
        except redis.RedisError as e:
            logger.exception("Session store set error for key %s", key)
            raise StorageError("save", self.__class__.__name__, str(e)) from e

    def delete(self, session_key: str) -> None:
        """Remove the session snapshot.

        Raises:
            StorageError: Redis unavailable.
        """
        key = session_redis_key(session_key)
        try:
            self._client().delete(key)
        except redis.RedisError as e:
            logger.exception("Session store delete error for key %s", key)
            raise StorageError("delete", self.__class__.__name__, str(e)) from e

    def close(self) -> None:
        """Close the Redis connection if one was opened."""
        if self.redis is not None:
            self.redis.close()
            self.redis = None

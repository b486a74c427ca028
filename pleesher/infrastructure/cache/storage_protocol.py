"""Storage contract shared by every cache backend.

Storage implements the public operations once, including fallback chain
composition; backends only provide the local primitives (_save_entry,
_load_collection, ...). Implementations: LocalStorage, SessionStorage,
DatabaseStorage, FetchStorage.

Chain rules:
- Writes and invalidations apply locally, then propagate to the fallback
  unconditionally. A fallback failure propagates to the caller.
- Reads try the local layer first; on a miss they ask the fallback and
  cache a hit locally (write-through-on-read). Misses are never cached.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pleesher.core.constants import DEFAULT_SCOPE
from pleesher.domain.exceptions import InvalidPayloadError, ScopeNotInitializedError
from pleesher.infrastructure.cache.keys import (
    CacheKey,
    normalize_entry_id,
    normalize_owner_id,
    validate_key_name,
)

logger = logging.getLogger(__name__)


class EntryState(str, Enum):
    """State of one cached entry in a backend's local layer."""

    FRESH = "fresh"
    STALE = "stale"
    ABSENT = "absent"


class _Miss:
    """Marker for "no cached value"; distinct from any JSON value, None included."""

    _instance: _Miss | None = None

    def __new__(cls) -> _Miss:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Any = _Miss()


def _check_payload(key: str, data: Any) -> None:
    """Raise InvalidPayloadError unless data can be stored as JSON."""
    try:
        json.dumps(data)
    except (TypeError, ValueError) as e:
        raise InvalidPayloadError(key, str(e)) from e


class Storage(ABC):
    """Cache backend contract with optional fallback storage.

    A backend exclusively owns its local entries. The fallback is a
    non-owning reference; chains are singly linked and never cyclic.
    """

    def __init__(self, fallback: Storage | None = None, require_scope: bool = False) -> None:
        """Initialize the backend.

        Args:
            fallback: Storage consulted on a local miss and receiving every
                write and invalidation.
            require_scope: When True, operations raise ScopeNotInitializedError
                until set_scope() selects a non-empty scope.
        """
        self.scope: str | None = None
        self.require_scope = require_scope
        self.fallback: Storage | None = None
        if fallback is not None:
            self.set_fallback(fallback)

    @property
    def backend_name(self) -> str:
        return self.__class__.__name__

    def set_fallback(self, fallback: Storage | None) -> None:
        """Attach (or detach with None) the fallback storage.

        Raises:
            ValueError: If attaching would make the chain cyclic.
        """
        node = fallback
        while node is not None:
            if node is self:
                raise ValueError("Cache fallback chain must not be cyclic")
            node = node.fallback
        self.fallback = fallback

    @property
    def active_scope(self) -> str:
        """Scope used by the next operation.

        Raises:
            ScopeNotInitializedError: require_scope is set and no scope selected.
        """
        if self.scope:
            return self.scope
        if self.require_scope:
            raise ScopeNotInitializedError(self.backend_name)
        return DEFAULT_SCOPE

    def set_scope(self, scope: str | None) -> None:
        """Select the active partition on this backend and down the chain."""
        self._select_scope(scope or None)
        self.scope = scope or None
        if self.fallback is not None:
            self.fallback.set_scope(scope)

    def _key(
        self,
        owner_id: int | None,
        key: str,
        entry_id: int | None = None,
        allow_pattern: bool = False,
    ) -> CacheKey:
        return CacheKey.of(
            owner_id,
            key,
            entry_id,
            scope=self.active_scope,
            allow_pattern=allow_pattern,
        )

    # ---- Public contract ----

    def save(self, owner_id: int | None, key: str, entry_id: int | None, data: Any) -> None:
        """Upsert one entry, clear its obsolete flag, and propagate."""
        cache_key = self._key(owner_id, key, entry_id)
        _check_payload(key, data)
        self._save_entry(cache_key, data)
        logger.debug("Cache SAVE [%s]: %s", self.backend_name, cache_key)
        if self.fallback is not None:
            self.fallback.save(owner_id, key, entry_id, data)

    def save_all(
        self, owner_id: int | None, key: str, entries: Mapping[int | None, Any]
    ) -> None:
        """Replace the whole collection under (owner_id, key) and propagate.

        An empty mapping is cached as a confirmed-empty collection.

        Raises:
            InvalidPayloadError: A value cannot be stored as JSON; nothing
                is written in that case.
        """
        cache_key = self._key(owner_id, key)
        normalized = {normalize_entry_id(entry_id): data for entry_id, data in entries.items()}
        _check_payload(key, list(normalized.values()))
        self._save_collection(cache_key, normalized)
        logger.debug(
            "Cache SAVE ALL [%s]: %s (%d entries)",
            self.backend_name,
            cache_key,
            len(normalized),
        )
        if self.fallback is not None:
            self.fallback.save_all(owner_id, key, entries)

    def load(
        self,
        owner_id: int | None,
        key: str,
        entry_id: int | None = None,
        default: Any = None,
    ) -> Any:
        """Return the entry's data, asking the fallback on a local miss.

        Returns:
            Fresh local data; else the fallback's data (now cached locally);
            else default.
        """
        cache_key = self._key(owner_id, key, entry_id)
        data = self._load_entry(cache_key)
        if data is not MISS:
            logger.debug("Cache HIT [%s]: %s", self.backend_name, cache_key)
            return data
        logger.debug("Cache MISS [%s]: %s", self.backend_name, cache_key)
        if self.fallback is None:
            return default
        data = self.fallback.load(owner_id, key, entry_id, default=MISS)
        if data is MISS:
            return default
        self._save_entry(cache_key, data)
        return data

    def load_all(self, owner_id: int | None, key: str) -> dict[int, Any] | None:
        """Return the whole collection, asking the fallback on a local miss.

        Returns:
            Ordered mapping entry_id -> data ({} for a cached empty
            collection), or None when the collection is not cached anywhere
            in the chain (fetch required).
        """
        cache_key = self._key(owner_id, key)
        entries = self._load_collection(cache_key)
        if entries is not None:
            logger.debug("Cache HIT ALL [%s]: %s", self.backend_name, cache_key)
            return entries
        logger.debug("Cache MISS ALL [%s]: %s", self.backend_name, cache_key)
        if self.fallback is None:
            return None
        entries = self.fallback.load_all(owner_id, key)
        if entries is None:
            return None
        normalized = {normalize_entry_id(entry_id): data for entry_id, data in entries.items()}
        self._save_collection(cache_key, normalized)
        return normalized

    def refresh(self, owner_id: int | None, key: str, entry_id: int | None = None) -> None:
        """Lazily invalidate: mark entries obsolete without deleting them.

        Without a wildcard, marks the one (owner_id, key, entry_id) entry
        (entry_id None is the scalar slot). With a wildcard, marks every
        entry of owner_id whose key matches, restricted to entry_id when
        one is given.
        """
        cache_key = self._key(owner_id, key, entry_id, allow_pattern=True)
        if cache_key.is_pattern:
            entry_filter = None if entry_id is None else cache_key.entry_id
            self._mark_obsolete_matching(cache_key, entry_filter)
        else:
            self._mark_obsolete(cache_key)
        logger.debug("Cache REFRESH [%s]: %s", self.backend_name, cache_key)
        if self.fallback is not None:
            self.fallback.refresh(owner_id, key, entry_id)

    def refresh_all(self, owner_id: int | None, key: str | None = None) -> None:
        """Eagerly delete every entry of owner_id, or only keys matching key."""
        pattern = None if key is None else validate_key_name(key, allow_pattern=True)
        self._delete_owned(self.active_scope, normalize_owner_id(owner_id), pattern)
        logger.debug(
            "Cache INVALIDATE [%s]: owner=%s key=%s", self.backend_name, owner_id, key
        )
        if self.fallback is not None:
            self.fallback.refresh_all(owner_id, key)

    def refresh_globally(self, key: str | None = None) -> None:
        """Eagerly delete across all owners in the active scope (or matching keys)."""
        pattern = None if key is None else validate_key_name(key, allow_pattern=True)
        self._delete_scope(self.active_scope, pattern)
        logger.debug("Cache INVALIDATE GLOBAL [%s]: key=%s", self.backend_name, key)
        if self.fallback is not None:
            self.fallback.refresh_globally(key)

    def entry_state(
        self, owner_id: int | None, key: str, entry_id: int | None = None
    ) -> EntryState:
        """Inspect one entry in this backend's local layer (fallback not consulted)."""
        return self._entry_state(self._key(owner_id, key, entry_id))

    # ---- Local primitives ----

    def _select_scope(self, scope: str | None) -> None:
        """Hook run before the active scope changes. Default: nothing."""

    @abstractmethod
    def _save_entry(self, key: CacheKey, data: Any) -> None:
        """Upsert one entry as FRESH, dropping any empty-collection marker."""
        ...

    @abstractmethod
    def _save_collection(self, key: CacheKey, entries: dict[int, Any]) -> None:
        """Replace every entry under (scope, owner, key) with entries."""
        ...

    @abstractmethod
    def _load_entry(self, key: CacheKey) -> Any:
        """Return FRESH data or MISS."""
        ...

    @abstractmethod
    def _load_collection(self, key: CacheKey) -> dict[int, Any] | None:
        """Return the cached collection, or None if absent or any entry is stale."""
        ...

    @abstractmethod
    def _mark_obsolete(self, key: CacheKey) -> None:
        """Mark one exact entry STALE (recording it even if absent)."""
        ...

    @abstractmethod
    def _mark_obsolete_matching(self, pattern: CacheKey, entry_id: int | None) -> None:
        """Mark STALE every entry of pattern.owner_id whose key matches."""
        ...

    @abstractmethod
    def _delete_owned(self, scope: str, owner_id: int, pattern: str | None) -> None:
        """Delete an owner's entries, or only those whose key matches pattern."""
        ...

    @abstractmethod
    def _delete_scope(self, scope: str, pattern: str | None) -> None:
        """Delete all entries in scope, or only those whose key matches pattern."""
        ...

    @abstractmethod
    def _entry_state(self, key: CacheKey) -> EntryState:
        ...


__all__ = ["MISS", "EntryState", "Storage"]

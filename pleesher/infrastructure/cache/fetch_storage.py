"""Read-only bottom layer that fetches from the remote source of truth."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pleesher.core.constants import SCALAR_ENTRY_ID
from pleesher.infrastructure.cache.keys import CacheKey, coerce_entry_id
from pleesher.infrastructure.cache.storage_protocol import MISS, EntryState, Storage

logger = logging.getLogger(__name__)

# fetch(owner_id, key_name) -> data, or MISS when the source has nothing
Fetcher = Callable[[int, str], Any]


class FetchStorage(Storage):
    """Storage whose reads call fetch() and whose writes are no-ops.

    Nothing is cached here: every read goes to the source. A scalar slot
    returns the fetched value as is; a collection member is looked up in the
    fetched mapping by entry id. A fetched value that is not a mapping is
    treated as a one-entry collection in the scalar slot. Mapping keys may
    be ints or decimal strings (as decoded from JSON objects).
    """

    def __init__(self, fetch: Fetcher) -> None:
        super().__init__()
        self._fetch = fetch

    def set_fallback(self, fallback: Storage | None) -> None:
        if fallback is not None:
            raise ValueError("FetchStorage is the bottom of a chain and takes no fallback")
        self.fallback = None

    def _fetch_key(self, key: CacheKey) -> Any:
        logger.debug("Cache FETCH [%s]: owner=%s key=%s", self.backend_name, key.owner_id, key.key_name)
        return self._fetch(key.owner_id, key.key_name)

    @staticmethod
    def _entries(result: Mapping[Any, Any]) -> dict[int, Any]:
        return {coerce_entry_id(entry_id): data for entry_id, data in result.items()}

    def _load_entry(self, key: CacheKey) -> Any:
        result = self._fetch_key(key)
        if result is MISS or key.entry_id == SCALAR_ENTRY_ID:
            return result
        if isinstance(result, Mapping):
            return self._entries(result).get(key.entry_id, MISS)
        return MISS

    def _load_collection(self, key: CacheKey) -> dict[int, Any] | None:
        result = self._fetch_key(key)
        if result is MISS:
            return None
        if isinstance(result, Mapping):
            return self._entries(result)
        return {SCALAR_ENTRY_ID: result}

    def _save_entry(self, key: CacheKey, data: Any) -> None:
        pass

    def _save_collection(self, key: CacheKey, entries: dict[int, Any]) -> None:
        pass

    def _mark_obsolete(self, key: CacheKey) -> None:
        pass

    def _mark_obsolete_matching(self, pattern: CacheKey, entry_id: int | None) -> None:
        pass

    def _delete_owned(self, scope: str, owner_id: int, pattern: str | None) -> None:
        pass

    def _delete_scope(self, scope: str, pattern: str | None) -> None:
        pass

    def _entry_state(self, key: CacheKey) -> EntryState:
        return EntryState.ABSENT

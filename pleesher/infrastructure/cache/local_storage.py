"""Process-local, in-memory cache backend.

Layout:
    _entries:  scope -> (key_name, owner_id) -> entry_id -> data
    _obsolete: scope -> {(key_name, owner_id, entry_id)}

A collection present in _entries (even empty) is cached; an absent one is
not. Entries live as long as the instance. No locking: an instance is
owned by a single caller.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from typing import Any

from pleesher.core.constants import DEFAULT_SCOPE, SCALAR_ENTRY_ID
from pleesher.infrastructure.cache.keys import CacheKey, key_matches
from pleesher.infrastructure.cache.storage_protocol import MISS, EntryState, Storage

logger = logging.getLogger(__name__)

CollectionId = tuple[str, int]
EntryRef = tuple[str, int, int]


class LocalStorage(Storage):
    """Volatile Storage backed by dictionaries.

    Switching to an unseen scope copies the current scope's entries and
    obsolete marks into it, so data written before the switch stays visible.
    """

    def __init__(self, fallback: Storage | None = None, require_scope: bool = False) -> None:
        super().__init__(fallback=fallback, require_scope=require_scope)
        self._entries: dict[str, dict[CollectionId, dict[int, Any]]] = {}
        self._obsolete: dict[str, set[EntryRef]] = {}

    def _collections(self, scope: str) -> dict[CollectionId, dict[int, Any]]:
        return self._entries.setdefault(scope, {})

    def _obsolete_refs(self, scope: str) -> set[EntryRef]:
        return self._obsolete.setdefault(scope, set())

    def _select_scope(self, scope: str | None) -> None:
        target = scope or DEFAULT_SCOPE
        source = self.scope or DEFAULT_SCOPE
        if target == source or target in self._entries:
            return
        if source in self._entries:
            self._entries[target] = copy.deepcopy(self._entries[source])
            self._obsolete[target] = set(self._obsolete.get(source, set()))
            logger.debug("Cache scope %r initialized from %r", target, source)

    def _save_entry(self, key: CacheKey, data: Any) -> None:
        collections = self._collections(key.scope)
        refs = self._obsolete_refs(key.scope)
        if collections.get((key.key_name, key.owner_id)) == {}:
            # Writing into a confirmed-empty collection replaces its empty marker
            refs.discard((key.key_name, key.owner_id, SCALAR_ENTRY_ID))
        collection = collections.setdefault((key.key_name, key.owner_id), {})
        collection[key.entry_id] = data
        refs.discard((key.key_name, key.owner_id, key.entry_id))

    def _save_collection(self, key: CacheKey, entries: dict[int, Any]) -> None:
        self._collections(key.scope)[(key.key_name, key.owner_id)] = dict(entries)
        refs = self._obsolete_refs(key.scope)
        refs.difference_update(
            {ref for ref in refs if ref[0] == key.key_name and ref[1] == key.owner_id}
        )

    def _load_entry(self, key: CacheKey) -> Any:
        if (key.key_name, key.owner_id, key.entry_id) in self._obsolete_refs(key.scope):
            return MISS
        collection = self._collections(key.scope).get((key.key_name, key.owner_id))
        if collection is None or key.entry_id not in collection:
            return MISS
        return collection[key.entry_id]

    def _load_collection(self, key: CacheKey) -> dict[int, Any] | None:
        collection = self._collections(key.scope).get((key.key_name, key.owner_id))
        if collection is None:
            return None
        # A stale mark anywhere under the key (even for an id the collection
        # lacks) means the collection is incomplete.
        for ref in self._obsolete_refs(key.scope):
            if ref[0] == key.key_name and ref[1] == key.owner_id:
                return None
        return dict(collection)

    def _mark_obsolete(self, key: CacheKey) -> None:
        self._obsolete_refs(key.scope).add((key.key_name, key.owner_id, key.entry_id))

    def _mark_obsolete_matching(self, pattern: CacheKey, entry_id: int | None) -> None:
        refs = self._obsolete_refs(pattern.scope)
        for (key_name, owner_id), collection in self._collections(pattern.scope).items():
            if owner_id != pattern.owner_id or not pattern.matches(key_name):
                continue
            if not collection and entry_id in (None, SCALAR_ENTRY_ID):
                # Confirmed-empty collection: mark its slot so load_all misses
                refs.add((key_name, owner_id, SCALAR_ENTRY_ID))
                continue
            for cached_id in collection:
                if entry_id is None or cached_id == entry_id:
                    refs.add((key_name, owner_id, cached_id))

    def _delete_owned(self, scope: str, owner_id: int, pattern: str | None) -> None:
        self._delete_where(
            scope,
            lambda key_name, cached_owner: cached_owner == owner_id
            and (pattern is None or key_matches(pattern, key_name)),
        )

    def _delete_scope(self, scope: str, pattern: str | None) -> None:
        if pattern is None:
            self._entries[scope] = {}
            self._obsolete[scope] = set()
            return
        self._delete_where(scope, lambda key_name, _owner: key_matches(pattern, key_name))

    def _delete_where(self, scope: str, predicate: Callable[[str, int], bool]) -> None:
        collections = self._collections(scope)
        for collection_id in [cid for cid in collections if predicate(*cid)]:
            del collections[collection_id]
        refs = self._obsolete_refs(scope)
        refs.difference_update({ref for ref in refs if predicate(ref[0], ref[1])})

    def _entry_state(self, key: CacheKey) -> EntryState:
        collection = self._collections(key.scope).get((key.key_name, key.owner_id))
        if collection is None or key.entry_id not in collection:
            return EntryState.ABSENT
        if (key.key_name, key.owner_id, key.entry_id) in self._obsolete_refs(key.scope):
            return EntryState.STALE
        return EntryState.FRESH

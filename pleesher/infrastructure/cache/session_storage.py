"""Session-bound cache backend.

A LocalStorage whose whole state lives in an external per-session store:
every operation first restores the snapshot, and every operation that can
change it persists the snapshot afterwards. The instance has no lifetime
of its own beyond the session store's.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pleesher.infrastructure.cache.local_storage import LocalStorage
from pleesher.infrastructure.cache.keys import CacheKey
from pleesher.infrastructure.cache.storage_protocol import EntryState, Storage
from pleesher.infrastructure.session.protocol import SessionStoreProtocol

logger = logging.getLogger(__name__)


class SessionStorage(LocalStorage):
    """LocalStorage persisted to a session store under session_key.

    Snapshot format (JSON-compatible, entry ids kept as ints):
        {"entries": {scope: [[key_name, owner_id, [[entry_id, data], ...]], ...]},
         "obsolete": {scope: [[key_name, owner_id, entry_id], ...]}}
    """

    def __init__(
        self,
        session_store: SessionStoreProtocol,
        session_key: str,
        fallback: Storage | None = None,
        require_scope: bool = False,
    ) -> None:
        super().__init__(fallback=fallback, require_scope=require_scope)
        self.session_store = session_store
        self.session_key = session_key
        self._dirty = False

    # ---- Snapshot ----

    def snapshot(self) -> dict[str, Any]:
        """Return the current state as a JSON-compatible dict."""
        return {
            "entries": {
                scope: [
                    [key_name, owner_id, [[entry_id, data] for entry_id, data in entries.items()]]
                    for (key_name, owner_id), entries in collections.items()
                ]
                for scope, collections in self._entries.items()
            },
            "obsolete": {
                scope: sorted([key_name, owner_id, entry_id] for key_name, owner_id, entry_id in refs)
                for scope, refs in self._obsolete.items()
            },
        }

    def load_snapshot(self, snapshot: dict[str, Any] | None) -> None:
        """Replace the current state with snapshot (None means empty)."""
        snapshot = snapshot or {}
        self._entries = {
            scope: {
                (key_name, owner_id): {entry_id: data for entry_id, data in entries}
                for key_name, owner_id, entries in collections
            }
            for scope, collections in snapshot.get("entries", {}).items()
        }
        self._obsolete = {
            scope: {(key_name, owner_id, entry_id) for key_name, owner_id, entry_id in refs}
            for scope, refs in snapshot.get("obsolete", {}).items()
        }

    def _restore(self) -> None:
        self.load_snapshot(self.session_store.load(self.session_key))
        self._dirty = False

    def _persist(self) -> None:
        self.session_store.save(self.session_key, self.snapshot())
        self._dirty = False
        logger.debug("Cache session persisted: %s", self.session_key)

    # Reads persist only when a fallback hit was written locally
    def _save_entry(self, key: CacheKey, data: Any) -> None:
        super()._save_entry(key, data)
        self._dirty = True

    def _save_collection(self, key: CacheKey, entries: dict[int, Any]) -> None:
        super()._save_collection(key, entries)
        self._dirty = True

    # ---- Contract ----

    def set_scope(self, scope: str | None) -> None:
        self._restore()
        super().set_scope(scope)
        self._persist()

    def save(self, owner_id: int | None, key: str, entry_id: int | None, data: Any) -> None:
        self._restore()
        super().save(owner_id, key, entry_id, data)
        self._persist()

    def save_all(
        self, owner_id: int | None, key: str, entries: Mapping[int | None, Any]
    ) -> None:
        self._restore()
        super().save_all(owner_id, key, entries)
        self._persist()

    def load(
        self,
        owner_id: int | None,
        key: str,
        entry_id: int | None = None,
        default: Any = None,
    ) -> Any:
        self._restore()
        data = super().load(owner_id, key, entry_id, default)
        if self._dirty:
            self._persist()
        return data

    def load_all(self, owner_id: int | None, key: str) -> dict[int, Any] | None:
        self._restore()
        entries = super().load_all(owner_id, key)
        if self._dirty:
            self._persist()
        return entries

    def refresh(self, owner_id: int | None, key: str, entry_id: int | None = None) -> None:
        self._restore()
        super().refresh(owner_id, key, entry_id)
        self._persist()

    def refresh_all(self, owner_id: int | None, key: str | None = None) -> None:
        self._restore()
        super().refresh_all(owner_id, key)
        self._persist()

    def refresh_globally(self, key: str | None = None) -> None:
        self._restore()
        super().refresh_globally(key)
        self._persist()

    def entry_state(
        self, owner_id: int | None, key: str, entry_id: int | None = None
    ) -> EntryState:
        self._restore()
        return super().entry_state(owner_id, key, entry_id)

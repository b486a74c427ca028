"""Relational cache backend (SQLAlchemy).

One row per cached entry in the pleesher_cache table. Per-entry states:

    ABSENT -> FRESH (obsolete=false) -> STALE (obsolete=true) -> FRESH | ABSENT

Reserved data values:
- EMPTY_COLLECTION at entry 0: the collection is cached and has no entries.
- PENDING_FETCH (always obsolete): refresh() of an entry that was never
  cached, so load_all() treats the collection as needing a refetch.

Compound writes (save, save_all, exact refresh) run in one transaction.
Every SQLAlchemyError is raised as StorageError; a database failure is
never reported as a cache miss.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import ColumnElement, delete, false, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pleesher.core.constants import EMPTY_COLLECTION, PENDING_FETCH, SCALAR_ENTRY_ID
from pleesher.domain.exceptions import StorageError
from pleesher.infrastructure.cache.keys import (
    LIKE_ESCAPE,
    CacheKey,
    is_pattern,
    key_matches,
    to_like_pattern,
)
from pleesher.infrastructure.cache.storage_protocol import MISS, EntryState, Storage
from pleesher.infrastructure.persistence.database import get_session_factory
from pleesher.infrastructure.persistence.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)

# Attempts at inserting a row before a concurrent insert is seen and updated
_UPSERT_ATTEMPTS = 3


def _matching_keys(
    session: Session, criteria: list[ColumnElement[bool]], pattern: str | None
) -> list[ColumnElement[bool]] | None:
    """WHERE clause restricting rows to keys matching pattern.

    LIKE narrows the candidates in SQL; key_matches() then applies the exact
    glob semantics, since LIKE is case-insensitive on some dialects.

    Returns:
        [] when pattern is None (no restriction), or None when no key matches.
    """
    if pattern is None:
        return []
    if not is_pattern(pattern):
        return [CacheEntry.cache_key == pattern]
    candidates = session.scalars(
        select(CacheEntry.cache_key)
        .distinct()
        .where(*criteria, CacheEntry.cache_key.like(to_like_pattern(pattern), escape=LIKE_ESCAPE))
    ).all()
    names = [name for name in candidates if key_matches(pattern, name)]
    if not names:
        return None
    return [CacheEntry.cache_key.in_(names)]


def _partition(key: CacheKey) -> list[ColumnElement[bool]]:
    """WHERE clause for every row under (scope, owner_id, key_name)."""
    return [
        CacheEntry.scope == key.scope,
        CacheEntry.owner_id == key.owner_id,
        CacheEntry.cache_key == key.key_name,
    ]


def _exact(key: CacheKey) -> list[ColumnElement[bool]]:
    """WHERE clause for the single row addressed by key."""
    return [*_partition(key), CacheEntry.entry_id == key.entry_id]


def _is_empty_marker(entry_id: int, data: str) -> bool:
    return entry_id == SCALAR_ENTRY_ID and data == EMPTY_COLLECTION


class DatabaseStorage(Storage):
    """Storage persisted in a relational table shared across processes.

    Concurrent writers to the same key race; the last committed write wins.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        fallback: Storage | None = None,
        require_scope: bool = False,
    ) -> None:
        """Initialize the backend.

        Args:
            session_factory: Session factory bound to the cache database;
                defaults to the one built from settings.
            fallback: Optional fallback storage.
            require_scope: Refuse to operate before set_scope().
        """
        super().__init__(fallback=fallback, require_scope=require_scope)
        self._session_factory = session_factory or get_session_factory()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        """Yield a session inside a transaction; commit on success, roll back on error.

        Raises:
            StorageError: Any SQLAlchemy error (connectivity, constraint, timeout).
        """
        try:
            with self._session_factory.begin() as session:
                yield session
        except SQLAlchemyError as e:
            logger.exception("Cache %s error on %s", operation, self.backend_name)
            raise StorageError(operation, self.backend_name, str(e)) from e

    @staticmethod
    def _encode(data: Any) -> str:
        return json.dumps(data)

    @staticmethod
    def _decode(payload: str) -> Any:
        return json.loads(payload)

    def _save_entry(self, key: CacheKey, data: Any) -> None:
        payload = self._encode(data)
        with self._transaction("save") as session:
            session.execute(
                delete(CacheEntry).where(
                    *_partition(key),
                    CacheEntry.entry_id == SCALAR_ENTRY_ID,
                    CacheEntry.data == EMPTY_COLLECTION,
                )
            )
            self._upsert(session, key, payload, obsolete=False)

    def _find_row(self, session: Session, key: CacheKey) -> CacheEntry | None:
        return session.scalars(select(CacheEntry).where(*_exact(key))).one_or_none()

    def _upsert(
        self, session: Session, key: CacheKey, payload: str | None, obsolete: bool
    ) -> None:
        """Insert or overwrite the row for key; the last committed write wins.

        payload None keeps the data of an existing row and inserts a
        PENDING_FETCH placeholder otherwise.

        A concurrent writer may insert the row between our SELECT and INSERT.
        The INSERT then violates uq_pleesher_cache_entry; the savepoint is
        rolled back and the retry finds the row and updates it.
        """
        for attempt in range(_UPSERT_ATTEMPTS):
            try:
                with session.begin_nested():
                    row = self._find_row(session, key)
                    if row is None:
                        session.add(
                            CacheEntry(
                                scope=key.scope,
                                owner_id=key.owner_id,
                                cache_key=key.key_name,
                                entry_id=key.entry_id,
                                data=PENDING_FETCH if payload is None else payload,
                                obsolete=obsolete,
                            )
                        )
                    else:
                        if payload is not None:
                            row.data = payload
                        row.obsolete = obsolete
                return
            except IntegrityError:
                if attempt == _UPSERT_ATTEMPTS - 1:
                    raise
                logger.debug("Cache SAVE conflict on %s, retrying as update", key)

    def _save_collection(self, key: CacheKey, entries: dict[int, Any]) -> None:
        rows = [
            CacheEntry(
                scope=key.scope,
                owner_id=key.owner_id,
                cache_key=key.key_name,
                entry_id=entry_id,
                data=self._encode(data),
                obsolete=False,
            )
            for entry_id, data in entries.items()
        ]
        if not rows:
            rows.append(
                CacheEntry(
                    scope=key.scope,
                    owner_id=key.owner_id,
                    cache_key=key.key_name,
                    entry_id=SCALAR_ENTRY_ID,
                    data=EMPTY_COLLECTION,
                    obsolete=False,
                )
            )
        with self._transaction("save_all") as session:
            session.execute(delete(CacheEntry).where(*_partition(key)))
            session.add_all(rows)

    def _load_entry(self, key: CacheKey) -> Any:
        with self._transaction("load") as session:
            payload = session.scalars(
                select(CacheEntry.data).where(*_exact(key), CacheEntry.obsolete == false())
            ).one_or_none()
        if payload is None or payload == PENDING_FETCH or _is_empty_marker(key.entry_id, payload):
            return MISS
        return self._decode(payload)

    def _load_collection(self, key: CacheKey) -> dict[int, Any] | None:
        with self._transaction("load_all") as session:
            rows = session.execute(
                select(CacheEntry.entry_id, CacheEntry.data, CacheEntry.obsolete)
                .where(*_partition(key))
                .order_by(CacheEntry.id)
            ).all()
        if not rows or any(row.obsolete for row in rows):
            return None
        return {
            row.entry_id: self._decode(row.data)
            for row in rows
            if not _is_empty_marker(row.entry_id, row.data)
        }

    def _mark_obsolete(self, key: CacheKey) -> None:
        with self._transaction("refresh") as session:
            self._upsert(session, key, None, obsolete=True)

    def _mark_obsolete_matching(self, pattern: CacheKey, entry_id: int | None) -> None:
        criteria = [
            CacheEntry.scope == pattern.scope,
            CacheEntry.owner_id == pattern.owner_id,
        ]
        if entry_id is not None:
            criteria.append(CacheEntry.entry_id == entry_id)
        with self._transaction("refresh") as session:
            key_filter = _matching_keys(session, criteria, pattern.key_name)
            if key_filter is None:
                return
            session.execute(
                update(CacheEntry)
                .where(*criteria, *key_filter)
                .values(obsolete=True)
                .execution_options(synchronize_session=False)
            )

    def _delete_owned(self, scope: str, owner_id: int, pattern: str | None) -> None:
        criteria = [CacheEntry.scope == scope, CacheEntry.owner_id == owner_id]
        with self._transaction("refresh_all") as session:
            key_filter = _matching_keys(session, criteria, pattern)
            if key_filter is None:
                return
            session.execute(
                delete(CacheEntry)
                .where(*criteria, *key_filter)
                .execution_options(synchronize_session=False)
            )

    def _delete_scope(self, scope: str, pattern: str | None) -> None:
        criteria = [CacheEntry.scope == scope]
        with self._transaction("refresh_globally") as session:
            key_filter = _matching_keys(session, criteria, pattern)
            if key_filter is None:
                return
            session.execute(
                delete(CacheEntry)
                .where(*criteria, *key_filter)
                .execution_options(synchronize_session=False)
            )

    def _entry_state(self, key: CacheKey) -> EntryState:
        with self._transaction("entry_state") as session:
            row = session.execute(
                select(CacheEntry.data, CacheEntry.obsolete).where(*_exact(key))
            ).one_or_none()
        if row is None or _is_empty_marker(key.entry_id, row.data):
            return EntryState.ABSENT
        return EntryState.STALE if row.obsolete else EntryState.FRESH

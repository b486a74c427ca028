"""Pytest configuration and fixtures for the Pleesher client.

Cache backends are exercised against an in-memory SQLite engine (one
shared connection via StaticPool) and an in-memory session store, so the
suite needs no external services.
"""

from collections.abc import Iterator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pleesher.core.config import get_settings
from pleesher.infrastructure.cache.database_storage import DatabaseStorage
from pleesher.infrastructure.cache.local_storage import LocalStorage
from pleesher.infrastructure.cache.session_storage import SessionStorage
from pleesher.infrastructure.cache.storage_protocol import Storage
from pleesher.infrastructure.persistence.database import build_session_factory, init_schema
from pleesher.infrastructure.session.memory_store import InMemorySessionStore

BACKENDS = ["local", "session", "database"]


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    """Drop cached settings so env overrides in one test never leak into another."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite engine with the cache table created."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def make_storage(
    session_factory: sessionmaker[Session], session_store: InMemorySessionStore
):
    """Factory building a fresh backend of the given kind.

    Each call returns an independent instance; session backends get their
    own session key, database backends share the test database.
    """
    counter = {"sessions": 0}

    def _make(kind: str, fallback: Storage | None = None) -> Storage:
        if kind == "local":
            return LocalStorage(fallback=fallback)
        if kind == "session":
            counter["sessions"] += 1
            return SessionStorage(
                session_store, f"session-{counter['sessions']}", fallback=fallback
            )
        if kind == "database":
            return DatabaseStorage(session_factory=session_factory, fallback=fallback)
        raise ValueError(kind)

    return _make


@pytest.fixture(params=BACKENDS)
def storage(request: pytest.FixtureRequest, make_storage) -> Storage:
    """Each backend in turn, without fallback."""
    return make_storage(request.param)

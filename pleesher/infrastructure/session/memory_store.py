"""In-memory session store for tests and single-process use."""

from __future__ import annotations

import json
from typing import Any


class InMemorySessionStore:
    """Session store keeping JSON-encoded snapshots in a dict.

    Snapshots are stored encoded so callers never share mutable state with
    the store, matching what a real external store does.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, str] = {}

    def load(self, session_key: str) -> dict[str, Any] | None:
        raw = self._sessions.get(session_key)
        return json.loads(raw) if raw is not None else None

    def save(self, session_key: str, snapshot: dict[str, Any]) -> None:
        self._sessions[session_key] = json.dumps(snapshot)

    def delete(self, session_key: str) -> None:
        self._sessions.pop(session_key, None)

    def __contains__(self, session_key: object) -> bool:
        return session_key in self._sessions

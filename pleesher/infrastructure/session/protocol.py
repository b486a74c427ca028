"""Session store protocol (DIP). Implementations: InMemorySessionStore, RedisSessionStore."""

from typing import Any, Protocol


class SessionStoreProtocol(Protocol):
    """Per-session (per-principal) snapshot store used by SessionStorage."""

    def load(self, session_key: str) -> dict[str, Any] | None:
        """Return the stored snapshot, or None if the session has none."""
        ...

    def save(self, session_key: str, snapshot: dict[str, Any]) -> None:
        """Replace the stored snapshot."""
        ...

    def delete(self, session_key: str) -> None:
        """Remove the stored snapshot. Idempotent."""
        ...

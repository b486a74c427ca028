"""Cache key model: canonical addressing and wildcard matching.

Every backend addresses a value by (scope, owner_id, key_name, entry_id).
Normalization rules live here so all backends agree on them:

- owner_id None is the global owner and is stored as GLOBAL_OWNER_ID (0).
- entry_id None is the scalar slot and is stored as SCALAR_ENTRY_ID (0).
  A key is used either as a scalar (slot 0) or as a collection whose
  members carry their own ids; None and 0 address the same slot.
- key_name may contain '*' only where a pattern is meaningful
  (refresh, refresh_all, refresh_globally).
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pleesher.core.constants import (
    DEFAULT_SCOPE,
    GLOBAL_OWNER_ID,
    KEY_WILDCARD,
    SCALAR_ENTRY_ID,
)
from pleesher.domain.exceptions import InvalidKeyError

LIKE_ESCAPE = "\\"
_DECIMAL_ID = re.compile(r"-?[0-9]+")


def _validate_int_component(value: Any, name: str) -> None:
    """Raise InvalidKeyError if value is not a plain int (bool is rejected).

    Args:
        value: Owner id or entry id supplied by a caller.
        name: Name of the component (for error message).

    Raises:
        InvalidKeyError: If value is not an int.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidKeyError(
            f"Cache key component {name!r} must be an int or None, got {value!r}",
            value,
        )


def normalize_owner_id(owner_id: int | None) -> int:
    """Return the stored owner id; None (global) becomes GLOBAL_OWNER_ID."""
    if owner_id is None:
        return GLOBAL_OWNER_ID
    _validate_int_component(owner_id, "owner_id")
    return owner_id


def normalize_entry_id(entry_id: int | None) -> int:
    """Return the stored entry id; None (scalar) becomes SCALAR_ENTRY_ID."""
    if entry_id is None:
        return SCALAR_ENTRY_ID
    _validate_int_component(entry_id, "entry_id")
    return entry_id


def coerce_entry_id(entry_id: Any) -> int:
    """Return the stored entry id for an id taken from decoded JSON.

    JSON object keys are strings, so decimal strings such as "5" are
    accepted alongside ints and None.

    Raises:
        InvalidKeyError: Any other string, or a non-int value.
    """
    if isinstance(entry_id, str):
        if _DECIMAL_ID.fullmatch(entry_id) is None:
            raise InvalidKeyError(f"Cache entry id {entry_id!r} is not an integer", entry_id)
        return int(entry_id)
    return normalize_entry_id(entry_id)


def is_pattern(key_name: str) -> bool:
    """Return True if key_name contains a wildcard."""
    return KEY_WILDCARD in key_name


def validate_key_name(key_name: Any, allow_pattern: bool = False) -> str:
    """Validate a key name and return it.

    Args:
        key_name: Key name supplied by a caller.
        allow_pattern: Whether '*' wildcards are meaningful here.

    Returns:
        The key name, unchanged.

    Raises:
        InvalidKeyError: Empty or non-string name, or a wildcard where
            pattern matching is not meaningful (save/load).
    """
    if not isinstance(key_name, str) or not key_name:
        raise InvalidKeyError("Cache key name must be a non-empty string", key_name)
    if not allow_pattern and is_pattern(key_name):
        raise InvalidKeyError(
            f"Wildcard {KEY_WILDCARD!r} is only allowed in refresh operations",
            key_name,
        )
    return key_name


@lru_cache(maxsize=256)
def compile_key_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a key pattern into an anchored regex; '*' matches non-greedily."""
    parts = (re.escape(part) for part in pattern.split(KEY_WILDCARD))
    return re.compile("^" + ".*?".join(parts) + "$", re.DOTALL)


def key_matches(pattern: str, key_name: str) -> bool:
    """Return True if key_name matches pattern.

    Exact string equality when pattern has no wildcard; otherwise glob
    matching over the whole name.
    """
    if not is_pattern(pattern):
        return pattern == key_name
    return compile_key_pattern(pattern).match(key_name) is not None


def to_like_pattern(pattern: str) -> str:
    """Translate a key pattern to a SQL LIKE pattern (escape char is backslash).

    LIKE metacharacters in the literal parts are escaped so that only
    '*' acts as a wildcard.
    """
    escaped = (
        pattern.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return escaped.replace(KEY_WILDCARD, "%")


@dataclass(frozen=True)
class CacheKey:
    """Canonical identity of one cached value.

    Build with CacheKey.of() so owner and entry ids are normalized.
    """

    scope: str
    owner_id: int
    key_name: str
    entry_id: int

    @classmethod
    def of(
        cls,
        owner_id: int | None,
        key_name: str,
        entry_id: int | None = None,
        scope: str | None = None,
        allow_pattern: bool = False,
    ) -> "CacheKey":
        """Build a normalized key.

        Args:
            owner_id: Principal the value is relative to; None for global.
            key_name: Key name (pattern only if allow_pattern).
            entry_id: Entry within the key's collection; None for scalar.
            scope: Partition name; None for DEFAULT_SCOPE.
            allow_pattern: Whether key_name may contain '*'.

        Returns:
            Normalized CacheKey.
        """
        return cls(
            scope=scope or DEFAULT_SCOPE,
            owner_id=normalize_owner_id(owner_id),
            key_name=validate_key_name(key_name, allow_pattern=allow_pattern),
            entry_id=normalize_entry_id(entry_id),
        )

    @property
    def is_pattern(self) -> bool:
        return is_pattern(self.key_name)

    def matches(self, key_name: str) -> bool:
        """Return True if this key's name (or pattern) matches key_name."""
        return key_matches(self.key_name, key_name)

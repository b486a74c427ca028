"""Persistence models: ORM entities and mixins."""

from pleesher.infrastructure.persistence.models.cache_entry import CacheEntry
from pleesher.infrastructure.persistence.models.mixins import TimestampMixin

__all__ = [
    "CacheEntry",
    "TimestampMixin",
]

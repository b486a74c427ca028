"""Persistent cache row: one cached entry per (scope, owner_id, cache_key, entry_id)."""

from sqlalchemy import Boolean, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pleesher.core.constants import CACHE_TABLE_NAME
from pleesher.infrastructure.persistence.database import Base
from pleesher.infrastructure.persistence.models.mixins import TimestampMixin


class CacheEntry(TimestampMixin, Base):
    """Cached payload. data holds JSON text or a reserved sentinel string.

    id is a surrogate key that also records insertion order for load_all.
    owner_id 0 is the global owner; entry_id 0 is the scalar slot.
    """

    __tablename__ = CACHE_TABLE_NAME
    __table_args__ = (
        UniqueConstraint(
            "scope", "owner_id", "cache_key", "entry_id", name="uq_pleesher_cache_entry"
        ),
        Index("ix_pleesher_cache_scope_key", "scope", "cache_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scope: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    cache_key: Mapped[str] = mapped_column(String(255), nullable=False)
    entry_id: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    obsolete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

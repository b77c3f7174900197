"""
Key-value collection model.

Each logical store (users, OTP entries, sessions, both library partitions,
memos, colleagues, settings) is one row holding the whole collection as a
JSON document. ``version`` is bumped on every replace and is the
compare-and-swap token for optimistic concurrency.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from procurement_hub.db.database import Base


class CollectionModel(Base):
    """A named collection persisted as a single JSON blob."""

    __tablename__ = "collections"

    name: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    payload: Mapped[Any] = mapped_column(
        JSON,
        nullable=False,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

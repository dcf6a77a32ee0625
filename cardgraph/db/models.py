"""
Table models for the persisted key-value store.

Both the KNN index cache and the relation label cache live in a single
table of JSON documents addressed by an exact string key.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for cardgraph tables."""
    pass


class KeyValueEntry(Base):
    """One JSON value stored under a string key (last write wins)."""

    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<KeyValueEntry(key={self.key!r})>"

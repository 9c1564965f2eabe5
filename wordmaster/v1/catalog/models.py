from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from wordmaster.infra.database import Base


class TimestampMixin:
    """Mixin for timestamp fields."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class Collection(Base, TimestampMixin):
    """Word collection (a vocabulary book such as "cet4")."""

    __tablename__ = "collections"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    language: Mapped[str | None] = mapped_column(String(16))

    items: Mapped[list["Item"]] = relationship(
        back_populates="collection",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Item(Base, TimestampMixin):
    """A learnable word inside a collection."""

    __tablename__ = "items"
    __table_args__ = (Index("ix_items_collection_position", "collection_id", "position"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    word: Mapped[str] = mapped_column(Text, nullable=False)
    # phonetics, translations, sentences... opaque to scheduling
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    collection: Mapped["Collection"] = relationship(back_populates="items")

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from wordmaster.infra.database import Base
from wordmaster.v1.catalog.models import Item


class ReviewSchedule(Base):
    """SM-2 scheduling record, one per studied item."""

    __tablename__ = "review_schedule"
    __table_args__ = (
        Index("ix_review_schedule_due", "collection_id", "next_review_date"),
    )

    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), primary_key=True
    )
    collection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False
    )

    # SM-2 state variables
    next_review_date: Mapped[date] = mapped_column(Date, nullable=False)
    review_interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    repetition_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    easiness_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    last_review_date: Mapped[date | None] = mapped_column(Date)
    # Copy of the derived level so the due predicate can run in SQL
    mastery_level: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)

    # Metadata
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    item: Mapped[Item] = relationship(Item)


class StudyRecord(Base):
    """Study history - one row per answer given for an item."""

    __tablename__ = "study_records"
    __table_args__ = (
        Index("ix_study_records_session", "session_id"),
        Index("ix_study_records_collection_day", "collection_id", "studied_on"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    collection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False
    )
    session_id: Mapped[str | None] = mapped_column(String(64))

    study_type: Mapped[str] = mapped_column(String(10), nullable=False)  # learn, review
    known: Mapped[bool] = mapped_column(Boolean, nullable=False)
    quality: Mapped[str] = mapped_column(String(10), nullable=False)
    duration_s: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    studied_on: Mapped[date] = mapped_column(Date, nullable=False)
    studied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    item: Mapped[Item] = relationship(Item)

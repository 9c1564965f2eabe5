from datetime import date
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from wordmaster.v1.core.exceptions import InvalidQualityError
from wordmaster.v1.review.sm2 import ReviewQuality, ReviewState


class ReviewStateResponse(BaseModel):
    """Schema for a scheduling state."""

    item_id: int
    collection_id: str
    interval: int
    easiness_factor: float
    repetition_count: int
    next_review_date: date
    last_review_date: date | None = None
    mastery_level: str
    version: int

    @classmethod
    def from_state(cls, state: ReviewState) -> "ReviewStateResponse":
        return cls(
            item_id=state.item_id,
            collection_id=state.collection_id,
            interval=state.interval,
            easiness_factor=state.easiness_factor,
            repetition_count=state.repetition_count,
            next_review_date=state.next_review_date,
            last_review_date=state.last_review_date,
            mastery_level=state.mastery_level.name.lower(),
            version=state.version,
        )


class QueueItemResponse(BaseModel):
    """Schema for items in the review queue."""

    id: int
    word: str
    payload: dict[str, Any]
    next_review_date: date | None = None  # None for new items
    is_new: bool


class ReviewQueueResponse(BaseModel):
    """Schema for review queue response."""

    collection_id: str
    due: list[QueueItemResponse]
    new: list[QueueItemResponse]


class ReviewRecordRequest(BaseModel):
    """Schema for recording a review.

    Either an explicit ``quality`` or a ``known`` flag (with the response time
    used to infer the quality) must be given.
    """

    item_id: int
    quality: ReviewQuality | None = Field(
        default=None, description="Recall quality: again, hard, good, easy or grade 0/3/4/5"
    )
    known: bool | None = None
    duration_s: int = Field(default=0, ge=0, description="Seconds spent on the item")
    session_id: str | None = Field(
        default=None, max_length=64, description="Groups the review into a study session"
    )

    @field_validator("quality", mode="before")
    @classmethod
    def parse_quality(cls, value):
        if value is None:
            return None
        try:
            return ReviewQuality.parse(value)
        except InvalidQualityError as e:
            raise ValueError(e.message) from None

    @model_validator(mode="after")
    def check_outcome(self) -> "ReviewRecordRequest":
        if self.quality is None and self.known is None:
            raise ValueError("Either 'quality' or 'known' is required")
        return self


class ReviewRecordResponse(BaseModel):
    """Schema for review record response."""

    updated_state: ReviewStateResponse
    quality: ReviewQuality
    next_review_date: date
    interval_days: int
    initialized: bool


class IntervalPreviewResponse(BaseModel):
    """Interval each quality would yield for an item."""

    item_id: int
    intervals: dict[str, int]


class StudySummaryResponse(BaseModel):
    """Totals over recorded study events."""

    session_id: str | None = None
    collection_id: str | None = None
    day: date | None = None
    total_items: int
    learned_items: int
    known_items: int
    unknown_items: int
    total_duration_s: int

"""
SM-2 (SuperMemo 2) scheduling engine.

Pure computation: given an item's scheduling state and a recall-quality
signal, produce the next state. No I/O and no wall-clock reads; "today" is
always passed in by the caller.

    EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)),  EF' >= 1.3
    I(1) = 1, I(2) = 6, I(n) = round(I(n-1) * EF')
"""

import math
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum, IntEnum

from wordmaster.v1.core.exceptions import InvalidQualityError, StateNotFoundError


INITIAL_EASINESS = 2.5
MIN_EASINESS = 1.3
PASSING_SCORE = 3
MAX_SCORE = 5

# Mastered: at least this many consecutive passes AND an interval this long
MASTERY_REPETITIONS = 5
MASTERY_INTERVAL_DAYS = 30


class ReviewQuality(str, Enum):
    """Recall quality reported for a single review, in ascending ease."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @property
    def score(self) -> int:
        """Numeric SM-2 grade used by the easiness formula."""
        return _QUALITY_SCORES[self]

    @classmethod
    def parse(cls, value: object) -> "ReviewQuality":
        """Coerce a member, its name, or one of the grades 0/3/4/5."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidQualityError(value)
        if isinstance(value, int):
            for quality, score in _QUALITY_SCORES.items():
                if score == value:
                    return quality
            raise InvalidQualityError(value)
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                raise InvalidQualityError(value) from None
        raise InvalidQualityError(value)


# Grades 1 and 2 have no member
_QUALITY_SCORES = {
    ReviewQuality.AGAIN: 0,
    ReviewQuality.HARD: 3,
    ReviewQuality.GOOD: 4,
    ReviewQuality.EASY: 5,
}


class MasteryLevel(IntEnum):
    NOT_LEARNED = 0
    LEARNING = 1
    MASTERED = 2


def classify_mastery(repetition_count: int, interval: int) -> MasteryLevel:
    """Derive the mastery level from repetition count and interval alone."""
    if repetition_count >= MASTERY_REPETITIONS and interval >= MASTERY_INTERVAL_DAYS:
        return MasteryLevel.MASTERED
    if repetition_count > 0:
        return MasteryLevel.LEARNING
    return MasteryLevel.NOT_LEARNED


@dataclass(frozen=True)
class ReviewState:
    """Scheduling state of one learnable item."""
    item_id: int
    collection_id: str
    interval: int
    easiness_factor: float
    repetition_count: int
    next_review_date: date
    last_review_date: date | None = None
    # Persistence metadata, 0 until the store has written the state once
    version: int = 0

    @property
    def mastery_level(self) -> MasteryLevel:
        return classify_mastery(self.repetition_count, self.interval)

    def is_due(self, today: date) -> bool:
        """True when the item belongs in today's review rotation."""
        return (
            self.next_review_date <= today
            and self.mastery_level != MasteryLevel.MASTERED
        )


@dataclass(frozen=True)
class SM2Result:
    interval: int
    easiness_factor: float
    repetition_count: int


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def calculate_sm2(
    interval: int,
    easiness_factor: float,
    repetition_count: int,
    q: float,
) -> SM2Result:
    """
    Core SM-2 step on raw numbers.

    Any grade in [0, 5] is accepted so the formula stays continuous between the
    named qualities; only the ``q < 3`` split changes the branch taken.
    """
    if isinstance(q, bool) or not isinstance(q, (int, float)) or not 0 <= q <= MAX_SCORE:
        raise InvalidQualityError(q)

    new_ef = easiness_factor + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
    result_ef = max(MIN_EASINESS, new_ef)

    if q < PASSING_SCORE:
        return SM2Result(interval=1, easiness_factor=result_ef, repetition_count=0)

    result_reps = repetition_count + 1
    if result_reps == 1:
        result_interval = 1
    elif result_reps == 2:
        result_interval = 6
    else:
        result_interval = round_half_up(interval * result_ef)

    return SM2Result(
        interval=result_interval,
        easiness_factor=result_ef,
        repetition_count=result_reps,
    )


class SM2Scheduler:
    """SM-2 scheduling engine: ``initialize`` once per item, ``transition`` per review."""

    name = "sm2"

    def initialize(self, item_id: int, collection_id: str, today: date) -> ReviewState:
        """First state of a freshly studied item; due the same day."""
        return ReviewState(
            item_id=item_id,
            collection_id=collection_id,
            interval=1,
            easiness_factor=INITIAL_EASINESS,
            repetition_count=0,
            next_review_date=today,
            last_review_date=None,
        )

    def transition(
        self, state: ReviewState | None, quality: ReviewQuality, today: date
    ) -> ReviewState:
        """Apply one review to ``state`` and return the new state."""
        if state is None:
            raise StateNotFoundError(None)
        if not isinstance(quality, ReviewQuality):
            raise InvalidQualityError(quality)

        result = calculate_sm2(
            state.interval,
            state.easiness_factor,
            state.repetition_count,
            quality.score,
        )

        return replace(
            state,
            interval=result.interval,
            easiness_factor=result.easiness_factor,
            repetition_count=result.repetition_count,
            last_review_date=today,
            next_review_date=today + timedelta(days=result.interval),
        )

    def preview(self, state: ReviewState, today: date) -> dict[ReviewQuality, int]:
        """Interval each quality would produce from ``state``."""
        return {
            quality: self.transition(state, quality, today).interval
            for quality in ReviewQuality
        }


def state_from_db(row) -> ReviewState:
    """Convert a ReviewSchedule row to a ReviewState."""
    return ReviewState(
        item_id=row.item_id,
        collection_id=row.collection_id,
        interval=row.review_interval,
        easiness_factor=row.easiness_factor,
        repetition_count=row.repetition_count,
        next_review_date=row.next_review_date,
        last_review_date=row.last_review_date,
        version=row.version,
    )


def state_to_db_dict(state: ReviewState) -> dict:
    """Convert a ReviewState to ReviewSchedule column values (version excluded)."""
    return {
        "collection_id": state.collection_id,
        "next_review_date": state.next_review_date,
        "review_interval": state.interval,
        "repetition_count": state.repetition_count,
        "easiness_factor": state.easiness_factor,
        "last_review_date": state.last_review_date,
        "mastery_level": int(state.mastery_level),
    }

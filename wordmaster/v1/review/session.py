"""
Study-session orchestration.

Selects which items a session presents, turns each learner outcome into a
review quality, and runs the read-transition-write cycle against the store.
Every answer is stored as a study event; summaries are built from those.
The scheduling math itself lives in ``sm2``.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Callable

from wordmaster.config.logging import get_logger
from wordmaster.config.settings import Settings, get_settings
from wordmaster.v1.core.exceptions import ConcurrentUpdateError, StateNotFoundError
from wordmaster.v1.review.sm2 import ReviewQuality, ReviewState, SM2Scheduler
from wordmaster.v1.review.store import ScheduleStore, StudyEvent, StudyType

logger = get_logger(__name__)


class SessionType(str, Enum):
    NEW = "new"
    REVIEW = "review"


@dataclass
class StudyResult:
    """Outcome of presenting one item."""
    item_id: int
    known: bool
    duration_s: int = 0


@dataclass
class StudyOutcome:
    item_id: int
    known: bool
    duration_s: int
    quality: ReviewQuality
    state: ReviewState


@dataclass
class StudySession:
    collection_id: str
    type: SessionType
    item_ids: list[int]
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    current_index: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    outcomes: list[StudyOutcome] = field(default_factory=list)

    def has_next(self) -> bool:
        return self.current_index < len(self.item_ids)

    def current_item_id(self) -> int | None:
        if 0 <= self.current_index < len(self.item_ids):
            return self.item_ids[self.current_index]
        return None

    def move_next(self) -> None:
        if self.has_next():
            self.current_index += 1

    @property
    def progress(self) -> int:
        return self.current_index

    @property
    def total(self) -> int:
        return len(self.item_ids)


@dataclass
class SessionSummary:
    total_items: int = 0
    learned_items: int = 0
    known_items: int = 0
    unknown_items: int = 0
    total_duration_s: int = 0


def infer_quality(
    known: bool, duration_s: int, easy_threshold_s: int = 3, good_threshold_s: int = 10
) -> ReviewQuality:
    """Map a known/unknown answer and its response time to a review quality."""
    if not known:
        return ReviewQuality.AGAIN
    if duration_s < easy_threshold_s:
        return ReviewQuality.EASY
    if duration_s < good_threshold_s:
        return ReviewQuality.GOOD
    return ReviewQuality.HARD


class SessionCoordinator:
    """Drives study sessions against a store and a scheduling engine."""

    def __init__(
        self,
        store: ScheduleStore,
        scheduler: SM2Scheduler | None = None,
        settings: Settings | None = None,
        clock: Callable[[], date] = date.today,
    ):
        self.store = store
        self.scheduler = scheduler or SM2Scheduler()
        self.settings = settings or get_settings()
        self.clock = clock

    async def start_session(
        self,
        collection_id: str,
        session_type: SessionType,
        max_items: int | None = None,
    ) -> StudySession:
        """Pick the items for a new session."""
        if session_type == SessionType.NEW:
            limit = max_items or self.settings.new_items_per_session
            item_ids = await self.store.query_never_scheduled(collection_id, limit)
        else:
            limit = max_items or self.settings.review_items_per_session
            item_ids = await self.store.query_due(collection_id, self.clock())
            item_ids = item_ids[:limit]

        session = StudySession(
            collection_id=collection_id, type=session_type, item_ids=item_ids
        )
        logger.info(
            "session_started",
            session_id=session.session_id,
            collection_id=collection_id,
            session_type=session_type.value,
            items=len(item_ids),
        )
        return session

    def infer_quality(self, known: bool, duration_s: int) -> ReviewQuality:
        return infer_quality(
            known,
            duration_s,
            self.settings.easy_threshold_s,
            self.settings.good_threshold_s,
        )

    async def initialize_item(self, item_id: int, collection_id: str) -> ReviewState:
        """Create and store the first state of an item unless one exists."""
        existing = await self.store.get(item_id)
        if existing is not None:
            return existing

        state = self.scheduler.initialize(item_id, collection_id, self.clock())
        try:
            stored = await self.store.put(state)
        except ConcurrentUpdateError:
            # Initialized concurrently; keep the other writer's record
            existing = await self.store.get(item_id)
            if existing is None:
                raise
            return existing

        logger.debug(
            "schedule_initialized",
            item_id=item_id,
            collection_id=collection_id,
            next_review=stored.next_review_date.isoformat(),
        )
        return stored

    async def review_item(
        self,
        item_id: int,
        collection_id: str,
        quality: ReviewQuality,
        known: bool | None = None,
        duration_s: int = 0,
        session_id: str | None = None,
        study_type: StudyType = StudyType.REVIEW,
    ) -> ReviewState:
        """Apply one review to a stored state, retrying on write conflicts.

        The study event is stored in the same write as the new state. ``known``
        defaults to whether the quality is a passing one.
        """
        if known is None:
            known = quality is not ReviewQuality.AGAIN

        attempt = 1
        while True:
            state = await self.store.get(item_id)
            if state is None:
                raise StateNotFoundError(item_id)

            today = self.clock()
            updated = self.scheduler.transition(state, quality, today)
            event = StudyEvent(
                item_id=item_id,
                collection_id=collection_id,
                study_type=study_type,
                known=known,
                quality=quality,
                duration_s=duration_s,
                studied_on=today,
                session_id=session_id,
            )
            try:
                stored = await self.store.put(updated, event)
            except ConcurrentUpdateError:
                if attempt >= self.settings.review_max_retries:
                    raise
                logger.info("schedule_retry", item_id=item_id, attempt=attempt)
                attempt += 1
                continue

            logger.debug(
                "schedule_updated",
                item_id=item_id,
                quality=quality.value,
                study_type=study_type.value,
                interval=stored.interval,
                easiness_factor=round(stored.easiness_factor, 3),
                repetitions=stored.repetition_count,
                next_review=stored.next_review_date.isoformat(),
                mastery=stored.mastery_level.name,
            )
            return stored

    async def learn_item(
        self,
        item_id: int,
        collection_id: str,
        known: bool,
        duration_s: int = 0,
        session_id: str | None = None,
    ) -> tuple[ReviewQuality, ReviewState]:
        """First study of an item: initialize, then grade Good or Again."""
        await self.initialize_item(item_id, collection_id)
        quality = ReviewQuality.GOOD if known else ReviewQuality.AGAIN
        state = await self.review_item(
            item_id,
            collection_id,
            quality,
            known=known,
            duration_s=duration_s,
            session_id=session_id,
            study_type=StudyType.LEARN,
        )
        return quality, state

    async def record_and_next(
        self, session: StudySession, result: StudyResult
    ) -> StudyOutcome:
        """Record the outcome of the current item and advance the session.

        If the store write fails the error propagates and the session stays
        on the same item.
        """
        if session.type == SessionType.NEW:
            quality, state = await self.learn_item(
                result.item_id,
                session.collection_id,
                result.known,
                duration_s=result.duration_s,
                session_id=session.session_id,
            )
        else:
            quality = self.infer_quality(result.known, result.duration_s)
            state = await self.review_item(
                result.item_id,
                session.collection_id,
                quality,
                known=result.known,
                duration_s=result.duration_s,
                session_id=session.session_id,
            )

        outcome = StudyOutcome(
            item_id=result.item_id,
            known=result.known,
            duration_s=result.duration_s,
            quality=quality,
            state=state,
        )
        session.outcomes.append(outcome)
        session.move_next()
        return outcome

    async def summarize(
        self,
        session_id: str | None = None,
        collection_id: str | None = None,
        studied_on: date | None = None,
    ) -> SessionSummary:
        """Totals over the stored study events matching the filters."""
        events = await self.store.list_events(
            session_id=session_id, collection_id=collection_id, studied_on=studied_on
        )
        summary = SessionSummary()
        for event in events:
            summary.total_items += 1
            summary.total_duration_s += event.duration_s
            if event.study_type == StudyType.LEARN:
                summary.learned_items += 1
            if event.known:
                summary.known_items += 1
            else:
                summary.unknown_items += 1
        return summary

    async def end_session(self, session: StudySession) -> SessionSummary:
        summary = await self.summarize(session_id=session.session_id)

        logger.info(
            "session_ended",
            session_id=session.session_id,
            total=summary.total_items,
            known=summary.known_items,
            unknown=summary.unknown_items,
            duration_s=summary.total_duration_s,
        )
        return summary

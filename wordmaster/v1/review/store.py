"""
Review-state stores.

A store owns the durable scheduling records and the study history. Writes are
all-or-nothing and version-checked: a state read at version N can only be
written back while the stored record is still at version N, which serializes
read-transition-write cycles per item. The study event that caused a write is
committed together with it, or not at all.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from enum import Enum
from typing import Iterable, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wordmaster.config.logging import get_logger
from wordmaster.v1.catalog.models import Item
from wordmaster.v1.core.exceptions import ConcurrentUpdateError
from wordmaster.v1.review.models import ReviewSchedule, StudyRecord
from wordmaster.v1.review.sm2 import (
    MasteryLevel,
    ReviewQuality,
    ReviewState,
    state_from_db,
    state_to_db_dict,
)

logger = get_logger(__name__)


class StudyType(str, Enum):
    LEARN = "learn"
    REVIEW = "review"


@dataclass(frozen=True)
class StudyEvent:
    """One answer given for one item."""
    item_id: int
    collection_id: str
    study_type: StudyType
    known: bool
    quality: ReviewQuality
    duration_s: int
    studied_on: date
    session_id: str | None = None
    studied_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def event_from_db(row: StudyRecord) -> StudyEvent:
    return StudyEvent(
        item_id=row.item_id,
        collection_id=row.collection_id,
        study_type=StudyType(row.study_type),
        known=row.known,
        quality=ReviewQuality(row.quality),
        duration_s=row.duration_s,
        studied_on=row.studied_on,
        session_id=row.session_id,
        studied_at=row.studied_at,
    )


def event_to_db(event: StudyEvent) -> StudyRecord:
    return StudyRecord(
        item_id=event.item_id,
        collection_id=event.collection_id,
        session_id=event.session_id,
        study_type=event.study_type.value,
        known=event.known,
        quality=event.quality.value,
        duration_s=event.duration_s,
        studied_on=event.studied_on,
        studied_at=event.studied_at,
    )


class ScheduleStore(Protocol):
    """Persistence contract consumed by the session coordinator."""

    async def get(self, item_id: int) -> ReviewState | None:
        ...

    async def put(self, state: ReviewState, event: StudyEvent | None = None) -> ReviewState:
        """Persist ``state`` (and ``event``) and return the state with its new version."""
        ...

    async def query_due(self, collection_id: str, today: date) -> list[int]:
        """Items due on/before ``today`` that are not mastered, oldest first."""
        ...

    async def query_overdue(self, collection_id: str, today: date) -> list[int]:
        """Items whose review date is strictly before ``today``."""
        ...

    async def query_never_scheduled(
        self, collection_id: str, limit: int | None = None
    ) -> list[int]:
        """Catalog items of the collection with no scheduling record at all."""
        ...

    async def list_events(
        self,
        session_id: str | None = None,
        collection_id: str | None = None,
        studied_on: date | None = None,
    ) -> list[StudyEvent]:
        """Stored study events matching every given filter, oldest first."""
        ...


def _due_sort_key(state: ReviewState) -> tuple:
    return (state.next_review_date, state.repetition_count, state.item_id)


def _log_conflict(state: ReviewState, **context) -> None:
    logger.warning(
        "schedule_write_conflict",
        item_id=state.item_id,
        expected_version=state.version,
        **context,
    )


class InMemoryScheduleStore:
    """Dict-backed store, mostly for tests and embedding."""

    def __init__(self, catalog: dict[str, Iterable[int]] | None = None):
        self._states: dict[int, ReviewState] = {}
        self._events: list[StudyEvent] = []
        self._catalog: dict[str, list[int]] = {
            collection_id: list(item_ids)
            for collection_id, item_ids in (catalog or {}).items()
        }
        self._lock = asyncio.Lock()

    def add_items(self, collection_id: str, item_ids: Iterable[int]) -> None:
        """Append items to a collection, keeping catalog order."""
        self._catalog.setdefault(collection_id, []).extend(item_ids)

    def remove_collection(self, collection_id: str) -> None:
        """Drop a collection together with the states and history of its items."""
        item_ids = set(self._catalog.pop(collection_id, []))
        self._states = {
            item_id: state
            for item_id, state in self._states.items()
            if item_id not in item_ids and state.collection_id != collection_id
        }
        self._events = [
            event
            for event in self._events
            if event.item_id not in item_ids and event.collection_id != collection_id
        ]

    async def get(self, item_id: int) -> ReviewState | None:
        return self._states.get(item_id)

    async def put(self, state: ReviewState, event: StudyEvent | None = None) -> ReviewState:
        async with self._lock:
            current = self._states.get(state.item_id)
            stored_version = current.version if current else 0
            if stored_version != state.version:
                _log_conflict(state, stored_version=stored_version)
                raise ConcurrentUpdateError(state.item_id, state.version)
            stored = replace(state, version=state.version + 1)
            self._states[state.item_id] = stored
            if event is not None:
                self._events.append(event)
            return stored

    async def query_due(self, collection_id: str, today: date) -> list[int]:
        due = [
            state
            for state in self._states.values()
            if state.collection_id == collection_id and state.is_due(today)
        ]
        return [state.item_id for state in sorted(due, key=_due_sort_key)]

    async def query_overdue(self, collection_id: str, today: date) -> list[int]:
        overdue = [
            state
            for state in self._states.values()
            if state.collection_id == collection_id
            and state.next_review_date < today
            and state.mastery_level != MasteryLevel.MASTERED
        ]
        overdue.sort(key=lambda state: (state.next_review_date, state.item_id))
        return [state.item_id for state in overdue]

    async def query_never_scheduled(
        self, collection_id: str, limit: int | None = None
    ) -> list[int]:
        unscheduled = [
            item_id
            for item_id in self._catalog.get(collection_id, [])
            if item_id not in self._states
        ]
        if limit is not None and limit > 0:
            return unscheduled[:limit]
        return unscheduled

    async def list_events(
        self,
        session_id: str | None = None,
        collection_id: str | None = None,
        studied_on: date | None = None,
    ) -> list[StudyEvent]:
        return [
            event
            for event in self._events
            if (session_id is None or event.session_id == session_id)
            and (collection_id is None or event.collection_id == collection_id)
            and (studied_on is None or event.studied_on == studied_on)
        ]


class SQLAlchemyScheduleStore:
    """Store backed by the ``review_schedule`` and ``study_records`` tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, item_id: int) -> ReviewState | None:
        query = (
            select(ReviewSchedule)
            .where(ReviewSchedule.item_id == item_id)
            .execution_options(populate_existing=True)
        )
        row = (await self.session.execute(query)).scalar_one_or_none()
        return state_from_db(row) if row is not None else None

    async def _exists(self, item_id: int) -> bool:
        found = await self.session.scalar(
            select(ReviewSchedule.item_id).where(ReviewSchedule.item_id == item_id)
        )
        return found is not None

    async def put(self, state: ReviewState, event: StudyEvent | None = None) -> ReviewState:
        values = state_to_db_dict(state)
        new_version = state.version + 1
        try:
            if state.version == 0:
                if await self._exists(state.item_id):
                    raise ConcurrentUpdateError(state.item_id, state.version)
                self.session.add(
                    ReviewSchedule(item_id=state.item_id, version=new_version, **values)
                )
            else:
                result = await self.session.execute(
                    update(ReviewSchedule)
                    .where(
                        ReviewSchedule.item_id == state.item_id,
                        ReviewSchedule.version == state.version,  # Optimistic locking
                    )
                    .values(version=new_version, **values)
                )
                if result.rowcount == 0:
                    raise ConcurrentUpdateError(state.item_id, state.version)
            if event is not None:
                self.session.add(event_to_db(event))
            await self.session.commit()
        except ConcurrentUpdateError:
            await self.session.rollback()
            _log_conflict(state)
            raise
        except IntegrityError:
            await self.session.rollback()
            # Another writer inserted the first row between our check and commit
            if state.version == 0 and await self._exists(state.item_id):
                _log_conflict(state, race="insert")
                raise ConcurrentUpdateError(state.item_id, state.version) from None
            raise
        except Exception:
            await self.session.rollback()
            raise

        return replace(state, version=new_version)

    async def query_due(self, collection_id: str, today: date) -> list[int]:
        query = (
            select(ReviewSchedule.item_id)
            .where(
                ReviewSchedule.collection_id == collection_id,
                ReviewSchedule.next_review_date <= today,
                ReviewSchedule.mastery_level != int(MasteryLevel.MASTERED),
            )
            .order_by(
                ReviewSchedule.next_review_date,
                ReviewSchedule.repetition_count,
                ReviewSchedule.item_id,
            )
        )
        return list((await self.session.scalars(query)).all())

    async def query_overdue(self, collection_id: str, today: date) -> list[int]:
        query = (
            select(ReviewSchedule.item_id)
            .where(
                ReviewSchedule.collection_id == collection_id,
                ReviewSchedule.next_review_date < today,
                ReviewSchedule.mastery_level != int(MasteryLevel.MASTERED),
            )
            .order_by(ReviewSchedule.next_review_date, ReviewSchedule.item_id)
        )
        return list((await self.session.scalars(query)).all())

    async def query_never_scheduled(
        self, collection_id: str, limit: int | None = None
    ) -> list[int]:
        query = (
            select(Item.id)
            .outerjoin(ReviewSchedule, ReviewSchedule.item_id == Item.id)
            .where(
                Item.collection_id == collection_id,
                ReviewSchedule.item_id.is_(None),
            )
            .order_by(Item.position, Item.id)
        )
        if limit is not None and limit > 0:
            query = query.limit(limit)
        return list((await self.session.scalars(query)).all())

    async def list_events(
        self,
        session_id: str | None = None,
        collection_id: str | None = None,
        studied_on: date | None = None,
    ) -> list[StudyEvent]:
        query = select(StudyRecord).order_by(StudyRecord.id)
        if session_id is not None:
            query = query.where(StudyRecord.session_id == session_id)
        if collection_id is not None:
            query = query.where(StudyRecord.collection_id == collection_id)
        if studied_on is not None:
            query = query.where(StudyRecord.studied_on == studied_on)
        rows = (await self.session.scalars(query)).all()
        return [event_from_db(row) for row in rows]

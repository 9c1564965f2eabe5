"""
Review API routes - SM-2 review queue and review recording endpoints.
"""

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordmaster.config.settings import Settings, get_settings
from wordmaster.infra.database import get_session
from wordmaster.v1.catalog.models import Collection, Item
from wordmaster.v1.core.exceptions import (
    NotFoundError,
    StateNotFoundError,
    ValidationError,
    create_success_response,
)
from wordmaster.v1.core.registries import scheduler_registry
from wordmaster.v1.review.schemas import (
    IntervalPreviewResponse,
    QueueItemResponse,
    ReviewQueueResponse,
    ReviewRecordRequest,
    ReviewRecordResponse,
    ReviewStateResponse,
    StudySummaryResponse,
)
from wordmaster.v1.review.session import SessionCoordinator
from wordmaster.v1.review.sm2 import ReviewQuality
from wordmaster.v1.review.store import SQLAlchemyScheduleStore, StudyType

router = APIRouter(prefix="/review", tags=["review"])


def get_today() -> date:
    """Study day used for every scheduling decision of a request."""
    return date.today()


def get_store(db: AsyncSession = Depends(get_session)) -> SQLAlchemyScheduleStore:
    return SQLAlchemyScheduleStore(db)


def get_coordinator(
    store: SQLAlchemyScheduleStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    today: date = Depends(get_today),
) -> SessionCoordinator:
    scheduler = scheduler_registry.get(settings.scheduler.value)
    return SessionCoordinator(store, scheduler, settings, clock=lambda: today)


async def _get_item(db: AsyncSession, item_id: int) -> Item:
    item = await db.get(Item, item_id)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found", {"item_id": item_id})
    return item


@router.get("/queue", response_model=dict)
async def get_review_queue(
    collection_id: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=200),
    mix_new: float = Query(0.2, ge=0.0, le=1.0),
    db: AsyncSession = Depends(get_session),
    store: SQLAlchemyScheduleStore = Depends(get_store),
    today: date = Depends(get_today),
):
    """Get the review queue: due items first, then never-studied items."""

    if await db.get(Collection, collection_id) is None:
        raise NotFoundError(
            f"Collection {collection_id} not found", {"collection_id": collection_id}
        )

    new_limit = int(limit * mix_new)
    due_limit = limit - new_limit

    due_ids = (await store.query_due(collection_id, today))[:due_limit]
    new_ids = (
        await store.query_never_scheduled(collection_id, new_limit) if new_limit > 0 else []
    )

    items = {}
    if due_ids or new_ids:
        result = await db.execute(select(Item).where(Item.id.in_(due_ids + new_ids)))
        items = {item.id: item for item in result.scalars().all()}

    due_queue = []
    for item_id in due_ids:
        state = await store.get(item_id)
        item = items[item_id]
        due_queue.append(
            QueueItemResponse(
                id=item.id,
                word=item.word,
                payload=item.payload,
                next_review_date=state.next_review_date if state else None,
                is_new=False,
            )
        )

    new_queue = [
        QueueItemResponse(
            id=items[item_id].id,
            word=items[item_id].word,
            payload=items[item_id].payload,
            next_review_date=None,
            is_new=True,
        )
        for item_id in new_ids
    ]

    queue_response = ReviewQueueResponse(
        collection_id=collection_id, due=due_queue, new=new_queue
    )
    return create_success_response(queue_response.model_dump(mode="json"))


@router.post("/record", response_model=dict)
async def record_review(
    review_request: ReviewRecordRequest,
    db: AsyncSession = Depends(get_session),
    coordinator: SessionCoordinator = Depends(get_coordinator),
    today: date = Depends(get_today),
):
    """Record a review and update the item's schedule.

    Never-studied items are initialized first.
    """

    item = await _get_item(db, review_request.item_id)
    initialized = await coordinator.store.get(item.id) is None
    duration_s = review_request.duration_s
    session_id = review_request.session_id

    if review_request.quality is not None:
        quality = review_request.quality
        if initialized:
            await coordinator.initialize_item(item.id, item.collection_id)
        state = await coordinator.review_item(
            item.id,
            item.collection_id,
            quality,
            known=review_request.known,
            duration_s=duration_s,
            session_id=session_id,
            study_type=StudyType.LEARN if initialized else StudyType.REVIEW,
        )
    elif initialized:
        quality, state = await coordinator.learn_item(
            item.id,
            item.collection_id,
            review_request.known,
            duration_s=duration_s,
            session_id=session_id,
        )
    else:
        quality = coordinator.infer_quality(review_request.known, duration_s)
        state = await coordinator.review_item(
            item.id,
            item.collection_id,
            quality,
            known=review_request.known,
            duration_s=duration_s,
            session_id=session_id,
        )

    response = ReviewRecordResponse(
        updated_state=ReviewStateResponse.from_state(state),
        quality=quality,
        next_review_date=state.next_review_date,
        interval_days=(state.next_review_date - today).days,
        initialized=initialized,
    )
    return create_success_response(response.model_dump(mode="json"))


@router.get("/state/{item_id}", response_model=dict)
async def get_review_state(
    item_id: int,
    store: SQLAlchemyScheduleStore = Depends(get_store),
):
    """Get the current scheduling state of an item."""
    state = await store.get(item_id)
    if state is None:
        raise StateNotFoundError(item_id)
    return create_success_response(ReviewStateResponse.from_state(state).model_dump(mode="json"))


@router.get("/state/{item_id}/preview", response_model=dict)
async def preview_intervals(
    item_id: int,
    store: SQLAlchemyScheduleStore = Depends(get_store),
    coordinator: SessionCoordinator = Depends(get_coordinator),
    today: date = Depends(get_today),
):
    """Show the interval each quality would produce for an item."""
    state = await store.get(item_id)
    if state is None:
        raise StateNotFoundError(item_id)

    intervals = coordinator.scheduler.preview(state, today)
    response = IntervalPreviewResponse(
        item_id=item_id,
        intervals={quality.value: intervals[quality] for quality in ReviewQuality},
    )
    return create_success_response(response.model_dump(mode="json"))


@router.get("/summary", response_model=dict)
async def get_study_summary(
    session_id: str | None = Query(None, max_length=64),
    collection_id: str | None = Query(None, min_length=1),
    day: date | None = Query(None, description="Study day, defaults to today for collections"),
    coordinator: SessionCoordinator = Depends(get_coordinator),
    today: date = Depends(get_today),
):
    """Summarize recorded study events of one session, or of a collection on one day."""
    if session_id is None and collection_id is None:
        raise ValidationError("Either 'session_id' or 'collection_id' is required")

    studied_on = day if day is not None or session_id is not None else today
    summary = await coordinator.summarize(
        session_id=session_id, collection_id=collection_id, studied_on=studied_on
    )

    response = StudySummaryResponse(
        session_id=session_id,
        collection_id=collection_id,
        day=studied_on,
        **asdict(summary),
    )
    return create_success_response(response.model_dump(mode="json"))

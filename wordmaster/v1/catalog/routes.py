"""
Catalog API routes - collections and the words they contain.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wordmaster.config.logging import get_logger
from wordmaster.infra.database import get_session
from wordmaster.v1.catalog.models import Collection, Item
from wordmaster.v1.catalog.schemas import (
    CollectionCreate,
    CollectionResponse,
    ItemResponse,
    ItemsCreateRequest,
)
from wordmaster.v1.core.exceptions import ConflictError, NotFoundError, create_success_response

logger = get_logger(__name__)

router = APIRouter(prefix="/collections", tags=["catalog"])


async def _get_collection(db: AsyncSession, collection_id: str) -> Collection:
    # Server-side defaults (created_at) must be loaded before serialization
    collection = await db.get(Collection, collection_id, populate_existing=True)
    if collection is None:
        raise NotFoundError(
            f"Collection {collection_id} not found", {"collection_id": collection_id}
        )
    return collection


@router.post("", response_model=dict, status_code=201)
async def create_collection(
    request: CollectionCreate,
    db: AsyncSession = Depends(get_session),
):
    """Create a word collection."""
    if await db.get(Collection, request.id) is not None:
        raise ConflictError(
            f"Collection {request.id} already exists", {"collection_id": request.id}
        )

    collection = Collection(**request.model_dump())
    db.add(collection)
    await db.commit()
    await db.refresh(collection)

    logger.info("collection_created", collection_id=collection.id)
    return create_success_response(
        CollectionResponse.model_validate(collection).model_dump(mode="json")
    )


@router.get("", response_model=dict)
async def list_collections(db: AsyncSession = Depends(get_session)):
    """List all collections."""
    result = await db.execute(
        select(Collection).order_by(Collection.id).execution_options(populate_existing=True)
    )
    collections = [
        CollectionResponse.model_validate(c).model_dump(mode="json")
        for c in result.scalars().all()
    ]
    return create_success_response(collections)


@router.get("/{collection_id}", response_model=dict)
async def get_collection(collection_id: str, db: AsyncSession = Depends(get_session)):
    collection = await _get_collection(db, collection_id)
    return create_success_response(
        CollectionResponse.model_validate(collection).model_dump(mode="json")
    )


@router.delete("/{collection_id}", response_model=dict)
async def delete_collection(collection_id: str, db: AsyncSession = Depends(get_session)):
    """Delete a collection; its words and their schedules go with it."""
    collection = await _get_collection(db, collection_id)
    await db.delete(collection)
    await db.commit()

    logger.info("collection_deleted", collection_id=collection_id)
    return create_success_response({"id": collection_id, "deleted": True})


@router.post("/{collection_id}/items", response_model=dict, status_code=201)
async def add_items(
    collection_id: str,
    request: ItemsCreateRequest,
    db: AsyncSession = Depends(get_session),
):
    """Append words to a collection, keeping the given order."""
    await _get_collection(db, collection_id)

    last_position = await db.scalar(
        select(func.max(Item.position)).where(Item.collection_id == collection_id)
    )
    start = 0 if last_position is None else last_position + 1

    items = [
        Item(
            collection_id=collection_id,
            position=start + offset,
            word=entry.word,
            payload=entry.payload,
        )
        for offset, entry in enumerate(request.items)
    ]
    db.add_all(items)
    await db.commit()

    logger.info("items_added", collection_id=collection_id, count=len(items))
    return create_success_response(
        [ItemResponse.model_validate(item).model_dump(mode="json") for item in items]
    )


@router.get("/{collection_id}/items", response_model=dict)
async def list_items(
    collection_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
):
    """List the words of a collection in study order."""
    await _get_collection(db, collection_id)
    result = await db.execute(
        select(Item)
        .where(Item.collection_id == collection_id)
        .order_by(Item.position, Item.id)
        .limit(limit)
        .offset(offset)
    )
    return create_success_response(
        [ItemResponse.model_validate(item).model_dump(mode="json") for item in result.scalars().all()]
    )

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CollectionCreate(BaseModel):
    """Schema for creating a collection."""

    id: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_\-]+$")
    name: str = Field(..., min_length=1)
    description: str | None = None
    language: str | None = Field(default=None, max_length=16)


class CollectionResponse(BaseModel):
    """Schema for collection response."""

    id: str
    name: str
    description: str | None = None
    language: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ItemCreate(BaseModel):
    word: str = Field(..., min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)


class ItemsCreateRequest(BaseModel):
    """Words to append to a collection, in study order."""

    items: list[ItemCreate] = Field(..., min_length=1)


class ItemResponse(BaseModel):
    id: int
    collection_id: str
    position: int
    word: str
    payload: dict[str, Any]

    class Config:
        from_attributes = True

# app/schemas/rating.py
import uuid
from datetime import datetime

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class RatingCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    request_id: uuid.UUID
    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)

    @field_validator("rating", mode="before")
    @classmethod
    def must_be_integer(cls, v):
        # 4.5 must not be silently truncated
        if isinstance(v, float) and not v.is_integer():
            raise ValueError("La calificación debe ser un número entero entre 1 y 5")
        return v

    @field_validator("comment")
    @classmethod
    def normalize_comment(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class RatingRead(SQLModel):
    id: uuid.UUID
    request_id: uuid.UUID
    consumer_id: uuid.UUID
    provider_id: uuid.UUID
    rating: int
    comment: str | None
    created_at: datetime
    updated_at: datetime | None


class RatingSubmitResult(SQLModel):
    rating_id: uuid.UUID
    is_update: bool
    average_rating: float | None
    rating_count: int


class ProviderRatingRead(SQLModel):
    provider_id: uuid.UUID
    average_rating: float | None
    rating_count: int

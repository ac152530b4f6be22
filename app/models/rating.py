# app/models/rating.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Rating(SQLModel, table=True):
    """
    Consumer rating of the supplier that delivered a request.

    One row per (request, consumer); re-rating updates the row in place.
    """

    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("request_id", "consumer_id"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    request_id: uuid.UUID = Field(foreign_key="water_requests.id", index=True)
    consumer_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    provider_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)

    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime | None = None

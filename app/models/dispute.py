# app/models/dispute.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Dispute(SQLModel, table=True):
    """
    Consumer complaint about a delivered request.

    At most one dispute per request (unique request_id).

    Lifecycle:
      open | under_review -> resolved_consumer | resolved_provider | closed
    """

    __tablename__ = "disputes"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    request_id: uuid.UUID = Field(
        foreign_key="water_requests.id",
        unique=True,
        index=True,
    )
    consumer_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    provider_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)

    # not_delivered | wrong_quantity | late_delivery | quality_issue | other
    dispute_type: str
    description: str | None = Field(default=None, max_length=1000)

    status: str = Field(default="open", index=True)

    resolution_notes: str | None = None
    resolved_by: uuid.UUID | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime | None = None
    resolved_at: datetime | None = None

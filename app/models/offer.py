# app/models/offer.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Offer(SQLModel, table=True):
    """
    A supplier's time-bound bid on a water request.

    Lifecycle:
      active   -> accepted | expired | cancelled | request_filled
      accepted -> completed | cancelled (request cancelled)

    A supplier may bid at most once per request (unique request/provider).
    The price is fixed when the offer is created from the platform pricing.
    """

    __tablename__ = "offers"
    __table_args__ = (UniqueConstraint("request_id", "provider_id"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    request_id: uuid.UUID = Field(
        foreign_key="water_requests.id",
        index=True,
    )

    provider_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )

    price: int = Field(
        ge=0,
        description="Offer price in CLP",
    )

    delivery_window_start: datetime
    delivery_window_end: datetime

    message: str | None = Field(
        default=None,
        max_length=500,
        description="Optional note from the supplier",
    )

    # active | accepted | expired | cancelled | request_filled | completed
    status: str = Field(
        default="active",
        index=True,
        description="Offer status lifecycle",
    )

    expires_at: datetime = Field(index=True)
    accepted_at: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

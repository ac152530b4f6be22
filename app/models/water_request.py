# app/models/water_request.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class WaterRequest(SQLModel, table=True):
    """
    A consumer's water delivery order.

    Lifecycle:
      pending  -> accepted | no_offers | cancelled
      accepted -> delivered | cancelled

    Guest consumers have consumer_id = NULL and reach the request through
    tracking_token; contact data is kept in the guest_* columns for both
    guests and registered consumers (it is what the supplier sees).
    """

    __tablename__ = "water_requests"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    consumer_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="profiles.id",
        index=True,
    )

    # Contact
    guest_name: str = Field(description="Contact name")
    guest_phone: str = Field(description="Contact phone, +56XXXXXXXXX")
    guest_email: str | None = Field(
        default=None,
        description="Contact email (used for guest notifications)",
    )

    # Location
    comuna_id: str | None = Field(default=None, index=True)
    address: str
    special_instructions: str
    latitude: float | None = None
    longitude: float | None = None

    # Order
    amount: int = Field(description="Liters: 100 | 1000 | 5000 | 10000")
    is_urgent: bool = Field(default=False)
    # cash | transfer
    payment_method: str = Field(default="cash")

    tracking_token: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        unique=True,
        index=True,
    )

    # pending | accepted | delivered | cancelled | no_offers
    status: str = Field(
        default="pending",
        index=True,
        description="Request status lifecycle",
    )

    supplier_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="profiles.id",
        index=True,
    )
    delivery_window: str | None = Field(
        default=None,
        description="Accepted offer window, 'start - end' in ISO format",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    accepted_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_by: uuid.UUID | None = None
    timed_out_at: datetime | None = None

# app/schemas/offer.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import AwareDatetime, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from app.schemas.water_request import RequestStatus

OfferStatus = Literal[
    "active",
    "accepted",
    "expired",
    "cancelled",
    "request_filled",
    "completed",
]


class OfferCreate(SQLModel):
    """
    Supplier payload for bidding on a pending request.

    Backend derives:
      - price from platform pricing (amount tier + urgency surcharge)
      - expires_at = now + validity minutes
      - status = 'active'

    Window bounds must carry a UTC offset (Chile local time is -03/-04);
    naive values are rejected. Window ordering and "start in the future"
    are checked by the service against the server clock.
    """

    model_config = ConfigDict(extra="forbid")

    delivery_window_start: AwareDatetime
    delivery_window_end: AwareDatetime
    message: str | None = Field(default=None, max_length=500)
    validity_minutes: int | None = Field(default=None, gt=0)

    @field_validator("message")
    @classmethod
    def normalize_message(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OfferRead(SQLModel):
    id: uuid.UUID
    request_id: uuid.UUID
    provider_id: uuid.UUID
    price: int
    delivery_window_start: datetime
    delivery_window_end: datetime
    message: str | None
    status: OfferStatus
    expires_at: datetime
    accepted_at: datetime | None
    created_at: datetime


class ConsumerOfferRead(SQLModel):
    """An active offer as the consumer sees it while choosing."""

    id: uuid.UUID
    provider_id: uuid.UUID
    provider_name: str
    provider_rating: float | None
    provider_rating_count: int
    price: int
    delivery_window_start: datetime
    delivery_window_end: datetime
    message: str | None
    status: OfferStatus
    expires_at: datetime
    seconds_remaining: int
    countdown: str
    is_warning: bool
    is_critical: bool


class ProviderStatus(SQLModel):
    is_verified: bool
    is_available: bool
    has_service_areas: bool


class AvailableRequest(SQLModel):
    id: uuid.UUID
    comuna_id: str | None
    comuna_name: str
    address: str
    amount: int
    is_urgent: bool
    payment_method: str
    created_at: datetime
    offer_count: int
    has_my_offer: bool


class AvailableRequestsRead(SQLModel):
    provider_status: ProviderStatus
    requests: list[AvailableRequest]


class RequestDetailRead(SQLModel):
    """Pending request as a supplier sees it before bidding."""

    id: uuid.UUID
    status: RequestStatus
    comuna_id: str | None
    comuna_name: str
    address: str
    special_instructions: str
    latitude: float | None
    longitude: float | None
    amount: int
    is_urgent: bool
    payment_method: str
    created_at: datetime
    offer_count: int
    provider_has_offer: bool
    existing_offer_id: uuid.UUID | None
    suggested_price: int


class OfferPreview(SQLModel):
    amount: int
    is_urgent: bool
    price: int
    commission_percent: float
    commission: int
    earnings: int
    validity_minutes: int
    validity_min: int
    validity_max: int
    message: str


class RequestSummary(SQLModel):
    id: uuid.UUID
    status: RequestStatus
    amount: int
    is_urgent: bool
    address: str
    comuna_id: str | None
    guest_name: str | None = None
    guest_phone: str | None = None
    delivered_at: datetime | None = None


class DisputeSummary(SQLModel):
    id: uuid.UUID
    status: str
    dispute_type: str


class ProviderOfferRead(OfferRead):
    """An offer in the supplier's own list, with its request."""

    request: RequestSummary | None
    dispute: DisputeSummary | None = None
    seconds_remaining: int
    countdown: str


class MyOffersRead(SQLModel):
    pending: list[ProviderOfferRead]
    accepted: list[ProviderOfferRead]
    completed: list[ProviderOfferRead]
    history: list[ProviderOfferRead]


class OfferSelectResult(SQLModel):
    offer_id: uuid.UUID
    request_id: uuid.UUID
    request_status: RequestStatus
    offer_status: OfferStatus
    delivery_window: str | None
    filled_offer_count: int


class DeliveryCompleteResult(SQLModel):
    offer_id: uuid.UUID
    request_id: uuid.UUID
    delivered_at: datetime
    commission_amount: int
    commission_percent: float

# app/schemas/water_request.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from app.core.constants import COMUNAS, WATER_AMOUNTS
from app.schemas.profile import validate_chilean_phone

RequestStatus = Literal["pending", "accepted", "delivered", "cancelled", "no_offers"]
PaymentMethod = Literal["cash", "transfer"]


class WaterRequestCreate(SQLModel):
    """
    Payload for a new water request (guest or registered consumer).

    User provides:
      - contact: name, phone, optional email
      - location: comuna, address, special instructions, optional lat/lng
      - order: amount (liters), urgency, payment method

    Backend derives:
      - consumer_id from token (None for guests)
      - tracking_token
      - status = 'pending'
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=2, max_length=100)
    phone: str
    email: EmailStr | None = None
    comuna_id: str | None = None
    address: str = Field(min_length=5, max_length=200)
    special_instructions: str = Field(min_length=1, max_length=500)
    amount: int
    is_urgent: bool = False
    payment_method: PaymentMethod = "cash"
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("name", "address", "special_instructions", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return validate_chilean_phone(v)

    @field_validator("email", mode="before")
    @classmethod
    def empty_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("comuna_id")
    @classmethod
    def check_comuna(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if v not in COMUNAS:
            raise ValueError("Comuna inválida")
        return v

    @field_validator("amount")
    @classmethod
    def check_amount(cls, v: int) -> int:
        if v not in WATER_AMOUNTS:
            raise ValueError("Cantidad inválida: 100, 1000, 5000 o 10000 litros")
        return v


class WaterRequestCreated(SQLModel):
    id: uuid.UUID
    tracking_token: str
    status: RequestStatus
    created_at: datetime


class WaterRequestRead(SQLModel):
    """Full request view for its consumer, assigned supplier or admins."""

    id: uuid.UUID
    consumer_id: uuid.UUID | None
    guest_name: str
    guest_phone: str
    guest_email: str | None
    comuna_id: str | None
    address: str
    special_instructions: str
    latitude: float | None
    longitude: float | None
    amount: int
    is_urgent: bool
    payment_method: PaymentMethod
    status: RequestStatus
    supplier_id: uuid.UUID | None
    delivery_window: str | None
    created_at: datetime
    accepted_at: datetime | None
    delivered_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    timed_out_at: datetime | None


class RequestCancel(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = Field(default=None, max_length=500)

    @field_validator("reason")
    @classmethod
    def normalize_reason(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class TimelineStep(SQLModel):
    step: str
    label: str
    at: datetime | None
    completed: bool


class AcceptedOfferSummary(SQLModel):
    offer_id: uuid.UUID
    provider_name: str
    provider_phone: str | None
    price: int
    delivery_window_start: datetime
    delivery_window_end: datetime


class TrackingRead(SQLModel):
    """Guest-facing read model reached through /requests/track/{token}."""

    id: uuid.UUID
    status: RequestStatus
    amount: int
    is_urgent: bool
    address: str
    comuna_id: str | None
    created_at: datetime
    active_offer_count: int
    accepted_offer: AcceptedOfferSummary | None
    timeline: list[TimelineStep]

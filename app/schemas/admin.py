# app/schemas/admin.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

from app.schemas.offer import OfferRead
from app.schemas.profile import DocumentRead, VerificationStatus
from app.schemas.water_request import WaterRequestRead

VerificationDecisionType = Literal["approved", "rejected", "more_info_needed"]
MetricsPeriod = Literal["today", "week", "month"]


class VerificationDecision(SQLModel):
    """
    Admin decision on a supplier application.

    - rejected         : reason required
    - more_info_needed : reason or missing_documents required
    """

    model_config = ConfigDict(extra="forbid")

    decision: VerificationDecisionType
    reason: str | None = Field(default=None, max_length=1000)
    notes: str | None = Field(default=None, max_length=2000)
    missing_documents: list[str] = []

    @model_validator(mode="after")
    def check_reason(self):
        reason = (self.reason or "").strip()
        if self.decision == "rejected" and not reason:
            raise ValueError("Debes indicar el motivo del rechazo")
        if self.decision == "more_info_needed" and not (reason or self.missing_documents):
            raise ValueError("Debes indicar qué información falta")
        return self


class ProviderAdminRead(SQLModel):
    """Supplier row in the admin directory / verification queue."""

    id: uuid.UUID
    email: str
    name: str
    phone: str | None
    rut: str | None
    vehicle_type: str | None
    vehicle_capacity: int | None
    bank_name: str | None
    bank_account_type: str | None
    bank_account_number: str | None
    verification_status: VerificationStatus | None
    is_available: bool
    commission_override: float | None
    rejection_reason: str | None
    internal_notes: str | None
    suspension_reason: str | None
    average_rating: float | None
    rating_count: int
    created_at: datetime
    service_areas: list[str] = []
    documents: list[DocumentRead] = []
    completed_deliveries: int = 0
    pending_balance: int = 0


class VerificationQueueRead(SQLModel):
    pending_count: int
    providers: list[ProviderAdminRead]


class SuspendPayload(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str = Field(min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Debes indicar el motivo")
        return v


class CommissionOverrideUpdate(SQLModel):
    """None resets the supplier to the platform default."""

    model_config = ConfigDict(extra="forbid")

    commission_override: float | None = Field(default=None, ge=0, le=100)


class OrderCancel(SuspendPayload):
    pass


class AdminOrderRead(WaterRequestRead):
    offer_count: int
    active_offer_count: int
    supplier_name: str | None = None


class OrderStatusCounts(SQLModel):
    pending: int = 0
    accepted: int = 0
    delivered: int = 0
    cancelled: int = 0
    no_offers: int = 0


class AdminOrdersRead(SQLModel):
    counts: OrderStatusCounts
    orders: list[AdminOrderRead]


class AdminOrderDetail(AdminOrderRead):
    offers: list[OfferRead]


class AllowedEmailCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    notes: str | None = Field(default=None, max_length=200)


class AllowedEmailRead(SQLModel):
    email: str
    notes: str | None
    added_at: datetime


class MetricsRead(SQLModel):
    period: MetricsPeriod
    since: datetime
    requests_total: int
    requests_by_status: dict[str, int]
    offers_total: int
    offers_by_status: dict[str, int]
    conversion_rate: float
    avg_offers_per_request: float
    commission_owed: int
    commission_paid: int
    active_providers: int
    pending_verifications: int
    open_disputes: int

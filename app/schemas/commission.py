# app/schemas/commission.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

LedgerType = Literal["commission_owed", "commission_paid"]
PaymentStatus = Literal["pending", "completed", "rejected"]


class LedgerEntryRead(SQLModel):
    id: uuid.UUID
    provider_id: uuid.UUID
    request_id: uuid.UUID | None
    type: LedgerType
    amount: int
    description: str | None
    bank_reference: str | None
    created_at: datetime


class EarningsRead(SQLModel):
    """Supplier dashboard totals (CLP)."""

    completed_deliveries: int
    gross_earnings: int
    commission_owed: int
    commission_paid: int
    pending_balance: int
    net_earnings: int
    has_pending_payment: bool
    ledger: list[LedgerEntryRead]


class PaymentRead(SQLModel):
    id: uuid.UUID
    provider_id: uuid.UUID
    amount: int
    receipt_path: str | None
    status: PaymentStatus
    rejection_reason: str | None
    bank_reference: str | None
    processed_by: uuid.UUID | None
    processed_at: datetime | None
    created_at: datetime


class PendingPaymentRead(PaymentRead):
    provider_name: str
    provider_email: str
    provider_balance: int


class PaymentVerify(SQLModel):
    model_config = ConfigDict(extra="forbid")

    bank_reference: str | None = Field(default=None, max_length=100)


class PaymentReject(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str = Field(min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("El motivo de rechazo es requerido")
        return v

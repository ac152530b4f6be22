# app/models/commission.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class CommissionLedgerEntry(SQLModel, table=True):
    """
    Append-only ledger of platform commission.

    type:
      - commission_owed : written when a delivery is completed
      - commission_paid : written when an admin verifies a supplier payment

    Rows are never updated or deleted; balances are sums over the ledger.
    """

    __tablename__ = "commission_ledger"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    provider_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    request_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="water_requests.id",
        index=True,
    )
    type: str = Field(index=True)
    amount: int = Field(description="CLP, always positive")
    description: str | None = None
    bank_reference: str | None = None
    admin_id: uuid.UUID | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class WithdrawalRequest(SQLModel, table=True):
    """
    A supplier's commission payment, waiting for admin verification.

    Lifecycle: pending -> completed | rejected
    """

    __tablename__ = "withdrawal_requests"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    provider_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    amount: int = Field(gt=0)
    receipt_path: str | None = None
    status: str = Field(default="pending", index=True)
    rejection_reason: str | None = None
    bank_reference: str | None = None
    processed_by: uuid.UUID | None = None
    processed_at: datetime | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

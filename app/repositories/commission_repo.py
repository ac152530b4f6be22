# app/repositories/commission_repo.py
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.commission import CommissionLedgerEntry, WithdrawalRequest


class CommissionRepository:
    """
    Data access layer for the commission ledger and supplier payments.

    The ledger is append-only: there is deliberately no update/delete here.
    """

    # ---- Ledger ----

    def add_entry(
        self,
        session: Session,
        entry: CommissionLedgerEntry,
    ) -> CommissionLedgerEntry:
        """Append a ledger row. No commit."""
        session.add(entry)
        session.flush()
        return entry

    def list_entries(
        self,
        session: Session,
        provider_id: uuid.UUID,
        limit: int = 100,
    ) -> list[CommissionLedgerEntry]:
        stmt = (
            select(CommissionLedgerEntry)
            .where(CommissionLedgerEntry.provider_id == provider_id)
            .order_by(CommissionLedgerEntry.created_at.desc())
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_for_request(
        self,
        session: Session,
        request_id: uuid.UUID,
    ) -> list[CommissionLedgerEntry]:
        stmt = select(CommissionLedgerEntry).where(
            CommissionLedgerEntry.request_id == request_id
        )
        return session.exec(stmt).all()

    def totals_for_provider(self, session: Session, provider_id: uuid.UUID) -> dict[str, int]:
        """Sum of amounts per ledger type, e.g. {"commission_owed": 3000}."""
        stmt = (
            select(CommissionLedgerEntry.type, func.sum(CommissionLedgerEntry.amount))
            .where(CommissionLedgerEntry.provider_id == provider_id)
            .group_by(CommissionLedgerEntry.type)
        )
        return {t: int(total or 0) for t, total in session.exec(stmt).all()}

    def totals(self, session: Session, since: datetime | None = None) -> dict[str, int]:
        stmt = select(
            CommissionLedgerEntry.type, func.sum(CommissionLedgerEntry.amount)
        ).group_by(CommissionLedgerEntry.type)
        if since:
            stmt = stmt.where(CommissionLedgerEntry.created_at >= since)
        return {t: int(total or 0) for t, total in session.exec(stmt).all()}

    # ---- Payments (withdrawal_requests) ----

    def get_payment(self, session: Session, payment_id: uuid.UUID) -> WithdrawalRequest | None:
        return session.get(WithdrawalRequest, payment_id)

    def create_payment(self, session: Session, payment: WithdrawalRequest) -> WithdrawalRequest:
        session.add(payment)
        session.commit()
        session.refresh(payment)
        return payment

    def get_pending_for_provider(
        self,
        session: Session,
        provider_id: uuid.UUID,
    ) -> WithdrawalRequest | None:
        stmt = (
            select(WithdrawalRequest)
            .where(WithdrawalRequest.provider_id == provider_id)
            .where(WithdrawalRequest.status == "pending")
        )
        return session.exec(stmt).first()

    def list_payments(
        self,
        session: Session,
        status: str | None = None,
        provider_id: uuid.UUID | None = None,
    ) -> list[WithdrawalRequest]:
        stmt = select(WithdrawalRequest)
        if status:
            stmt = stmt.where(WithdrawalRequest.status == status)
        if provider_id:
            stmt = stmt.where(WithdrawalRequest.provider_id == provider_id)
        stmt = stmt.order_by(WithdrawalRequest.created_at)
        return session.exec(stmt).all()

    def transition_payment(
        self,
        session: Session,
        payment_id: uuid.UUID,
        values: dict[str, Any],
    ) -> bool:
        """Guarded `pending -> <status>` update. No commit."""
        stmt = (
            update(WithdrawalRequest)
            .where(WithdrawalRequest.id == payment_id)
            .where(WithdrawalRequest.status == "pending")
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

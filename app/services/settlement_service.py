# app/services/settlement_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.clock import utcnow
from app.core.storage_utils import create_signed_url
from app.models.commission import CommissionLedgerEntry, WithdrawalRequest
from app.models.profile import Profile
from app.repositories.commission_repo import CommissionRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.commission import PaymentReject, PaymentVerify, PendingPaymentRead
from app.services.notification_service import Notice, NotificationService
from app.services.provider_service import provider_balance
from app.utils.commission import format_clp

logger = logging.getLogger(__name__)


class SettlementService:
    """
    Admin verification of supplier commission payments.

    pending -> completed : appends a commission_paid ledger row
    pending -> rejected  : reason stored, ledger untouched
    """

    def __init__(
        self,
        commission_repo: CommissionRepository,
        profile_repo: ProfileRepository,
        notifications: NotificationService,
    ):
        self.commission_repo = commission_repo
        self.profile_repo = profile_repo
        self.notifications = notifications

    def list_pending_payments(self, session: Session) -> list[PendingPaymentRead]:
        rows = []
        for payment in self.commission_repo.list_payments(session, status="pending"):
            provider = self.profile_repo.get_by_id(session, payment.provider_id)
            rows.append(
                PendingPaymentRead.model_validate(
                    payment,
                    update={
                        "provider_name": provider.name if provider else "",
                        "provider_email": provider.email if provider else "",
                        "provider_balance": provider_balance(
                            self.commission_repo.totals_for_provider(session, payment.provider_id)
                        ),
                    },
                )
            )
        return rows

    def get_receipt_url(self, session: Session, payment_id: uuid.UUID) -> str | None:
        payment = self._get_payment(session, payment_id)
        if not payment.receipt_path:
            return None
        return create_signed_url(payment.receipt_path)

    def verify_payment(
        self,
        session: Session,
        payment_id: uuid.UUID,
        payload: PaymentVerify,
        admin: Profile,
    ) -> WithdrawalRequest:
        """
        Confirm a payment was received.

        The status change and the commission_paid ledger row commit together.

        Raises:
            HTTPException(404): payment not found.
            HTTPException(409): payment already processed.
        """
        payment = self._get_payment(session, payment_id)
        now = utcnow()
        changed = self.commission_repo.transition_payment(
            session,
            payment.id,
            {
                "status": "completed",
                "bank_reference": payload.bank_reference,
                "processed_by": admin.id,
                "processed_at": now,
            },
        )
        if not changed:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Esta solicitud ya fue procesada",
            )

        self.commission_repo.add_entry(
            session,
            CommissionLedgerEntry(
                provider_id=payment.provider_id,
                type="commission_paid",
                amount=payment.amount,
                description="Pago de comisión verificado",
                bank_reference=payload.bank_reference,
                admin_id=admin.id,
            ),
        )
        session.commit()
        session.refresh(payment)
        logger.info(
            "Payment %s verified by admin %s (%s CLP, provider %s)",
            payment.id,
            admin.id,
            payment.amount,
            payment.provider_id,
        )

        self.notifications.notify(
            session,
            Notice(
                user_id=payment.provider_id,
                type="payment_verified",
                title="Pago verificado",
                message=f"Tu pago de {format_clp(payment.amount)} fue verificado",
                data={"payment_id": payment.id},
                url="/provider/earnings",
                tag=f"payment-{payment.id}",
            ),
        )
        return payment

    def reject_payment(
        self,
        session: Session,
        payment_id: uuid.UUID,
        payload: PaymentReject,
        admin: Profile,
    ) -> WithdrawalRequest:
        payment = self._get_payment(session, payment_id)
        changed = self.commission_repo.transition_payment(
            session,
            payment.id,
            {
                "status": "rejected",
                "rejection_reason": payload.reason,
                "processed_by": admin.id,
                "processed_at": utcnow(),
            },
        )
        if not changed:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Esta solicitud ya fue procesada",
            )
        session.commit()
        session.refresh(payment)
        logger.info("Payment %s rejected by admin %s: %s", payment.id, admin.id, payload.reason)

        self.notifications.notify(
            session,
            Notice(
                user_id=payment.provider_id,
                type="payment_rejected",
                title="Pago rechazado",
                message=f"Tu pago de {format_clp(payment.amount)} fue rechazado. Motivo: {payload.reason}",
                data={"payment_id": payment.id},
                url="/provider/earnings",
                tag=f"payment-{payment.id}",
            ),
        )
        return payment

    def _get_payment(self, session: Session, payment_id: uuid.UUID) -> WithdrawalRequest:
        payment = self.commission_repo.get_payment(session, payment_id)
        if not payment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud de retiro no encontrada",
            )
        return payment

# app/services/admin_service.py
import logging
import uuid
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.clock import utcnow
from app.core.constants import comuna_name
from app.models.admin import AdminAllowedEmail
from app.models.profile import Profile
from app.models.water_request import WaterRequest
from app.repositories.commission_repo import CommissionRepository
from app.repositories.dispute_repo import DisputeRepository
from app.repositories.offer_repo import OfferRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.request_repo import WaterRequestRepository
from app.repositories.settings_repo import SettingsRepository
from app.schemas.admin import (
    AdminOrderDetail,
    AdminOrderRead,
    AdminOrdersRead,
    AllowedEmailCreate,
    CommissionOverrideUpdate,
    MetricsRead,
    OrderStatusCounts,
    ProviderAdminRead,
    VerificationDecision,
    VerificationQueueRead,
)
from app.schemas.offer import OfferRead
from app.services.email_service import EmailService
from app.services.notification_service import Notice, NotificationService
from app.services.provider_service import ProviderService, provider_balance
from app.utils.formatting import format_liters

logger = logging.getLogger(__name__)

# Applications waiting for an admin decision
QUEUE_STATUSES = ["pending", "more_info_needed"]

VERIFICATION_NOTICES: dict[str, tuple[str, str, str]] = {
    # decision: (type, title, message)
    "approved": (
        "verification_approved",
        "¡Cuenta verificada!",
        "Tu cuenta ha sido aprobada. Ya puedes empezar a recibir solicitudes.",
    ),
    "rejected": (
        "verification_rejected",
        "Solicitud rechazada",
        "Tu solicitud para ser repartidor fue rechazada.",
    ),
    "more_info_needed": (
        "verification_more_info",
        "Necesitamos más información",
        "Revisa tu solicitud: necesitamos más información para verificarte.",
    ),
}


def period_start(period: str, now: datetime | None = None) -> datetime:
    """
    Start of a metrics period.

      today : midnight UTC
      week  : Monday 00:00 UTC
      month : first day of the month 00:00 UTC
    """
    now = now or utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        return midnight
    if period == "week":
        return midnight - timedelta(days=midnight.weekday())
    return midnight.replace(day=1)


class AdminService:
    """
    Operations console.

    Responsibilities:
      - supplier verification queue and decisions
      - supplier directory: suspend / unsuspend / ban / commission override
      - orders oversight and admin cancellation
      - admin allow-list
      - dashboard metrics
    """

    def __init__(
        self,
        profile_repo: ProfileRepository,
        request_repo: WaterRequestRepository,
        offer_repo: OfferRepository,
        commission_repo: CommissionRepository,
        dispute_repo: DisputeRepository,
        settings_repo: SettingsRepository,
        provider_service: ProviderService,
        notifications: NotificationService,
        emails: EmailService,
    ):
        self.profile_repo = profile_repo
        self.request_repo = request_repo
        self.offer_repo = offer_repo
        self.commission_repo = commission_repo
        self.dispute_repo = dispute_repo
        self.settings_repo = settings_repo
        self.provider_service = provider_service
        self.notifications = notifications
        self.emails = emails

    # -------- Providers --------

    def _provider_read(
        self,
        session: Session,
        provider: Profile,
        with_documents: bool = False,
    ) -> ProviderAdminRead:
        completed, _ = self.offer_repo.completed_totals_for_provider(session, provider.id)
        return ProviderAdminRead.model_validate(
            provider,
            update={
                "service_areas": self.profile_repo.list_service_areas(session, provider.id),
                "documents": (
                    self.provider_service.list_documents(session, provider.id)
                    if with_documents
                    else []
                ),
                "completed_deliveries": completed,
                "pending_balance": provider_balance(
                    self.commission_repo.totals_for_provider(session, provider.id)
                ),
            },
        )

    def _get_provider(self, session: Session, provider_id: uuid.UUID) -> Profile:
        provider = self.profile_repo.get_by_id(session, provider_id)
        if not provider or provider.role != "supplier":
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Proveedor no encontrado",
            )
        return provider

    def get_verification_queue(self, session: Session) -> VerificationQueueRead:
        """Applications awaiting a decision, oldest first."""
        providers = self.profile_repo.list_providers(
            session, statuses=QUEUE_STATUSES, oldest_first=True, limit=200
        )
        return VerificationQueueRead(
            pending_count=self.profile_repo.count_providers(session, ["pending"]),
            providers=[self._provider_read(session, p, with_documents=True) for p in providers],
        )

    def get_provider(self, session: Session, provider_id: uuid.UUID) -> ProviderAdminRead:
        provider = self._get_provider(session, provider_id)
        return self._provider_read(session, provider, with_documents=True)

    def list_providers(
        self,
        session: Session,
        status_filter: str | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[ProviderAdminRead]:
        providers = self.profile_repo.list_providers(
            session,
            statuses=[status_filter] if status_filter else None,
            search=search.strip() if search else None,
            skip=skip,
            limit=limit,
        )
        return [self._provider_read(session, p) for p in providers]

    def verify_provider(
        self,
        session: Session,
        provider_id: uuid.UUID,
        payload: VerificationDecision,
        admin: Profile,
    ) -> ProviderAdminRead:
        """
        Record a verification decision and tell the supplier.

          approved         -> approved, available, reason cleared
          rejected         -> rejected, reason stored
          more_info_needed -> reason + "Documentos faltantes: ..." stored
        """
        provider = self._get_provider(session, provider_id)
        reason = (payload.reason or "").strip() or None

        provider.verification_status = payload.decision
        if payload.decision == "approved":
            provider.is_available = True
            provider.rejection_reason = None
        elif payload.decision == "rejected":
            provider.is_available = False
            provider.rejection_reason = reason
        else:
            provider.is_available = False
            if payload.missing_documents:
                missing = f"Documentos faltantes: {', '.join(payload.missing_documents)}"
                reason = f"{reason}\n{missing}" if reason else missing
            provider.rejection_reason = reason
        if payload.notes:
            provider.internal_notes = payload.notes
        provider.updated_at = utcnow()
        provider = self.profile_repo.update(session, provider)
        logger.info(
            "Provider %s verification -> %s by admin %s",
            provider.id,
            payload.decision,
            admin.id,
        )

        notice_type, title, message = VERIFICATION_NOTICES[payload.decision]
        self.notifications.notify(
            session,
            Notice(
                user_id=provider.id,
                type=notice_type,
                title=title,
                message=f"{message}\n{reason}" if reason else message,
                data={"decision": payload.decision},
                url="/provider/requests" if payload.decision == "approved" else "/provider/onboarding",
                tag="verification",
            ),
        )
        self.emails.send_verification_email(provider, payload.decision, reason)
        return self._provider_read(session, provider)

    def suspend_provider(
        self,
        session: Session,
        provider_id: uuid.UUID,
        reason: str,
        admin: Profile,
    ) -> ProviderAdminRead:
        provider = self._get_provider(session, provider_id)
        if provider.verification_status == "banned":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="El proveedor está baneado",
            )
        provider.verification_status = "suspended"
        provider.is_available = False
        provider.suspension_reason = reason
        provider.updated_at = utcnow()
        provider = self.profile_repo.update(session, provider)
        logger.info("Provider %s suspended by admin %s: %s", provider.id, admin.id, reason)
        return self._provider_read(session, provider)

    def unsuspend_provider(
        self,
        session: Session,
        provider_id: uuid.UUID,
        admin: Profile,
    ) -> ProviderAdminRead:
        provider = self._get_provider(session, provider_id)
        if provider.verification_status != "suspended":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="El proveedor no está suspendido",
            )
        provider.verification_status = "approved"
        provider.is_available = True
        provider.suspension_reason = None
        provider.updated_at = utcnow()
        provider = self.profile_repo.update(session, provider)
        logger.info("Provider %s reactivated by admin %s", provider.id, admin.id)
        return self._provider_read(session, provider)

    def ban_provider(
        self,
        session: Session,
        provider_id: uuid.UUID,
        admin: Profile,
    ) -> ProviderAdminRead:
        provider = self._get_provider(session, provider_id)
        provider.verification_status = "banned"
        provider.is_available = False
        provider.updated_at = utcnow()
        provider = self.profile_repo.update(session, provider)
        logger.warning("Provider %s banned by admin %s", provider.id, admin.id)
        return self._provider_read(session, provider)

    def update_commission_override(
        self,
        session: Session,
        provider_id: uuid.UUID,
        payload: CommissionOverrideUpdate,
        admin: Profile,
    ) -> ProviderAdminRead:
        provider = self._get_provider(session, provider_id)
        provider.commission_override = payload.commission_override
        provider.updated_at = utcnow()
        provider = self.profile_repo.update(session, provider)
        logger.info(
            "Provider %s commission override -> %s by admin %s",
            provider.id,
            payload.commission_override,
            admin.id,
        )
        return self._provider_read(session, provider)

    # -------- Orders --------

    def _order_read(
        self,
        request: WaterRequest,
        offer_counts: dict[uuid.UUID, int],
        active_counts: dict[uuid.UUID, int],
        supplier_names: dict[uuid.UUID, str],
    ) -> AdminOrderRead:
        return AdminOrderRead.model_validate(
            request,
            update={
                "offer_count": offer_counts.get(request.id, 0),
                "active_offer_count": active_counts.get(request.id, 0),
                "supplier_name": supplier_names.get(request.supplier_id),
            },
        )

    def _supplier_names(self, session: Session, requests: list[WaterRequest]) -> dict[uuid.UUID, str]:
        names = {}
        for supplier_id in {r.supplier_id for r in requests if r.supplier_id}:
            supplier = self.profile_repo.get_by_id(session, supplier_id)
            if supplier:
                names[supplier_id] = supplier.name
        return names

    def list_orders(
        self,
        session: Session,
        status_filter: str | None = None,
        comuna_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> AdminOrdersRead:
        requests = self.request_repo.list_filtered(
            session, status_filter, comuna_id, date_from, date_to, skip, limit
        )
        ids = [r.id for r in requests]
        offer_counts = self.offer_repo.count_all_by_request(session, ids)
        active_counts = self.offer_repo.count_active_by_request(session, ids)
        names = self._supplier_names(session, requests)

        counts = self.request_repo.count_by_status(session)
        return AdminOrdersRead(
            counts=OrderStatusCounts(**counts),
            orders=[self._order_read(r, offer_counts, active_counts, names) for r in requests],
        )

    def get_order(self, session: Session, request_id: uuid.UUID) -> AdminOrderDetail:
        request = self._get_order(session, request_id)
        offers = self.offer_repo.list_for_request(session, request.id)
        summary = self._order_read(
            request,
            {request.id: len(offers)},
            {request.id: sum(1 for o in offers if o.status == "active")},
            self._supplier_names(session, [request]),
        )
        return AdminOrderDetail(
            **summary.model_dump(),
            offers=[OfferRead.model_validate(o) for o in offers],
        )

    def cancel_order(
        self,
        session: Session,
        request_id: uuid.UUID,
        reason: str,
        admin: Profile,
    ) -> AdminOrderDetail:
        """
        Admin cancellation; allowed from pending and accepted.

        Active and accepted offers become cancelled. The consumer and any
        supplier holding one of those offers are notified.
        """
        request = self._get_order(session, request_id)
        if request.status == "cancelled":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Este pedido ya esta cancelado",
            )
        if request.status == "delivered":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No se puede cancelar un pedido entregado",
            )

        previous = request.status
        changed = self.request_repo.transition(
            session,
            request.id,
            previous,
            {
                "status": "cancelled",
                "cancelled_at": utcnow(),
                "cancellation_reason": reason,
                "cancelled_by": admin.id,
            },
        )
        if not changed:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="El pedido cambió de estado. Actualiza e intenta de nuevo.",
            )
        cancelled_offers = self.offer_repo.transition_for_request(
            session, request.id, ("active", "accepted"), "cancelled"
        )
        session.commit()
        session.refresh(request)
        logger.info(
            "Order %s cancelled by admin %s (was %s): %s",
            request.id,
            admin.id,
            previous,
            reason,
        )

        liters = format_liters(request.amount)
        notices = [
            Notice(
                user_id=offer.provider_id,
                type="request_cancelled",
                title="Solicitud cancelada",
                message=f"La solicitud de {liters} en {comuna_name(request.comuna_id)} fue cancelada por administración",
                data={"request_id": request.id, "offer_id": offer.id},
                url="/provider/offers",
                tag=f"request-cancelled-{request.id}",
            )
            for offer in cancelled_offers
        ]
        if request.consumer_id:
            notices.append(
                Notice(
                    user_id=request.consumer_id,
                    type="request_cancelled",
                    title="Solicitud cancelada",
                    message=f"Tu solicitud de {liters} fue cancelada. Motivo: {reason}",
                    data={"request_id": request.id},
                    url=f"/request/{request.id}",
                    tag=f"request-cancelled-{request.id}",
                )
            )
        self.notifications.notify_many(session, notices)
        if request.guest_email:
            self.emails.send_request_email("cancelled", request)

        return self.get_order(session, request.id)

    def _get_order(self, session: Session, request_id: uuid.UUID) -> WaterRequest:
        request = self.request_repo.get_by_id(session, request_id)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Pedido no encontrado",
            )
        return request

    # -------- Allowed admin emails --------

    def list_allowed_emails(self, session: Session) -> list[AdminAllowedEmail]:
        return self.settings_repo.list_allowed_emails(session)

    def add_allowed_email(
        self,
        session: Session,
        payload: AllowedEmailCreate,
        admin: Profile,
    ) -> AdminAllowedEmail:
        email = str(payload.email).strip().lower()
        if self.settings_repo.get_allowed_email(session, email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Este email ya tiene acceso de administrador",
            )
        try:
            row = self.settings_repo.add_allowed_email(
                session,
                AdminAllowedEmail(email=email, notes=payload.notes, added_by=admin.id),
            )
        except IntegrityError:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Este email ya tiene acceso de administrador",
            )
        logger.info("Admin email %s added by %s", email, admin.id)
        return row

    def remove_allowed_email(self, session: Session, email: str, admin: Profile) -> None:
        email = email.strip().lower()
        if email == admin.email.lower():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No puedes quitar tu propio acceso",
            )
        row = self.settings_repo.get_allowed_email(session, email)
        if not row:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Email no encontrado",
            )
        self.settings_repo.delete_allowed_email(session, row)
        logger.info("Admin email %s removed by %s", email, admin.id)

    # -------- Metrics --------

    def get_metrics(self, session: Session, period: str = "week") -> MetricsRead:
        since = period_start(period)

        requests_by_status = self.request_repo.count_by_status(session, since)
        offers_by_status = self.offer_repo.count_by_status(session, since)
        requests_total = sum(requests_by_status.values())
        offers_total = sum(offers_by_status.values())
        # Delivered requests went through accepted
        converted = requests_by_status.get("accepted", 0) + requests_by_status.get("delivered", 0)

        ledger = self.commission_repo.totals(session, since)

        return MetricsRead(
            period=period,
            since=since,
            requests_total=requests_total,
            requests_by_status=requests_by_status,
            offers_total=offers_total,
            offers_by_status=offers_by_status,
            conversion_rate=round(converted / requests_total * 100, 1) if requests_total else 0.0,
            avg_offers_per_request=round(offers_total / requests_total, 1) if requests_total else 0.0,
            commission_owed=ledger.get("commission_owed", 0),
            commission_paid=ledger.get("commission_paid", 0),
            active_providers=self.profile_repo.count_active_providers(session),
            pending_verifications=self.profile_repo.count_providers(session, QUEUE_STATUSES),
            open_disputes=self.dispute_repo.count_open(session),
        )

# app/services/dispute_service.py
import logging
import uuid
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.clock import ensure_utc, utcnow
from app.models.dispute import Dispute
from app.models.profile import Profile
from app.models.water_request import WaterRequest
from app.repositories.dispute_repo import DisputeRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.request_repo import WaterRequestRepository
from app.schemas.dispute import (
    DISPUTE_TYPE_LABELS,
    DisputeCreate,
    DisputeEligibility,
    DisputeResolve,
)
from app.services.notification_service import Notice, NotificationService
from app.services.request_service import is_request_owner
from app.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

RESOLVABLE_STATUSES = ("open", "under_review")


class DisputeService:
    """
    Consumer disputes about delivered requests and their admin resolution.

    Flow:
      consumer files (open) -> admin reviews (under_review, optional)
        -> admin resolves (resolved_consumer | resolved_provider)
    """

    def __init__(
        self,
        dispute_repo: DisputeRepository,
        request_repo: WaterRequestRepository,
        profile_repo: ProfileRepository,
        settings_service: SettingsService,
        notifications: NotificationService,
    ):
        self.dispute_repo = dispute_repo
        self.request_repo = request_repo
        self.profile_repo = profile_repo
        self.settings_service = settings_service
        self.notifications = notifications

    # -------- Consumer side --------

    def can_file_dispute(
        self,
        session: Session,
        request_id: uuid.UUID,
        consumer: Profile,
    ) -> DisputeEligibility:
        """
        Eligibility gate shared by the eligibility endpoint and create_dispute.

        A dispute may be filed by the request's consumer, once, within
        dispute_window_hours of delivery.
        """
        request = self._get_owned_request(session, request_id, consumer)
        return self._eligibility(session, request)

    def create_dispute(
        self,
        session: Session,
        payload: DisputeCreate,
        consumer: Profile,
    ) -> Dispute:
        """
        File a dispute.

        Raises:
            HTTPException(403): caller does not own the request.
            HTTPException(400): request not delivered / window closed /
                                no supplier assigned.
            HTTPException(409): a dispute already exists.
        """
        request = self._get_owned_request(session, payload.request_id, consumer)
        eligibility = self._eligibility(session, request)
        if not eligibility.can_file:
            code = (
                status.HTTP_409_CONFLICT
                if eligibility.existing_dispute_id
                else status.HTTP_400_BAD_REQUEST
            )
            raise HTTPException(status_code=code, detail=eligibility.reason)

        if not request.supplier_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La solicitud no tiene un proveedor asignado",
            )

        dispute = Dispute(
            request_id=request.id,
            consumer_id=consumer.id,
            provider_id=request.supplier_id,
            dispute_type=payload.dispute_type,
            description=payload.description,
            status="open",
        )
        try:
            dispute = self.dispute_repo.create(session, dispute)
        except IntegrityError:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe una disputa para esta solicitud",
            )

        logger.info(
            "Dispute %s filed on request %s (%s)",
            dispute.id,
            request.id,
            dispute.dispute_type,
        )
        self._notify_admins(session, dispute)
        return dispute

    def get_dispute_for_request(
        self,
        session: Session,
        request_id: uuid.UUID,
        user: Profile,
    ) -> Dispute | None:
        """Dispute on a request, visible to its consumer and its supplier."""
        request = self.request_repo.get_by_id(session, request_id)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud no encontrada",
            )
        if request.consumer_id != user.id and request.supplier_id != user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes permiso para ver esta disputa",
            )
        return self.dispute_repo.get_by_request(session, request_id)

    # -------- Admin side --------

    def list_disputes(
        self,
        session: Session,
        status_filter: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Dispute]:
        return self.dispute_repo.list(session, status_filter, skip, limit)

    def get_dispute(self, session: Session, dispute_id: uuid.UUID) -> Dispute:
        dispute = self.dispute_repo.get_by_id(session, dispute_id)
        if not dispute:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Disputa no encontrada",
            )
        return dispute

    def mark_under_review(self, session: Session, dispute_id: uuid.UUID) -> Dispute:
        dispute = self.get_dispute(session, dispute_id)
        if dispute.status != "open":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Solo disputas abiertas pueden pasar a revisión",
            )
        dispute.status = "under_review"
        dispute.updated_at = utcnow()
        return self.dispute_repo.update(session, dispute)

    def resolve_dispute(
        self,
        session: Session,
        dispute_id: uuid.UUID,
        payload: DisputeResolve,
        admin: Profile,
    ) -> Dispute:
        """
        Close a dispute in favour of one party and notify both.

        Raises:
            HTTPException(404): dispute not found.
            HTTPException(409): dispute already resolved.
        """
        dispute = self.get_dispute(session, dispute_id)
        if dispute.status not in RESOLVABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Esta disputa ya fue resuelta",
            )

        now = utcnow()
        dispute.status = payload.resolution
        dispute.resolution_notes = payload.notes
        dispute.resolved_by = admin.id
        dispute.resolved_at = now
        dispute.updated_at = now
        dispute = self.dispute_repo.update(session, dispute)
        logger.info(
            "Dispute %s resolved as %s by admin %s",
            dispute.id,
            dispute.status,
            admin.id,
        )

        label = DISPUTE_TYPE_LABELS.get(dispute.dispute_type, dispute.dispute_type)
        for_consumer = payload.resolution == "resolved_consumer"
        data = {
            "dispute_id": dispute.id,
            "request_id": dispute.request_id,
            "resolution": payload.resolution,
        }
        self.notifications.notify_many(
            session,
            [
                Notice(
                    user_id=dispute.consumer_id,
                    type="dispute_resolved",
                    title="Disputa Resuelta",
                    message=(
                        f'Tu disputa "{label}" fue resuelta a tu favor.'
                        if for_consumer
                        else f'Tu disputa "{label}" fue revisada. El proveedor fue exonerado.'
                    ),
                    data=data,
                    url=f"/request/{dispute.request_id}",
                    tag=f"dispute-resolved-{dispute.id}",
                ),
                Notice(
                    user_id=dispute.provider_id,
                    type="dispute_resolved",
                    title="Disputa Resuelta",
                    message=(
                        f'La disputa "{label}" fue resuelta a favor del consumidor.'
                        if for_consumer
                        else f'La disputa "{label}" fue resuelta a tu favor.'
                    ),
                    data=data,
                    url="/provider/offers",
                    tag=f"dispute-resolved-{dispute.id}",
                ),
            ],
        )
        return dispute

    # -------- Helpers --------

    def _get_owned_request(
        self,
        session: Session,
        request_id: uuid.UUID,
        consumer: Profile,
    ) -> WaterRequest:
        request = self.request_repo.get_by_id(session, request_id)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud no encontrada",
            )
        if not is_request_owner(request, consumer, None):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes permiso para disputar esta solicitud",
            )
        return request

    def _eligibility(self, session: Session, request: WaterRequest) -> DisputeEligibility:
        if request.status != "delivered":
            return DisputeEligibility(
                can_file=False,
                reason="Solo puedes disputar solicitudes entregadas",
            )

        existing = self.dispute_repo.get_by_request(session, request.id)
        if existing:
            return DisputeEligibility(
                can_file=False,
                reason="Ya existe una disputa para esta solicitud",
                existing_dispute_id=existing.id,
            )

        hours = self.settings_service.get_offer_settings(session).dispute_window_hours
        delivered_at = ensure_utc(request.delivered_at) or utcnow()
        deadline = delivered_at + timedelta(hours=hours)
        if utcnow() > deadline:
            return DisputeEligibility(
                can_file=False,
                reason=f"El plazo para disputar ha expirado ({hours} horas después de la entrega)",
                deadline=deadline,
            )
        return DisputeEligibility(can_file=True, deadline=deadline)

    def _notify_admins(self, session: Session, dispute: Dispute) -> None:
        label = DISPUTE_TYPE_LABELS.get(dispute.dispute_type, dispute.dispute_type)
        short = str(dispute.request_id)[:8]
        self.notifications.notify_many(
            session,
            [
                Notice(
                    user_id=admin_id,
                    type="dispute_created",
                    title="Nueva Disputa Reportada",
                    message=f'Disputa "{label}" para pedido #{short}. Requiere revisión.',
                    data={"dispute_id": dispute.id, "request_id": dispute.request_id},
                    url=f"/admin/disputes/{dispute.id}",
                    tag=f"dispute-created-{dispute.id}",
                )
                for admin_id in self.profile_repo.list_admin_ids(session)
            ],
        )

# app/services/delivery_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.clock import utcnow
from app.models.commission import CommissionLedgerEntry
from app.models.profile import Profile
from app.repositories.commission_repo import CommissionRepository
from app.repositories.offer_repo import OfferRepository
from app.repositories.request_repo import WaterRequestRepository
from app.schemas.offer import DeliveryCompleteResult
from app.services.email_service import EmailService
from app.services.notification_service import Notice, NotificationService
from app.services.settings_service import SettingsService
from app.utils.commission import calculate_commission

logger = logging.getLogger(__name__)


class DeliveryService:
    """
    Delivery completion.

    The supplier marks its accepted offer as delivered; the request moves to
    delivered, the offer to completed, and the platform commission is
    appended to the ledger in the same transaction.
    """

    def __init__(
        self,
        offer_repo: OfferRepository,
        request_repo: WaterRequestRepository,
        commission_repo: CommissionRepository,
        settings_service: SettingsService,
        notifications: NotificationService,
        emails: EmailService,
    ):
        self.offer_repo = offer_repo
        self.request_repo = request_repo
        self.commission_repo = commission_repo
        self.settings_service = settings_service
        self.notifications = notifications
        self.emails = emails

    def complete_delivery(
        self,
        session: Session,
        offer_id: uuid.UUID,
        provider: Profile,
    ) -> DeliveryCompleteResult:
        """
        Mark a delivery as completed.

        Steps:
          1. Only the offer's own provider may complete it.
          2. Offer must be accepted; request must be accepted.
          3. Guarded: request accepted -> delivered (delivered_at).
          4. Guarded: offer accepted -> completed.
          5. Ledger: commission_owed = round(price * percent / 100), where
             percent is the provider override or the platform default.
          6. Commit, then notify the consumer (in-app + push, or guest email).

        Raises:
            HTTPException(404): offer / request not found.
            HTTPException(403): caller is not the offer's provider.
            HTTPException(409): offer or request not in accepted state.
        """
        offer = self.offer_repo.get_by_id(session, offer_id)
        if not offer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Oferta no encontrada",
            )
        if offer.provider_id != provider.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No autorizado",
            )
        if offer.status != "accepted":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=(
                    "Esta entrega ya fue completada"
                    if offer.status == "completed"
                    else "La oferta no está aceptada"
                ),
            )

        request = self.request_repo.get_by_id(session, offer.request_id)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud no encontrada",
            )
        if request.status != "accepted":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=(
                    "Esta solicitud ya fue marcada como entregada"
                    if request.status == "delivered"
                    else "La solicitud no está en estado aceptado"
                ),
            )

        now = utcnow()
        request_ok = self.request_repo.transition(
            session, request.id, "accepted", {"status": "delivered", "delivered_at": now}
        )
        offer_ok = request_ok and self.offer_repo.transition(
            session, offer.id, "accepted", {"status": "completed"}
        )
        if not offer_ok:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Esta entrega ya fue completada",
            )

        percent = self.settings_service.commission_percent_for(session, provider)
        commission = calculate_commission(offer.price, percent)
        self.commission_repo.add_entry(
            session,
            CommissionLedgerEntry(
                provider_id=provider.id,
                request_id=request.id,
                type="commission_owed",
                amount=commission,
                description=(
                    f"Comisión por entrega de {request.amount}L - "
                    f"Solicitud #{str(request.id)[:8]}"
                ),
            ),
        )
        session.commit()
        session.refresh(request)
        logger.info(
            "Delivery completed: offer=%s request=%s provider=%s commission=%s (%s%%)",
            offer.id,
            request.id,
            provider.id,
            commission,
            percent,
        )

        if request.consumer_id:
            self.notifications.notify(
                session,
                Notice(
                    user_id=request.consumer_id,
                    type="delivery_completed",
                    title="¡Entrega completada!",
                    message=f"Tu pedido de {request.amount:,} litros ha sido entregado".replace(",", "."),
                    data={"request_id": request.id, "offer_id": offer.id},
                    url=f"/request/{request.id}",
                    tag=f"delivery-completed-{request.id}",
                ),
            )
        elif request.guest_email:
            self.emails.send_request_email("delivered", request)

        return DeliveryCompleteResult(
            offer_id=offer_id,
            request_id=request.id,
            delivered_at=request.delivered_at,
            commission_amount=commission,
            commission_percent=percent,
        )

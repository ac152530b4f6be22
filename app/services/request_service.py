# app/services/request_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.clock import utcnow
from app.core.constants import comuna_name
from app.models.profile import Profile
from app.models.water_request import WaterRequest
from app.repositories.offer_repo import OfferRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.request_repo import WaterRequestRepository
from app.schemas.water_request import (
    AcceptedOfferSummary,
    RequestCancel,
    TimelineStep,
    TrackingRead,
    WaterRequestCreate,
    WaterRequestCreated,
)
from app.services.email_service import EmailService
from app.services.notification_service import Notice, NotificationService
from app.utils.formatting import format_liters

logger = logging.getLogger(__name__)

# Request states a consumer may still cancel from
CANCELLABLE_STATUSES = ("pending", "accepted")

TIMELINE_LABELS = {
    "created": "Solicitud creada",
    "accepted": "Repartidor asignado",
    "delivered": "Entregada",
    "cancelled": "Cancelada",
    "no_offers": "Sin ofertas",
}


def build_timeline(request: WaterRequest) -> list[TimelineStep]:
    """
    Ordered status steps for the tracking page.

    The happy path is created -> accepted -> delivered; a terminal
    cancelled / no_offers step replaces whatever was not reached.
    """
    steps = [
        TimelineStep(
            step="created",
            label=TIMELINE_LABELS["created"],
            at=request.created_at,
            completed=True,
        )
    ]

    if request.status in ("cancelled", "no_offers"):
        if request.accepted_at:
            steps.append(
                TimelineStep(
                    step="accepted",
                    label=TIMELINE_LABELS["accepted"],
                    at=request.accepted_at,
                    completed=True,
                )
            )
        at = request.cancelled_at if request.status == "cancelled" else request.timed_out_at
        steps.append(
            TimelineStep(
                step=request.status,
                label=TIMELINE_LABELS[request.status],
                at=at,
                completed=True,
            )
        )
        return steps

    steps.append(
        TimelineStep(
            step="accepted",
            label=TIMELINE_LABELS["accepted"],
            at=request.accepted_at,
            completed=request.accepted_at is not None,
        )
    )
    steps.append(
        TimelineStep(
            step="delivered",
            label=TIMELINE_LABELS["delivered"],
            at=request.delivered_at,
            completed=request.delivered_at is not None,
        )
    )
    return steps


def is_request_owner(request: WaterRequest, user: Profile | None, token: str | None) -> bool:
    """Registered owner by consumer_id, guest owner by tracking token."""
    if user is not None and request.consumer_id is not None and request.consumer_id == user.id:
        return True
    return bool(token) and token == request.tracking_token


class RequestService:
    """
    Consumer side of water requests.

    Responsibilities:
      - create requests for guests and registered consumers
      - resolve request ownership (consumer_id or guest tracking token)
      - guest tracking read model and timeline
      - consumer cancellation
    """

    def __init__(
        self,
        request_repo: WaterRequestRepository,
        offer_repo: OfferRepository,
        profile_repo: ProfileRepository,
        notifications: NotificationService,
        emails: EmailService,
    ):
        self.request_repo = request_repo
        self.offer_repo = offer_repo
        self.profile_repo = profile_repo
        self.notifications = notifications
        self.emails = emails

    # -------- Consumer operations --------

    def create_request(
        self,
        session: Session,
        payload: WaterRequestCreate,
        user: Profile | None,
    ) -> WaterRequestCreated:
        """
        Create a pending water request.

        Steps:
          1. Map the validated payload onto a WaterRequest row.
          2. Attach consumer_id when the caller is logged in.
          3. Commit; tracking_token is generated by the model.
          4. Guests with an email get a confirmation email.
        """
        request = WaterRequest(
            consumer_id=user.id if user else None,
            guest_name=payload.name,
            guest_phone=payload.phone,
            guest_email=str(payload.email) if payload.email else None,
            comuna_id=payload.comuna_id,
            address=payload.address,
            special_instructions=payload.special_instructions,
            latitude=payload.latitude,
            longitude=payload.longitude,
            amount=payload.amount,
            is_urgent=payload.is_urgent,
            payment_method=payload.payment_method,
            status="pending",
        )
        request = self.request_repo.create(session, request)
        logger.info(
            "Water request %s created (%sL, comuna=%s, guest=%s)",
            request.id,
            request.amount,
            request.comuna_id,
            user is None,
        )

        if user is None and request.guest_email:
            self.emails.send_request_email("confirmed", request)

        return WaterRequestCreated(
            id=request.id,
            tracking_token=request.tracking_token,
            status=request.status,
            created_at=request.created_at,
        )

    def list_my_requests(
        self,
        session: Session,
        user: Profile,
        skip: int = 0,
        limit: int = 50,
    ) -> list[WaterRequest]:
        return self.request_repo.list_for_consumer(session, user.id, skip, limit)

    def get_request(
        self,
        session: Session,
        request_id: uuid.UUID,
        user: Profile | None,
        token: str | None = None,
        is_admin: bool = False,
    ) -> WaterRequest:
        """
        Visible to:
          - its consumer (consumer_id or tracking token)
          - its assigned supplier
          - approved suppliers while the request is still pending
          - admins

        Anything else is a 404 so request ids cannot be probed.
        """
        request = self.request_repo.get_by_id(session, request_id)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud no encontrada",
            )
        if is_admin or is_request_owner(request, user, token):
            return request
        if user is not None and user.role == "supplier":
            if request.supplier_id == user.id:
                return request
            if request.status == "pending" and user.verification_status == "approved":
                return request
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Solicitud no encontrada",
        )

    def get_owned_request(
        self,
        session: Session,
        request_id: uuid.UUID,
        user: Profile | None,
        token: str | None,
    ) -> WaterRequest:
        """
        Load a request the caller owns.

        Raises:
            HTTPException(404): request missing.
            HTTPException(403): caller is neither its consumer nor holds its token.
        """
        request = self.request_repo.get_by_id(session, request_id)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud no encontrada",
            )
        if not is_request_owner(request, user, token):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes permiso para ver esta solicitud",
            )
        return request

    def track_request(self, session: Session, tracking_token: str) -> TrackingRead:
        """Guest tracking page model, reached with the tracking token alone."""
        request = self.request_repo.get_by_tracking_token(session, tracking_token)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud no encontrada",
            )

        active_counts = self.offer_repo.count_active_by_request(session, [request.id])

        accepted_offer = None
        if request.status in ("accepted", "delivered") and request.supplier_id:
            offers = self.offer_repo.list_for_request(
                session, request.id, statuses=("accepted", "completed")
            )
            provider = self.profile_repo.get_by_id(session, request.supplier_id)
            if offers and provider:
                offer = offers[0]
                accepted_offer = AcceptedOfferSummary(
                    offer_id=offer.id,
                    provider_name=provider.name,
                    provider_phone=provider.phone,
                    price=offer.price,
                    delivery_window_start=offer.delivery_window_start,
                    delivery_window_end=offer.delivery_window_end,
                )

        return TrackingRead(
            id=request.id,
            status=request.status,
            amount=request.amount,
            is_urgent=request.is_urgent,
            address=request.address,
            comuna_id=request.comuna_id,
            created_at=request.created_at,
            active_offer_count=active_counts.get(request.id, 0),
            accepted_offer=accepted_offer,
            timeline=build_timeline(request),
        )

    def cancel_request(
        self,
        session: Session,
        request_id: uuid.UUID,
        user: Profile | None,
        token: str | None,
        payload: RequestCancel,
    ) -> WaterRequest:
        """
        Consumer cancellation.

        Allowed from:
          pending  -> cancelled (open offers become cancelled)
          accepted -> cancelled (the accepted offer becomes cancelled,
                                 the assigned supplier is notified)

        Raises:
            HTTPException(409): request already delivered / cancelled / timed out,
                                or changed concurrently.
        """
        request = self.get_owned_request(session, request_id, user, token)
        current = request.status

        if current not in CANCELLABLE_STATUSES:
            detail = {
                "delivered": "No se puede cancelar una solicitud entregada",
                "cancelled": "Esta solicitud ya fue cancelada",
                "no_offers": "Esta solicitud ya expiró sin ofertas",
            }.get(current, "No se puede cancelar esta solicitud")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

        now = utcnow()
        changed = self.request_repo.transition(
            session,
            request.id,
            current,
            {
                "status": "cancelled",
                "cancelled_at": now,
                "cancellation_reason": payload.reason,
                "cancelled_by": user.id if user else None,
            },
        )
        if not changed:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La solicitud cambió de estado. Actualiza e intenta de nuevo.",
            )

        cancelled_offers = self.offer_repo.transition_for_request(
            session, request.id, ("active", "accepted"), "cancelled"
        )
        session.commit()
        session.refresh(request)
        logger.info(
            "Request %s cancelled by consumer (was %s, %d offer(s) cancelled)",
            request.id,
            current,
            len(cancelled_offers),
        )

        self._notify_cancellation(session, request, cancelled_offers)
        return request

    # -------- Helpers --------

    def _notify_cancellation(self, session, request, cancelled_offers) -> None:
        liters = format_liters(request.amount)
        notices = []
        for offer in cancelled_offers:
            assigned = offer.provider_id == request.supplier_id
            notices.append(
                Notice(
                    user_id=offer.provider_id,
                    type="request_cancelled",
                    title="Solicitud cancelada",
                    message=(
                        f"El cliente canceló la entrega de {liters} en {comuna_name(request.comuna_id)}"
                        if assigned
                        else f"La solicitud de {liters} fue cancelada por el cliente"
                    ),
                    data={"request_id": request.id, "offer_id": offer.id},
                    url="/provider/offers",
                    tag=f"request-cancelled-{request.id}",
                )
            )
        self.notifications.notify_many(session, notices)

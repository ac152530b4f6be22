# app/services/offer_service.py
import logging
import uuid
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.clock import ensure_utc, utcnow
from app.core.constants import comuna_name
from app.models.offer import Offer
from app.models.profile import Profile
from app.models.water_request import WaterRequest
from app.repositories.dispute_repo import DisputeRepository
from app.repositories.offer_repo import OfferRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.request_repo import WaterRequestRepository
from app.schemas.offer import (
    AvailableRequest,
    AvailableRequestsRead,
    ConsumerOfferRead,
    DisputeSummary,
    MyOffersRead,
    OfferCreate,
    OfferPreview,
    OfferSelectResult,
    ProviderOfferRead,
    ProviderStatus,
    RequestDetailRead,
    RequestSummary,
)
from app.services.email_service import EmailService
from app.services.notification_service import Notice, NotificationService
from app.services.request_service import RequestService, is_request_owner
from app.services.settings_service import SettingsService
from app.utils.commission import (
    calculate_commission,
    calculate_earnings,
    earnings_preview,
    format_clp,
)
from app.utils.countdown import (
    format_countdown,
    is_critical_state,
    is_warning_state,
    time_remaining_ms,
)
from app.utils.formatting import format_liters

logger = logging.getLogger(__name__)

HISTORY_STATUSES = ("expired", "cancelled", "request_filled")


class OfferService:
    """
    The offer lifecycle.

    Supplier side:
      - browse pending requests in their service areas
      - price preview, create offer, withdraw offer, list own offers

    Consumer side:
      - list active offers with countdowns (polling endpoint)
      - select one offer: the request is accepted, the offer accepted,
        every other active offer becomes request_filled

    State transitions are guarded updates (WHERE status = <expected>);
    a guard that matches no row rolls the whole transition back with 409.
    """

    def __init__(
        self,
        offer_repo: OfferRepository,
        request_repo: WaterRequestRepository,
        profile_repo: ProfileRepository,
        dispute_repo: DisputeRepository,
        settings_service: SettingsService,
        request_service: RequestService,
        notifications: NotificationService,
        emails: EmailService,
    ):
        self.offer_repo = offer_repo
        self.request_repo = request_repo
        self.profile_repo = profile_repo
        self.dispute_repo = dispute_repo
        self.settings_service = settings_service
        self.request_service = request_service
        self.notifications = notifications
        self.emails = emails

    # -------- Supplier: browsing --------

    def get_available_requests(
        self,
        session: Session,
        provider: Profile,
    ) -> AvailableRequestsRead:
        """
        Pending requests a supplier can bid on.

        Steps:
          1. Compute provider status (verified / available / has areas).
          2. If any is false, return an empty list with the status so the
             client can explain why.
          3. Load pending requests in the provider's comunas, urgent first
             then newest first.
          4. Attach active offer counts and whether the provider already bid.
        """
        areas = self.profile_repo.list_service_areas(session, provider.id)
        provider_status = ProviderStatus(
            is_verified=provider.verification_status == "approved",
            is_available=provider.is_available,
            has_service_areas=bool(areas),
        )
        if not (
            provider_status.is_verified
            and provider_status.is_available
            and provider_status.has_service_areas
        ):
            return AvailableRequestsRead(provider_status=provider_status, requests=[])

        requests = self.request_repo.list_pending_in_comunas(session, areas)
        ids = [r.id for r in requests]
        counts = self.offer_repo.count_active_by_request(session, ids)
        mine = self.offer_repo.request_ids_with_offer_from(session, provider.id, ids)

        return AvailableRequestsRead(
            provider_status=provider_status,
            requests=[
                AvailableRequest(
                    id=r.id,
                    comuna_id=r.comuna_id,
                    comuna_name=comuna_name(r.comuna_id),
                    address=r.address,
                    amount=r.amount,
                    is_urgent=r.is_urgent,
                    payment_method=r.payment_method,
                    created_at=r.created_at,
                    offer_count=counts.get(r.id, 0),
                    has_my_offer=r.id in mine,
                )
                for r in requests
            ],
        )

    def get_request_detail(
        self,
        session: Session,
        request_id: uuid.UUID,
        provider: Profile,
    ) -> RequestDetailRead:
        """
        A pending request as seen by a supplier before bidding.

        Raises:
            HTTPException(404): request not found.
            HTTPException(409): request is no longer pending.
        """
        request = self._get_request_or_404(session, request_id)
        if request.status != "pending":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Esta solicitud ya no está disponible",
            )

        counts = self.offer_repo.count_active_by_request(session, [request.id])
        existing = self.offer_repo.get_for_provider(session, request.id, provider.id)
        has_active = existing is not None and existing.status == "active"

        return RequestDetailRead(
            id=request.id,
            status=request.status,
            comuna_id=request.comuna_id,
            comuna_name=comuna_name(request.comuna_id),
            address=request.address,
            special_instructions=request.special_instructions,
            latitude=request.latitude,
            longitude=request.longitude,
            amount=request.amount,
            is_urgent=request.is_urgent,
            payment_method=request.payment_method,
            created_at=request.created_at,
            offer_count=counts.get(request.id, 0),
            provider_has_offer=has_active,
            existing_offer_id=existing.id if has_active else None,
            suggested_price=self.settings_service.price_for(
                session, request.amount, request.is_urgent
            ),
        )

    def get_offer_preview(
        self,
        session: Session,
        amount: int,
        is_urgent: bool,
        provider: Profile,
    ) -> OfferPreview:
        """Price, commission and earnings a supplier would get for a request size."""
        price = self.settings_service.price_for(session, amount, is_urgent)
        percent = self.settings_service.commission_percent_for(session, provider)
        timing = self.settings_service.get_offer_settings(session)
        return OfferPreview(
            amount=amount,
            is_urgent=is_urgent,
            price=price,
            commission_percent=percent,
            commission=calculate_commission(price, percent),
            earnings=calculate_earnings(price, percent),
            validity_minutes=timing.offer_validity_default,
            validity_min=timing.offer_validity_min,
            validity_max=timing.offer_validity_max,
            message=earnings_preview(price, percent),
        )

    # -------- Supplier: offers --------

    def create_offer(
        self,
        session: Session,
        request_id: uuid.UUID,
        payload: OfferCreate,
        provider: Profile,
    ) -> Offer:
        """
        Submit an offer on a pending request.

        Steps:
          1. Supplier must be approved and available.
          2. Delivery window: start in the future, end after start.
          3. Request must exist and be pending.
          4. Validity: payload minutes within admin bounds, else the default.
          5. Price from platform pricing (amount tier + urgency).
          6. Insert; a second bid on the same request is a 409.
          7. Notify a registered consumer (in-app + push).
        """
        if provider.verification_status != "approved":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Tu cuenta debe estar verificada para enviar ofertas",
            )
        if not provider.is_available:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debes estar disponible para enviar ofertas",
            )

        now = utcnow()
        start = ensure_utc(payload.delivery_window_start)
        end = ensure_utc(payload.delivery_window_end)
        if start <= now:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La hora de inicio debe ser en el futuro",
            )
        if end <= start:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La hora de fin debe ser después de la hora de inicio",
            )

        request = self._get_request_or_404(session, request_id)
        if request.status != "pending":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Esta solicitud ya no está disponible",
            )

        timing = self.settings_service.get_offer_settings(session)
        validity = payload.validity_minutes or timing.offer_validity_default
        if not timing.offer_validity_min <= validity <= timing.offer_validity_max:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"La validez debe estar entre {timing.offer_validity_min} "
                    f"y {timing.offer_validity_max} minutos"
                ),
            )

        if self.offer_repo.get_for_provider(session, request.id, provider.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya enviaste una oferta para esta solicitud",
            )

        offer = Offer(
            request_id=request.id,
            provider_id=provider.id,
            price=self.settings_service.price_for(session, request.amount, request.is_urgent),
            delivery_window_start=start,
            delivery_window_end=end,
            message=payload.message,
            status="active",
            expires_at=now + timedelta(minutes=validity),
        )
        try:
            offer = self.offer_repo.create(session, offer)
            session.commit()
        except IntegrityError:
            # Lost a race with our own concurrent submission
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya enviaste una oferta para esta solicitud",
            )
        session.refresh(offer)
        logger.info(
            "Offer %s created by %s on request %s (price=%s, expires=%s)",
            offer.id,
            provider.id,
            request.id,
            offer.price,
            offer.expires_at,
        )

        if request.consumer_id:
            self.notifications.notify(
                session,
                Notice(
                    user_id=request.consumer_id,
                    type="new_offer",
                    title="Nueva oferta recibida",
                    message=(
                        f"{provider.name} ofreció entregar {format_liters(request.amount)} "
                        f"por {format_clp(offer.price)}"
                    ),
                    data={"request_id": request.id, "offer_id": offer.id},
                    url=f"/request/{request.id}/offers",
                    tag=f"new-offer-{request.id}",
                ),
            )
        return offer

    def get_my_offers(self, session: Session, provider: Profile) -> MyOffersRead:
        """
        The supplier's offers grouped for the "Mis ofertas" screen.

          pending   : active
          accepted  : accepted (delivery in progress)
          completed : completed
          history   : expired | cancelled | request_filled
        """
        offers = self.offer_repo.list_for_provider(session, provider.id)
        request_ids = list({o.request_id for o in offers})
        requests = {
            rid: self.request_repo.get_by_id(session, rid) for rid in request_ids
        }
        disputes = self.dispute_repo.get_by_requests(session, request_ids)
        now = utcnow()

        grouped = MyOffersRead(pending=[], accepted=[], completed=[], history=[])
        for offer in offers:
            request = requests.get(offer.request_id)
            dispute = disputes.get(offer.request_id)
            # Contact details only once the supplier owns the delivery
            reveal_contact = offer.status in ("accepted", "completed")
            ms = time_remaining_ms(offer.expires_at, now) if offer.status == "active" else 0
            item = ProviderOfferRead(
                **offer.model_dump(),
                request=(
                    RequestSummary(
                        id=request.id,
                        status=request.status,
                        amount=request.amount,
                        is_urgent=request.is_urgent,
                        address=request.address,
                        comuna_id=request.comuna_id,
                        guest_name=request.guest_name if reveal_contact else None,
                        guest_phone=request.guest_phone if reveal_contact else None,
                        delivered_at=request.delivered_at,
                    )
                    if request
                    else None
                ),
                dispute=(
                    DisputeSummary(
                        id=dispute.id,
                        status=dispute.status,
                        dispute_type=dispute.dispute_type,
                    )
                    if dispute and offer.status == "completed"
                    else None
                ),
                seconds_remaining=ms // 1000,
                countdown=format_countdown(ms),
            )
            if offer.status == "active":
                grouped.pending.append(item)
            elif offer.status == "accepted":
                grouped.accepted.append(item)
            elif offer.status == "completed":
                grouped.completed.append(item)
            elif offer.status in HISTORY_STATUSES:
                grouped.history.append(item)
        return grouped

    def withdraw_offer(
        self,
        session: Session,
        offer_id: uuid.UUID,
        provider: Profile,
    ) -> Offer:
        """
        Supplier withdraws one of their own active offers.

        Raises:
            HTTPException(404): offer not found.
            HTTPException(403): offer belongs to another supplier.
            HTTPException(409): offer is not active.
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
                detail="No tienes permiso para cancelar esta oferta",
            )
        if offer.status != "active":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Solo puedes cancelar ofertas pendientes",
            )

        if not self.offer_repo.transition(session, offer.id, "active", {"status": "cancelled"}):
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Solo puedes cancelar ofertas pendientes",
            )
        session.commit()
        session.refresh(offer)
        logger.info("Offer %s withdrawn by provider %s", offer.id, provider.id)
        return offer

    # -------- Consumer: choosing --------

    def list_request_offers(
        self,
        session: Session,
        request_id: uuid.UUID,
        user: Profile | None,
        token: str | None,
    ) -> list[ConsumerOfferRead]:
        """
        Active offers on the caller's request, soonest delivery first.

        This is the endpoint clients poll (every 30s) when the realtime
        channel is unavailable, so countdowns are computed server side.
        Offers already past expires_at but not yet swept by the expiry job
        are left out.
        """
        request = self.request_service.get_owned_request(session, request_id, user, token)
        now = utcnow()

        result: list[ConsumerOfferRead] = []
        for offer, provider in self.offer_repo.list_active_with_provider(session, request.id):
            ms = time_remaining_ms(offer.expires_at, now)
            if ms <= 0:
                continue
            result.append(
                ConsumerOfferRead(
                    id=offer.id,
                    provider_id=provider.id,
                    provider_name=provider.name,
                    provider_rating=provider.average_rating,
                    provider_rating_count=provider.rating_count,
                    price=offer.price,
                    delivery_window_start=offer.delivery_window_start,
                    delivery_window_end=offer.delivery_window_end,
                    message=offer.message,
                    status=offer.status,
                    expires_at=offer.expires_at,
                    seconds_remaining=ms // 1000,
                    countdown=format_countdown(ms),
                    is_warning=is_warning_state(ms),
                    is_critical=is_critical_state(ms),
                )
            )
        return result

    def select_offer(
        self,
        session: Session,
        offer_id: uuid.UUID,
        user: Profile | None,
        token: str | None,
    ) -> OfferSelectResult:
        """
        Consumer accepts one offer.

        Steps (single transaction):
          1. Caller must own the request (consumer_id or tracking token).
          2. Offer must be active and not past expires_at.
          3. Guarded: offer active -> accepted (accepted_at).
          4. Guarded: request pending -> accepted (supplier_id, accepted_at,
             delivery_window).
          5. Every other active offer on the request -> request_filled.
          6. Commit. If a guard in 3/4 matched nothing, roll back and 409.

        After commit (log and continue):
          - winner: offer_accepted in-app + push + email
          - losers: offer_request_filled in-app
          - guest consumer: "accepted" email
        """
        offer = self.offer_repo.get_by_id(session, offer_id)
        if not offer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Oferta no encontrada",
            )

        request = self.request_repo.get_by_id(session, offer.request_id)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud no encontrada",
            )
        if not is_request_owner(request, user, token):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes permiso para seleccionar ofertas en esta solicitud",
            )

        now = utcnow()
        if offer.status != "active":
            detail = {
                "accepted": "Esta oferta ya fue aceptada",
                "expired": "Esta oferta ha expirado",
            }.get(offer.status, "Esta oferta ya no está disponible")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
        if ensure_utc(offer.expires_at) <= now:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Esta oferta ha expirado",
            )
        if request.status != "pending":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Esta solicitud ya no está disponible para aceptar ofertas",
            )

        delivery_window = (
            f"{ensure_utc(offer.delivery_window_start).isoformat()} - "
            f"{ensure_utc(offer.delivery_window_end).isoformat()}"
        )

        offer_ok = self.offer_repo.transition(
            session, offer.id, "active", {"status": "accepted", "accepted_at": now}
        )
        request_ok = offer_ok and self.request_repo.transition(
            session,
            request.id,
            "pending",
            {
                "status": "accepted",
                "supplier_id": offer.provider_id,
                "accepted_at": now,
                "delivery_window": delivery_window,
            },
        )
        if not request_ok:
            session.rollback()
            logger.warning(
                "Offer %s selection lost a race on request %s", offer.id, request.id
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Error al procesar la selección. Por favor, intenta de nuevo.",
            )

        filled = self.offer_repo.transition_for_request(
            session, request.id, ("active",), "request_filled", exclude_offer_id=offer.id
        )
        session.commit()
        session.refresh(offer)
        session.refresh(request)
        logger.info(
            "Offer %s accepted for request %s (%d competing offer(s) filled)",
            offer.id,
            request.id,
            len(filled),
        )

        self._notify_selection(session, request, offer, filled)

        return OfferSelectResult(
            offer_id=offer.id,
            request_id=request.id,
            request_status=request.status,
            offer_status=offer.status,
            delivery_window=request.delivery_window,
            filled_offer_count=len(filled),
        )

    # -------- Helpers --------

    def _notify_selection(
        self,
        session: Session,
        request: WaterRequest,
        offer: Offer,
        filled: list[Offer],
    ) -> None:
        liters = f"{request.amount}L"
        comuna = comuna_name(request.comuna_id)

        self.notifications.notify(
            session,
            Notice(
                user_id=offer.provider_id,
                type="offer_accepted",
                title="¡Tu oferta fue aceptada!",
                message=f"Solicitud de {liters} en {comuna}",
                data={"request_id": request.id, "offer_id": offer.id},
                url=f"/provider/deliveries/{offer.id}",
                tag=f"offer-accepted-{offer.id}",
            ),
        )
        provider = self.profile_repo.get_by_id(session, offer.provider_id)
        if provider:
            self.emails.send_offer_accepted_email(provider, request, offer)

        self.notifications.notify_many(
            session,
            [
                Notice(
                    user_id=lost.provider_id,
                    type="offer_request_filled",
                    title="Solicitud asignada",
                    message="La solicitud ya fue asignada a otro repartidor",
                    data={"request_id": request.id, "offer_id": lost.id},
                )
                for lost in filled
            ],
            push=False,
        )

        if request.consumer_id is None and request.guest_email:
            self.emails.send_request_email("accepted", request, offer=offer)

    def _get_request_or_404(self, session: Session, request_id: uuid.UUID) -> WaterRequest:
        request = self.request_repo.get_by_id(session, request_id)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud no encontrada",
            )
        return request

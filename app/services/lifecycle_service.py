# app/services/lifecycle_service.py
import logging
import time
from datetime import datetime, timedelta

from sqlmodel import Session

from app.core.clock import utcnow
from app.core.constants import comuna_name
from app.repositories.offer_repo import OfferRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.request_repo import WaterRequestRepository
from app.schemas.jobs import ExpireOffersResult, RequestTimeoutResult
from app.services.email_service import EmailService
from app.services.notification_service import Notice, NotificationService
from app.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


class LifecycleService:
    """
    Time-driven transitions, run by the cron endpoints or the in-process loop.

      - expire_offers    : active offers past expires_at -> expired
      - timeout_requests : pending requests with no active offers after
                           request_timeout_hours -> no_offers

    Both are idempotent: every row is moved with a status guard, so two
    overlapping runs never double-notify.
    """

    def __init__(
        self,
        offer_repo: OfferRepository,
        request_repo: WaterRequestRepository,
        profile_repo: ProfileRepository,
        settings_service: SettingsService,
        notifications: NotificationService,
        emails: EmailService,
    ):
        self.offer_repo = offer_repo
        self.request_repo = request_repo
        self.profile_repo = profile_repo
        self.settings_service = settings_service
        self.notifications = notifications
        self.emails = emails

    def expire_offers(self, session: Session, now: datetime | None = None) -> ExpireOffersResult:
        """
        Expire active offers whose expires_at has passed and tell each provider.
        """
        started = time.monotonic()
        now = now or utcnow()

        candidates = self.offer_repo.list_active_expired(session, now)
        expired = [
            offer
            for offer in candidates
            if self.offer_repo.transition(session, offer.id, "active", {"status": "expired"})
        ]
        session.commit()

        if expired:
            logger.info("Expired %d offer(s)", len(expired))

        sent = self.notifications.notify_many(
            session,
            [
                Notice(
                    user_id=offer.provider_id,
                    type="offer_expired",
                    title="Tu oferta expiró",
                    message="Tu oferta no fue seleccionada a tiempo y expiró",
                    data={"offer_id": offer.id, "request_id": offer.request_id},
                    url="/provider/offers",
                    tag=f"offer-expired-{offer.id}",
                )
                for offer in expired
            ],
        )

        return ExpireOffersResult(
            expired_count=len(expired),
            notifications_sent=sent,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    def timeout_requests(
        self,
        session: Session,
        now: datetime | None = None,
    ) -> RequestTimeoutResult:
        """
        Close pending requests that waited too long without any active offer.

        Requests that still have an active offer are skipped: the offer's own
        expiry decides their fate on a later run.
        """
        started = time.monotonic()
        now = now or utcnow()
        hours = self.settings_service.get_offer_settings(session).request_timeout_hours
        threshold = now - timedelta(hours=hours)

        candidates = self.request_repo.list_pending_created_before(session, threshold)
        active_counts = self.offer_repo.count_active_by_request(
            session, [r.id for r in candidates]
        )

        skipped = 0
        timed_out = []
        for request in candidates:
            if active_counts.get(request.id, 0) > 0:
                skipped += 1
                continue
            if self.request_repo.transition(
                session,
                request.id,
                "pending",
                {"status": "no_offers", "timed_out_at": now},
            ):
                timed_out.append(request)
        session.commit()

        if timed_out:
            logger.info(
                "Timed out %d request(s) after %sh without offers (%d skipped with offers)",
                len(timed_out),
                hours,
                skipped,
            )

        sent = 0
        failed = 0
        for request in timed_out:
            delivered = False
            email = request.guest_email
            if request.consumer_id:
                delivered = self.notifications.notify(
                    session,
                    Notice(
                        user_id=request.consumer_id,
                        type="request_timeout",
                        title="Sin ofertas disponibles",
                        message=(
                            f"No recibimos ofertas para tu solicitud de {request.amount}L "
                            f"en {comuna_name(request.comuna_id)}"
                        ),
                        data={"request_id": request.id},
                        url=f"/request/{request.id}",
                        tag=f"request-timeout-{request.id}",
                    ),
                )
                if not email:
                    consumer = self.profile_repo.get_by_id(session, request.consumer_id)
                    email = consumer.email if consumer else None
            if email:
                delivered = self.emails.send_request_email("timeout", request, to_email=email) or delivered
            if delivered:
                sent += 1
            else:
                failed += 1

        return RequestTimeoutResult(
            timed_out_count=len(timed_out),
            notifications_sent=sent,
            notifications_failed=failed,
            skipped_with_offers=skipped,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

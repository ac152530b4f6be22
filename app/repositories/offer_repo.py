# app/repositories/offer_repo.py
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.offer import Offer
from app.models.profile import Profile


class OfferRepository:
    """
    Data access layer for offers.

    NOTE:
      - No commits here; selection / completion / expiry are multi-row
        transitions and the service is responsible for session.commit().
    """

    def get_by_id(self, session: Session, offer_id: uuid.UUID) -> Offer | None:
        return session.get(Offer, offer_id)

    def get_for_provider(
        self,
        session: Session,
        request_id: uuid.UUID,
        provider_id: uuid.UUID,
    ) -> Offer | None:
        stmt = (
            select(Offer)
            .where(Offer.request_id == request_id)
            .where(Offer.provider_id == provider_id)
        )
        return session.exec(stmt).first()

    def create(self, session: Session, offer: Offer) -> Offer:
        """
        Insert an Offer without committing, but ensure id is populated.
        A duplicate (request_id, provider_id) raises IntegrityError here.
        """
        session.add(offer)
        session.flush()
        session.refresh(offer)
        return offer

    def list_for_request(
        self,
        session: Session,
        request_id: uuid.UUID,
        statuses: tuple[str, ...] | None = None,
    ) -> list[Offer]:
        stmt = select(Offer).where(Offer.request_id == request_id)
        if statuses:
            stmt = stmt.where(Offer.status.in_(statuses))
        stmt = stmt.order_by(Offer.created_at)
        return session.exec(stmt).all()

    def list_active_with_provider(
        self,
        session: Session,
        request_id: uuid.UUID,
    ) -> list[tuple[Offer, Profile]]:
        """Active offers on a request, soonest delivery window first."""
        stmt = (
            select(Offer, Profile)
            .join(Profile, Profile.id == Offer.provider_id)
            .where(Offer.request_id == request_id)
            .where(Offer.status == "active")
            .order_by(Offer.delivery_window_start, Offer.created_at)
        )
        return list(session.exec(stmt).all())

    def list_for_provider(self, session: Session, provider_id: uuid.UUID) -> list[Offer]:
        stmt = (
            select(Offer)
            .where(Offer.provider_id == provider_id)
            .order_by(Offer.created_at.desc())
        )
        return session.exec(stmt).all()

    def completed_totals_for_provider(
        self,
        session: Session,
        provider_id: uuid.UUID,
    ) -> tuple[int, int]:
        """Return (completed deliveries, gross CLP) for a supplier."""
        stmt = (
            select(func.count(Offer.id), func.coalesce(func.sum(Offer.price), 0))
            .where(Offer.provider_id == provider_id)
            .where(Offer.status == "completed")
        )
        count, gross = session.exec(stmt).one()
        return int(count), int(gross)

    def count_active_by_request(
        self,
        session: Session,
        request_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, int]:
        if not request_ids:
            return {}
        stmt = (
            select(Offer.request_id, func.count())
            .where(Offer.request_id.in_(request_ids))
            .where(Offer.status == "active")
            .group_by(Offer.request_id)
        )
        return {rid: count for rid, count in session.exec(stmt).all()}

    def count_all_by_request(
        self,
        session: Session,
        request_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, int]:
        if not request_ids:
            return {}
        stmt = (
            select(Offer.request_id, func.count())
            .where(Offer.request_id.in_(request_ids))
            .group_by(Offer.request_id)
        )
        return {rid: count for rid, count in session.exec(stmt).all()}

    def request_ids_with_offer_from(
        self,
        session: Session,
        provider_id: uuid.UUID,
        request_ids: list[uuid.UUID],
    ) -> set[uuid.UUID]:
        if not request_ids:
            return set()
        stmt = (
            select(Offer.request_id)
            .where(Offer.provider_id == provider_id)
            .where(Offer.request_id.in_(request_ids))
            .where(Offer.status == "active")
        )
        return set(session.exec(stmt).all())

    def list_active_expired(self, session: Session, now: datetime) -> list[Offer]:
        stmt = (
            select(Offer)
            .where(Offer.status == "active")
            .where(Offer.expires_at < now)
        )
        return session.exec(stmt).all()

    def count_by_status(
        self,
        session: Session,
        since: datetime | None = None,
    ) -> dict[str, int]:
        stmt = select(Offer.status, func.count()).group_by(Offer.status)
        if since:
            stmt = stmt.where(Offer.created_at >= since)
        return {status: count for status, count in session.exec(stmt).all()}

    # ---- Guarded transitions ----

    def transition(
        self,
        session: Session,
        offer_id: uuid.UUID,
        expected_status: str | tuple[str, ...],
        values: dict[str, Any],
    ) -> bool:
        """
        `UPDATE offers SET ... WHERE id = :id AND status IN (:expected)`.

        Returns True when the row changed. No commit.
        """
        expected = (expected_status,) if isinstance(expected_status, str) else expected_status
        stmt = (
            update(Offer)
            .where(Offer.id == offer_id)
            .where(Offer.status.in_(expected))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1

    def transition_for_request(
        self,
        session: Session,
        request_id: uuid.UUID,
        from_statuses: tuple[str, ...],
        to_status: str,
        exclude_offer_id: uuid.UUID | None = None,
    ) -> list[Offer]:
        """
        Move every offer of a request in `from_statuses` to `to_status`.

        Returns the offers that were moved (for notification fan-out).
        """
        stmt = (
            select(Offer)
            .where(Offer.request_id == request_id)
            .where(Offer.status.in_(from_statuses))
        )
        if exclude_offer_id is not None:
            stmt = stmt.where(Offer.id != exclude_offer_id)
        candidates = session.exec(stmt).all()

        moved: list[Offer] = []
        for offer in candidates:
            if self.transition(session, offer.id, from_statuses, {"status": to_status}):
                moved.append(offer)
        return moved

# app/repositories/request_repo.py
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.offer import Offer
from app.models.water_request import WaterRequest


class WaterRequestRepository:
    """
    Data access layer for water_requests.

    NOTE:
      - No commits here except create(); lifecycle transitions touch offers
        and requests together and the service commits once.
    """

    def get_by_id(self, session: Session, request_id: uuid.UUID) -> WaterRequest | None:
        return session.get(WaterRequest, request_id)

    def get_by_tracking_token(self, session: Session, token: str) -> WaterRequest | None:
        stmt = select(WaterRequest).where(WaterRequest.tracking_token == token)
        return session.exec(stmt).first()

    def create(self, session: Session, request: WaterRequest) -> WaterRequest:
        session.add(request)
        session.commit()
        session.refresh(request)
        return request

    def list_for_consumer(
        self,
        session: Session,
        consumer_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[WaterRequest]:
        stmt = (
            select(WaterRequest)
            .where(WaterRequest.consumer_id == consumer_id)
            .order_by(WaterRequest.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_pending_in_comunas(
        self,
        session: Session,
        comuna_ids: list[str],
    ) -> list[WaterRequest]:
        """Open requests a supplier can bid on: urgent first, then newest."""
        stmt = (
            select(WaterRequest)
            .where(WaterRequest.status == "pending")
            .where(WaterRequest.comuna_id.in_(comuna_ids))
            .order_by(WaterRequest.is_urgent.desc(), WaterRequest.created_at.desc())
        )
        return session.exec(stmt).all()

    def list_pending_created_before(
        self,
        session: Session,
        threshold: datetime,
    ) -> list[WaterRequest]:
        stmt = (
            select(WaterRequest)
            .where(WaterRequest.status == "pending")
            .where(WaterRequest.created_at < threshold)
            .order_by(WaterRequest.created_at)
        )
        return session.exec(stmt).all()

    def list_filtered(
        self,
        session: Session,
        status: str | None = None,
        comuna_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[WaterRequest]:
        """Admin orders listing."""
        stmt = select(WaterRequest)
        if status:
            stmt = stmt.where(WaterRequest.status == status)
        if comuna_id:
            stmt = stmt.where(WaterRequest.comuna_id == comuna_id)
        if date_from:
            stmt = stmt.where(WaterRequest.created_at >= date_from)
        if date_to:
            stmt = stmt.where(WaterRequest.created_at <= date_to)
        stmt = stmt.order_by(WaterRequest.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def count_by_status(
        self,
        session: Session,
        since: datetime | None = None,
    ) -> dict[str, int]:
        stmt = select(WaterRequest.status, func.count()).group_by(WaterRequest.status)
        if since:
            stmt = stmt.where(WaterRequest.created_at >= since)
        return {status: count for status, count in session.exec(stmt).all()}

    def list_accepted_for_supplier(
        self,
        session: Session,
        supplier_id: uuid.UUID,
    ) -> list[tuple[WaterRequest, Offer]]:
        """Deliveries in progress: accepted request + the accepted offer."""
        stmt = (
            select(WaterRequest, Offer)
            .join(Offer, Offer.request_id == WaterRequest.id)
            .where(WaterRequest.supplier_id == supplier_id)
            .where(WaterRequest.status == "accepted")
            .where(Offer.provider_id == supplier_id)
            .where(Offer.status == "accepted")
        )
        return list(session.exec(stmt).all())

    def transition(
        self,
        session: Session,
        request_id: uuid.UUID,
        expected_status: str | tuple[str, ...],
        values: dict[str, Any],
    ) -> bool:
        """
        Guarded update: `UPDATE ... WHERE id = :id AND status = :expected`.

        Returns True when exactly one row changed. No commit.
        """
        expected = (expected_status,) if isinstance(expected_status, str) else expected_status
        stmt = (
            update(WaterRequest)
            .where(WaterRequest.id == request_id)
            .where(WaterRequest.status.in_(expected))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount == 1

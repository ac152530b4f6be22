# app/repositories/dispute_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.dispute import Dispute


class DisputeRepository:
    """Data access layer for disputes."""

    def get_by_id(self, session: Session, dispute_id: uuid.UUID) -> Dispute | None:
        return session.get(Dispute, dispute_id)

    def get_by_request(self, session: Session, request_id: uuid.UUID) -> Dispute | None:
        stmt = select(Dispute).where(Dispute.request_id == request_id)
        return session.exec(stmt).first()

    def get_by_requests(
        self,
        session: Session,
        request_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, Dispute]:
        if not request_ids:
            return {}
        stmt = select(Dispute).where(Dispute.request_id.in_(request_ids))
        return {d.request_id: d for d in session.exec(stmt).all()}

    def create(self, session: Session, dispute: Dispute) -> Dispute:
        session.add(dispute)
        session.commit()
        session.refresh(dispute)
        return dispute

    def update(self, session: Session, dispute: Dispute) -> Dispute:
        session.add(dispute)
        session.commit()
        session.refresh(dispute)
        return dispute

    def list(
        self,
        session: Session,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Dispute]:
        stmt = select(Dispute)
        if status:
            stmt = stmt.where(Dispute.status == status)
        stmt = stmt.order_by(Dispute.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def count_open(self, session: Session) -> int:
        stmt = (
            select(func.count())
            .select_from(Dispute)
            .where(Dispute.status.in_(("open", "under_review")))
        )
        return session.exec(stmt).one()

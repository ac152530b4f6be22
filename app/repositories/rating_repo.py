# app/repositories/rating_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.rating import Rating


class RatingRepository:
    """Data access layer for ratings."""

    def get_for_request(
        self,
        session: Session,
        request_id: uuid.UUID,
        consumer_id: uuid.UUID,
    ) -> Rating | None:
        stmt = (
            select(Rating)
            .where(Rating.request_id == request_id)
            .where(Rating.consumer_id == consumer_id)
        )
        return session.exec(stmt).first()

    def save(self, session: Session, rating: Rating) -> Rating:
        """Insert or update; no commit (the provider aggregate goes in the same transaction)."""
        session.add(rating)
        session.flush()
        session.refresh(rating)
        return rating

    def aggregate_for_provider(
        self,
        session: Session,
        provider_id: uuid.UUID,
    ) -> tuple[float | None, int]:
        """Return (average, count) over all ratings of a supplier."""
        stmt = select(func.avg(Rating.rating), func.count(Rating.id)).where(
            Rating.provider_id == provider_id
        )
        avg, count = session.exec(stmt).one()
        return (float(avg) if avg is not None else None, count)

# app/services/rating_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.clock import utcnow
from app.models.profile import Profile
from app.models.rating import Rating
from app.repositories.profile_repo import ProfileRepository
from app.repositories.rating_repo import RatingRepository
from app.repositories.request_repo import WaterRequestRepository
from app.schemas.rating import ProviderRatingRead, RatingCreate, RatingSubmitResult

logger = logging.getLogger(__name__)


class RatingService:
    """
    Consumer ratings of suppliers.

    A consumer rates the supplier of each delivered request once; rating
    again updates the same row. The supplier's average_rating and
    rating_count are recomputed in the same transaction.
    """

    def __init__(
        self,
        rating_repo: RatingRepository,
        request_repo: WaterRequestRepository,
        profile_repo: ProfileRepository,
    ):
        self.rating_repo = rating_repo
        self.request_repo = request_repo
        self.profile_repo = profile_repo

    def submit_rating(
        self,
        session: Session,
        payload: RatingCreate,
        consumer: Profile,
    ) -> RatingSubmitResult:
        request = self.request_repo.get_by_id(session, payload.request_id)
        if not request:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Solicitud no encontrada",
            )
        if request.consumer_id != consumer.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes permiso para calificar esta solicitud",
            )
        if request.status != "delivered":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo puedes calificar solicitudes entregadas",
            )
        if not request.supplier_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La solicitud no tiene un proveedor asignado",
            )

        rating = self.rating_repo.get_for_request(session, request.id, consumer.id)
        is_update = rating is not None
        if rating:
            rating.rating = payload.rating
            rating.comment = payload.comment
            rating.updated_at = utcnow()
        else:
            rating = Rating(
                request_id=request.id,
                consumer_id=consumer.id,
                provider_id=request.supplier_id,
                rating=payload.rating,
                comment=payload.comment,
            )

        try:
            rating = self.rating_repo.save(session, rating)
            average, count = self._refresh_provider_aggregate(session, rating.provider_id)
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe una calificación para esta solicitud",
            )

        logger.info(
            "Rating %s %s for provider %s (%d stars)",
            rating.id,
            "updated" if is_update else "created",
            rating.provider_id,
            rating.rating,
        )
        return RatingSubmitResult(
            rating_id=rating.id,
            is_update=is_update,
            average_rating=average,
            rating_count=count,
        )

    def get_rating_for_request(
        self,
        session: Session,
        request_id: uuid.UUID,
        consumer: Profile,
    ) -> Rating | None:
        return self.rating_repo.get_for_request(session, request_id, consumer.id)

    def get_provider_rating(self, session: Session, provider_id: uuid.UUID) -> ProviderRatingRead:
        provider = self.profile_repo.get_by_id(session, provider_id)
        if not provider or provider.role != "supplier":
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Proveedor no encontrado",
            )
        return ProviderRatingRead(
            provider_id=provider.id,
            average_rating=provider.average_rating,
            rating_count=provider.rating_count,
        )

    def _refresh_provider_aggregate(
        self,
        session: Session,
        provider_id: uuid.UUID,
    ) -> tuple[float | None, int]:
        average, count = self.rating_repo.aggregate_for_provider(session, provider_id)
        average = round(average, 2) if average is not None else None
        provider = self.profile_repo.get_by_id(session, provider_id)
        if provider:
            provider.average_rating = average
            provider.rating_count = count
            session.add(provider)
        return average, count

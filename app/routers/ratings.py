# app/routers/ratings.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_consumer
from app.database import get_session
from app.models.profile import Profile
from app.schemas.rating import ProviderRatingRead, RatingCreate, RatingRead, RatingSubmitResult
from app.services.wiring import rating_service as service

router = APIRouter(prefix="/ratings", tags=["Ratings"])


@router.post("", response_model=RatingSubmitResult)
def submit_rating(
    payload: RatingCreate,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_consumer),
):
    """
    Rate the supplier of a delivered request (1-5 stars).

    Rating the same request again updates the previous rating.
    """
    return service.submit_rating(session, payload, current_user)


@router.get("/request/{request_id}", response_model=RatingRead | None)
def get_rating_for_request(
    request_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_consumer),
):
    return service.get_rating_for_request(session, request_id, current_user)


@router.get("/provider/{provider_id}", response_model=ProviderRatingRead)
def get_provider_rating(
    provider_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Public rating aggregate of a supplier."""
    return service.get_provider_rating(session, provider_id)

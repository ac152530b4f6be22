# app/routers/requests.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import get_current_user, is_admin, require_auth
from app.database import get_session
from app.models.profile import Profile
from app.schemas.offer import ConsumerOfferRead, OfferSelectResult
from app.schemas.water_request import (
    RequestCancel,
    TrackingRead,
    WaterRequestCreate,
    WaterRequestCreated,
    WaterRequestRead,
)
from app.services.wiring import offer_service, request_service

router = APIRouter(prefix="/requests", tags=["Requests"])
offers_router = APIRouter(prefix="/offers", tags=["Requests"])


# -------- Consumer: requests --------


@router.post(
    "",
    response_model=WaterRequestCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_request(
    payload: WaterRequestCreate,
    session: Session = Depends(get_session),
    current_user: Profile | None = Depends(get_current_user),
):
    """
    Create a water request.

    Auth:
      - Optional. Guests get a tracking_token to follow their request;
        logged-in consumers also see it under GET /requests.
    """
    return request_service.create_request(session, payload, current_user)


@router.get("", response_model=list[WaterRequestRead])
def list_my_requests(
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
    skip: int = 0,
    limit: int = 50,
):
    """The caller's own requests, newest first."""
    return request_service.list_my_requests(session, current_user, skip, limit)


@router.get("/track/{tracking_token}", response_model=TrackingRead)
def track_request(
    tracking_token: str,
    session: Session = Depends(get_session),
):
    """Guest tracking page: status, accepted offer and timeline."""
    return request_service.track_request(session, tracking_token)


@router.get("/{request_id}", response_model=WaterRequestRead)
def get_request(
    request_id: uuid.UUID,
    token: str | None = None,
    session: Session = Depends(get_session),
    current_user: Profile | None = Depends(get_current_user),
):
    return request_service.get_request(
        session,
        request_id,
        current_user,
        token=token,
        is_admin=current_user is not None and is_admin(session, current_user),
    )


@router.post("/{request_id}/cancel", response_model=WaterRequestRead)
def cancel_request(
    request_id: uuid.UUID,
    payload: RequestCancel,
    token: str | None = None,
    session: Session = Depends(get_session),
    current_user: Profile | None = Depends(get_current_user),
):
    """
    Cancel a pending or accepted request.

    Auth:
      - Request owner: its consumer, or a guest passing ?token=<tracking_token>.
    """
    return request_service.cancel_request(session, request_id, current_user, token, payload)


@router.get("/{request_id}/offers", response_model=list[ConsumerOfferRead])
def list_request_offers(
    request_id: uuid.UUID,
    token: str | None = None,
    session: Session = Depends(get_session),
    current_user: Profile | None = Depends(get_current_user),
):
    """
    Active offers on the request, soonest delivery window first.

    Clients poll this every 30s when realtime updates are unavailable.
    """
    return offer_service.list_request_offers(session, request_id, current_user, token)


# -------- Consumer: offer selection --------


@offers_router.post("/{offer_id}/select", response_model=OfferSelectResult)
def select_offer(
    offer_id: uuid.UUID,
    token: str | None = None,
    session: Session = Depends(get_session),
    current_user: Profile | None = Depends(get_current_user),
):
    """
    Accept one offer; competing offers become request_filled.

    Returns 409 when the offer or request changed state in the meantime.
    """
    return offer_service.select_offer(session, offer_id, current_user, token)

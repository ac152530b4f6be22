# app/routers/disputes.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_auth, require_consumer
from app.database import get_session
from app.models.profile import Profile
from app.schemas.dispute import DisputeCreate, DisputeEligibility, DisputeRead
from app.services.wiring import dispute_service as service

router = APIRouter(prefix="/disputes", tags=["Disputes"])


@router.post(
    "",
    response_model=DisputeRead,
    status_code=status.HTTP_201_CREATED,
)
def create_dispute(
    payload: DisputeCreate,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_consumer),
):
    """
    Report a problem with a delivered request.

    Allowed once per request, within the dispute window after delivery.
    """
    return service.create_dispute(session, payload, current_user)


@router.get("/eligibility/{request_id}", response_model=DisputeEligibility)
def can_file_dispute(
    request_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_consumer),
):
    return service.can_file_dispute(session, request_id, current_user)


@router.get("/request/{request_id}", response_model=DisputeRead | None)
def get_dispute_for_request(
    request_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    """The dispute on a request, or null. Visible to its consumer and supplier."""
    return service.get_dispute_for_request(session, request_id, current_user)

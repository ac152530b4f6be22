# app/routers/users.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.models.profile import Profile
from app.schemas.profile import ProfileRead, ProfileUpdate
from app.services.wiring import profile_service as service

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=ProfileRead)
def read_me(current_user: Profile = Depends(require_auth)):
    """
    Return the authenticated user's profile.

    The profile is auto-created on the first authenticated request,
    with role="consumer" and a name derived from the email.

    Auth:
      - Requires valid Supabase JWT.
    """
    return service.get_me(current_user)


@router.patch("/me", response_model=ProfileRead)
def update_me(
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    """
    Update the authenticated user's profile (partial update).

    Editable: `name`, `phone` (+56XXXXXXXXX).
    """
    return service.update_me(session, current_user, payload)

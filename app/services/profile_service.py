# app/services/profile_service.py
from sqlmodel import Session

from app.core.clock import utcnow
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.schemas.profile import ProfileUpdate


class ProfileService:
    """
    Business logic for the caller's own profile.

    The profile row is auto-provisioned in `get_current_user`; this service
    only edits the user-editable fields. Role and verification changes go
    through ProviderService / AdminService.
    """

    def __init__(self, repo: ProfileRepository):
        self.repo = repo

    def get_me(self, current_user: Profile) -> Profile:
        """Return the current authenticated profile."""
        return current_user

    def update_me(
        self,
        session: Session,
        current_user: Profile,
        payload: ProfileUpdate,
    ) -> Profile:
        """
        Partial update for profile edits.
        Only `name` and `phone` are editable; email comes from Supabase Auth.
        """
        if payload.name is not None:
            current_user.name = payload.name
        if payload.phone is not None:
            current_user.phone = payload.phone
        current_user.updated_at = utcnow()

        return self.repo.update(session, current_user)

# app/core/auth.py
import secrets
import uuid
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session, select

from app.core.config import get_settings
from app.database import get_session
from app.models.admin import AdminAllowedEmail
from app.models.profile import Profile

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can support guest consumers (unauthenticated).
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Args:
        token: raw JWT from the Authorization header.

    Returns:
        Decoded JWT claims.

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sesión inválida o expirada",
        )


def _default_name_from_email(email: str) -> str:
    """
    Derive a default display name from email if the user has not
    completed their profile yet.
    """
    if "@" in email:
        return email.split("@", 1)[0]
    return email


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> Profile | None:
    """
    Resolve the current profile from a Supabase JWT.

    Flow:
      1. If no Authorization header => guest => return None.
      2. Decode JWT => extract 'sub' (auth user id) and 'email'.
      3. Convert 'sub' to UUID to match Profile.id type.
      4. Find the profile in public.profiles.
      5. If missing, auto-provision a consumer profile.

    Returns:
        Profile instance if authenticated, else None for guests.

    Raises:
        HTTPException(401): if token is malformed or missing required claims.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token sin sub/email",
        )

    # Supabase provides sub as a string; enforce UUID
    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token con sub inválido",
        )

    profile = session.exec(select(Profile).where(Profile.id == sub_uuid)).first()

    # Auto-provision profile if not found yet.
    # Default role = "consumer"; suppliers go through /provider/register and
    # admins are granted through admin_allowed_emails.
    if profile is None:
        profile = Profile(
            id=sub_uuid,
            email=email,
            name=_default_name_from_email(email),
            role="consumer",
        )
        session.add(profile)
        session.commit()
        session.refresh(profile)

    return profile


def require_auth(user: Profile | None = Depends(get_current_user)) -> Profile:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): if user is None.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No autenticado",
        )
    return user


def is_admin(session: Session, user: Profile) -> bool:
    """
    Admin access is granted by role OR by an entry in admin_allowed_emails.
    """
    if user.role == "admin":
        return True
    allowed = session.get(AdminAllowedEmail, user.email.lower())
    return allowed is not None


def require_admin(
    user: Profile = Depends(require_auth),
    session: Session = Depends(get_session),
) -> Profile:
    """
    Enforce admin access.

    Route is accessible only if:
      - user.role == "admin", or
      - user.email is listed in admin_allowed_emails

    Raises:
        HTTPException(403): otherwise.
    """
    if not is_admin(session, user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No tienes permisos de administrador",
        )
    return user


def require_consumer(user: Profile = Depends(require_auth)) -> Profile:
    """
    Enforce that only consumers can access a route (ratings, disputes).
    """
    if user.role != "consumer":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Solo consumidores pueden realizar esta acción",
        )
    return user


def require_supplier(user: Profile = Depends(require_auth)) -> Profile:
    """
    Enforce supplier role (any verification status).

    Used by onboarding routes a pending / rejected supplier still needs
    (documents, resubmission, own offers history).
    """
    if user.role != "supplier":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Solo proveedores pueden realizar esta acción",
        )
    return user


def require_approved_supplier(user: Profile = Depends(require_supplier)) -> Profile:
    """
    Enforce an approved (verified) supplier.

    Raises:
        HTTPException(403): if verification_status != "approved".
    """
    if user.verification_status != "approved":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tu cuenta no está verificada",
        )
    return user


def require_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """
    Guard for /cron endpoints: `Authorization: Bearer <CRON_SECRET>`.

    An unset CRON_SECRET locks the endpoints entirely.
    """
    expected = settings.CRON_SECRET
    if (
        not expected
        or credentials is None
        or not secrets.compare_digest(credentials.credentials, expected)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

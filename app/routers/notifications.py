# app/routers/notifications.py
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.models.profile import Profile
from app.schemas.notification import (
    NotificationRead,
    PushSendResult,
    PushSubscriptionCreate,
    PushUnsubscribe,
    UnreadCount,
    VapidKeyRead,
)
from app.services.wiring import notification_service, push_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])
push_router = APIRouter(prefix="/push", tags=["Notifications"])


# -------- In-app inbox --------


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = False,
    skip: int = 0,
    limit: int = 50,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    """The caller's notifications, newest first."""
    return notification_service.list_notifications(
        session, current_user.id, unread_only, skip, limit
    )


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    return UnreadCount(unread=notification_service.unread_count(session, current_user.id))


@router.post("/read-all", response_model=UnreadCount)
def mark_all_read(
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    notification_service.mark_all_read(session, current_user.id)
    return UnreadCount(unread=0)


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    return notification_service.mark_read(session, current_user.id, notification_id)


# -------- Web Push --------


@push_router.get("/vapid-public-key", response_model=VapidKeyRead)
def get_vapid_public_key():
    """
    VAPID public key the browser needs to subscribe.

    503 when push is not configured on the server.
    """
    key = push_service.get_vapid_public_key()
    if not push_service.is_configured() or not key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notificaciones push no configuradas",
        )
    return VapidKeyRead(public_key=key)


@push_router.post("/subscribe", status_code=status.HTTP_204_NO_CONTENT)
def subscribe(
    payload: PushSubscriptionCreate,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    push_service.subscribe(
        session,
        current_user.id,
        payload.endpoint,
        payload.keys.p256dh,
        payload.keys.auth,
        payload.user_agent,
    )
    return None


@push_router.post("/unsubscribe", status_code=status.HTTP_204_NO_CONTENT)
def unsubscribe(
    payload: PushUnsubscribe,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    """Remove one device (endpoint) or, without endpoint, all of them."""
    if payload.endpoint:
        push_service.unsubscribe(session, current_user.id, payload.endpoint)
    else:
        push_service.unsubscribe_all(session, current_user.id)
    return None


@push_router.post("/test", response_model=PushSendResult)
def send_test_push(
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    """Send a test notification to the caller's own devices."""
    result = push_service.send_to_user(
        session,
        current_user.id,
        title="nitoagua",
        body="Las notificaciones push están activas",
        tag="test",
    )
    return PushSendResult(**result)

# app/services/push_service.py
"""
Web Push delivery (VAPID) for the PWA.

pywebpush handles the payload encryption and VAPID JWT signing; we only
keep subscriptions and prune the ones the push service reports as gone.
"""

import json
import logging
import uuid
from typing import Any

from pywebpush import WebPushException, webpush
from sqlmodel import Session

from app.core.config import get_settings
from app.models.notification import PushSubscription
from app.repositories.notification_repo import NotificationRepository

logger = logging.getLogger(__name__)
settings = get_settings()

DEFAULT_ICON = "/icons/icon-192.png"
DEFAULT_BADGE = "/icons/badge-72.png"


class PushService:
    """Manage push subscriptions and send notifications to user devices."""

    def __init__(self, repo: NotificationRepository):
        self.repo = repo

    @staticmethod
    def is_configured() -> bool:
        """Check if VAPID keys are configured."""
        return bool(settings.VAPID_PUBLIC_KEY and settings.VAPID_PRIVATE_KEY)

    @staticmethod
    def get_vapid_public_key() -> str | None:
        """Public VAPID key; safe to expose to the frontend."""
        return settings.VAPID_PUBLIC_KEY

    # -------- Subscriptions --------

    def subscribe(
        self,
        session: Session,
        user_id: uuid.UUID,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: str | None = None,
    ) -> PushSubscription:
        """Store (or refresh) the browser subscription for this device."""
        return self.repo.upsert_subscription(
            session, user_id, endpoint, p256dh, auth, user_agent
        )

    def unsubscribe(self, session: Session, user_id: uuid.UUID, endpoint: str) -> bool:
        return self.repo.delete_subscription(session, user_id, endpoint)

    def unsubscribe_all(self, session: Session, user_id: uuid.UUID) -> int:
        return self.repo.delete_all_subscriptions(session, user_id)

    # -------- Sending --------

    def send_to_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        title: str,
        body: str,
        url: str | None = None,
        tag: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, int]:
        """
        Send a push to all of a user's subscribed devices.

        Returns:
            dict with 'sent', 'failed', 'expired' counts
        """
        result = {"sent": 0, "failed": 0, "expired": 0}
        if not self.is_configured():
            logger.debug("Push not configured; skipping send to %s", user_id)
            return result

        subscriptions = self.repo.list_subscriptions(session, user_id)
        if not subscriptions:
            return result

        payload = self._build_payload(title, body, url=url, tag=tag, data=data)
        for sub in subscriptions:
            outcome = self._send_to_subscription(session, sub, payload)
            result[outcome] += 1
        return result

    def _send_to_subscription(
        self,
        session: Session,
        sub: PushSubscription,
        payload: str,
    ) -> str:
        """
        Send to one device.

        Returns "sent", "expired" (subscription deleted) or "failed".
        """
        try:
            webpush(
                subscription_info={
                    "endpoint": sub.endpoint,
                    "keys": {"p256dh": sub.p256dh, "auth": sub.auth},
                },
                data=payload,
                vapid_private_key=settings.VAPID_PRIVATE_KEY,
                vapid_claims={"sub": settings.VAPID_CLAIMS_EMAIL},
            )
        except WebPushException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            if status_code in (404, 410):
                logger.info(
                    "Push subscription expired; deleting endpoint=%s user_id=%s",
                    sub.endpoint,
                    sub.user_id,
                )
                self.repo.delete_subscription(session, sub.user_id, sub.endpoint)
                return "expired"
            logger.error("Push send failed: %s", exc)
            return "failed"

        self.repo.touch_subscription(session, sub)
        return "sent"

    @staticmethod
    def _build_payload(
        title: str,
        body: str,
        url: str | None = None,
        tag: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> str:
        """Build JSON payload for the service worker."""
        payload_data: dict[str, Any] = dict(data or {})
        if url:
            payload_data.setdefault("url", url)

        payload: dict[str, Any] = {
            "title": title,
            "body": body,
            "icon": DEFAULT_ICON,
            "badge": DEFAULT_BADGE,
            "url": url,
            "tag": tag,
            "data": payload_data or None,
        }
        cleaned = {key: value for key, value in payload.items() if value is not None}
        return json.dumps(cleaned, default=str)

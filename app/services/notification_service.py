# app/services/notification_service.py
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.models.notification import Notification
from app.repositories.notification_repo import NotificationRepository
from app.services.push_service import PushService

logger = logging.getLogger(__name__)


def _jsonable(data: dict[str, Any] | None) -> dict[str, Any]:
    # UUIDs and datetimes are not JSON-native
    return {
        k: str(v) if v is not None and not isinstance(v, (str, int, float, bool)) else v
        for k, v in (data or {}).items()
    }


@dataclass
class Notice:
    """One in-app notification (and its push twin) to deliver."""

    user_id: uuid.UUID
    type: str
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    url: str | None = None
    tag: str | None = None


class NotificationService:
    """
    In-app notification inbox plus push fan-out.

    Delivery is a side effect of lifecycle transitions that are already
    committed: every failure here is logged and swallowed, never raised
    back into the caller's transition.
    """

    def __init__(self, repo: NotificationRepository, push: PushService):
        self.repo = repo
        self.push = push

    # -------- Fan-out --------

    def notify(self, session: Session, notice: Notice, push: bool = True) -> bool:
        """Deliver a single notice. Returns True if the inbox row was stored."""
        return self.notify_many(session, [notice], push=push) == 1

    def notify_many(self, session: Session, notices: list[Notice], push: bool = True) -> int:
        """
        Insert all notices in one commit, then push each.

        Returns:
            Number of inbox rows stored (0 if the insert failed).
        """
        if not notices:
            return 0

        rows = [
            Notification(
                user_id=n.user_id,
                type=n.type,
                title=n.title,
                message=n.message,
                data=_jsonable(n.data) or None,
            )
            for n in notices
        ]
        try:
            self.repo.create_many(session, rows)
            stored = len(rows)
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Failed to store %d notification(s)", len(rows))
            stored = 0

        if push:
            for n in notices:
                try:
                    self.push.send_to_user(
                        session,
                        n.user_id,
                        n.title,
                        n.message,
                        url=n.url,
                        tag=n.tag,
                        data={"type": n.type, **_jsonable(n.data)},
                    )
                except Exception:
                    session.rollback()
                    logger.exception("Push fan-out failed for user %s", n.user_id)
        return stored

    # -------- Inbox --------

    def list_notifications(
        self,
        session: Session,
        user_id: uuid.UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Notification]:
        return self.repo.list_for_user(session, user_id, unread_only, skip, limit)

    def unread_count(self, session: Session, user_id: uuid.UUID) -> int:
        return self.repo.count_unread(session, user_id)

    def mark_read(
        self,
        session: Session,
        user_id: uuid.UUID,
        notification_id: uuid.UUID,
    ) -> Notification:
        """
        Raises:
            HTTPException(404): if the notification is not the user's.
        """
        notification = self.repo.get_for_user(session, notification_id, user_id)
        if not notification:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Notificación no encontrada",
            )
        return self.repo.mark_read(session, notification)

    def mark_all_read(self, session: Session, user_id: uuid.UUID) -> int:
        return self.repo.mark_all_read(session, user_id)

# app/repositories/notification_repo.py
import uuid

from sqlalchemy import delete, func, update
from sqlmodel import Session, select

from app.core.clock import utcnow
from app.models.notification import Notification, PushSubscription


class NotificationRepository:
    """
    Data access layer for in-app notifications and Web Push subscriptions.
    """

    # ---- Notifications ----

    def create_many(self, session: Session, notifications: list[Notification]) -> None:
        session.add_all(notifications)
        session.commit()

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read == False)  # noqa: E712
        stmt = stmt.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def get_for_user(
        self,
        session: Session,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Notification | None:
        stmt = (
            select(Notification)
            .where(Notification.id == notification_id)
            .where(Notification.user_id == user_id)
        )
        return session.exec(stmt).first()

    def mark_read(self, session: Session, notification: Notification) -> Notification:
        notification.read = True
        session.add(notification)
        session.commit()
        session.refresh(notification)
        return notification

    def mark_all_read(self, session: Session, user_id: uuid.UUID) -> int:
        result = session.execute(
            update(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.read == False)  # noqa: E712
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        session.commit()
        return result.rowcount

    def count_unread(self, session: Session, user_id: uuid.UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.read == False)  # noqa: E712
        )
        return session.exec(stmt).one()

    # ---- Push subscriptions ----

    def get_subscription_by_endpoint(
        self,
        session: Session,
        endpoint: str,
    ) -> PushSubscription | None:
        stmt = select(PushSubscription).where(PushSubscription.endpoint == endpoint)
        return session.exec(stmt).first()

    def upsert_subscription(
        self,
        session: Session,
        user_id: uuid.UUID,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: str | None = None,
    ) -> PushSubscription:
        """
        Insert or refresh a subscription keyed by endpoint.

        A browser endpoint belongs to whoever subscribed last on that device.
        """
        sub = self.get_subscription_by_endpoint(session, endpoint)
        if sub is None:
            sub = PushSubscription(
                user_id=user_id,
                endpoint=endpoint,
                p256dh=p256dh,
                auth=auth,
                user_agent=user_agent,
            )
        else:
            sub.user_id = user_id
            sub.p256dh = p256dh
            sub.auth = auth
            sub.user_agent = user_agent
        session.add(sub)
        session.commit()
        session.refresh(sub)
        return sub

    def list_subscriptions(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> list[PushSubscription]:
        stmt = select(PushSubscription).where(PushSubscription.user_id == user_id)
        return session.exec(stmt).all()

    def touch_subscription(self, session: Session, sub: PushSubscription) -> None:
        sub.last_used_at = utcnow()
        session.add(sub)
        session.commit()

    def delete_subscription(
        self,
        session: Session,
        user_id: uuid.UUID,
        endpoint: str,
    ) -> bool:
        result = session.execute(
            delete(PushSubscription)
            .where(PushSubscription.user_id == user_id)
            .where(PushSubscription.endpoint == endpoint)
        )
        session.commit()
        return result.rowcount > 0

    def delete_all_subscriptions(self, session: Session, user_id: uuid.UUID) -> int:
        result = session.execute(
            delete(PushSubscription).where(PushSubscription.user_id == user_id)
        )
        session.commit()
        return result.rowcount

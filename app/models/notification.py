# app/models/notification.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Notification(SQLModel, table=True):
    """
    In-app notification shown in the user's inbox.

    `type` is a free string (new_offer, offer_accepted, offer_request_filled,
    offer_expired, delivery_completed, request_timeout, dispute_created, ...).
    `data` carries ids the client needs to deep link.
    """

    __tablename__ = "notifications"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    user_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )
    type: str = Field(index=True)
    title: str
    message: str
    data: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column(JSON),
    )
    read: bool = Field(default=False, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class PushSubscription(SQLModel, table=True):
    """Browser Web Push subscription for one device."""

    __tablename__ = "push_subscriptions"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    user_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )
    endpoint: str = Field(unique=True, index=True)
    p256dh: str
    auth: str
    user_agent: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    last_used_at: datetime | None = None

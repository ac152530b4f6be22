# app/schemas/notification.py
import uuid
from datetime import datetime
from typing import Any

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field


class NotificationRead(SQLModel):
    id: uuid.UUID
    type: str
    title: str
    message: str
    data: dict[str, Any] | None
    read: bool
    created_at: datetime


class UnreadCount(SQLModel):
    unread: int


class PushKeys(SQLModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscriptionCreate(SQLModel):
    """Shape of the browser's PushSubscription.toJSON()."""

    model_config = ConfigDict(extra="ignore")

    endpoint: str = Field(min_length=1)
    keys: PushKeys
    user_agent: str | None = None


class PushUnsubscribe(SQLModel):
    """Omit endpoint to remove every subscription of the user."""

    model_config = ConfigDict(extra="forbid")

    endpoint: str | None = None


class PushSendResult(SQLModel):
    sent: int
    failed: int
    expired: int


class VapidKeyRead(SQLModel):
    public_key: str

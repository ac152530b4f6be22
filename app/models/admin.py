# app/models/admin.py
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class AdminSetting(SQLModel, table=True):
    """
    Runtime-tunable platform setting.

    Values are wrapped as {"value": <scalar>} so every row has the same shape.
    """

    __tablename__ = "admin_settings"

    key: str = Field(primary_key=True)
    value: dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    updated_by: uuid.UUID | None = None
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class AdminAllowedEmail(SQLModel, table=True):
    """Emails granted access to the admin panel."""

    __tablename__ = "admin_allowed_emails"

    email: str = Field(primary_key=True)
    notes: str | None = None
    added_by: uuid.UUID | None = None
    added_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

# app/schemas/dispute.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

DisputeType = Literal[
    "not_delivered",
    "wrong_quantity",
    "late_delivery",
    "quality_issue",
    "other",
]
DisputeStatus = Literal[
    "open",
    "under_review",
    "resolved_consumer",
    "resolved_provider",
    "closed",
]
DisputeResolution = Literal["resolved_consumer", "resolved_provider"]

DISPUTE_TYPE_LABELS: dict[str, str] = {
    "not_delivered": "No recibí mi pedido",
    "wrong_quantity": "Cantidad incorrecta",
    "late_delivery": "Entrega muy tardía",
    "quality_issue": "Problema de calidad",
    "other": "Otro problema",
}


class DisputeCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    request_id: uuid.UUID
    dispute_type: DisputeType
    description: str | None = Field(default=None, max_length=1000)

    @field_validator("description")
    @classmethod
    def normalize_description(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class DisputeRead(SQLModel):
    id: uuid.UUID
    request_id: uuid.UUID
    consumer_id: uuid.UUID
    provider_id: uuid.UUID
    dispute_type: DisputeType
    description: str | None
    status: DisputeStatus
    resolution_notes: str | None
    resolved_by: uuid.UUID | None
    created_at: datetime
    updated_at: datetime | None
    resolved_at: datetime | None


class DisputeEligibility(SQLModel):
    can_file: bool
    reason: str | None = None
    existing_dispute_id: uuid.UUID | None = None
    deadline: datetime | None = None


class DisputeResolve(SQLModel):
    """Admin decision; notes are mandatory so both parties get an explanation."""

    model_config = ConfigDict(extra="forbid")

    resolution: DisputeResolution
    notes: str = Field(min_length=1, max_length=2000)

    @field_validator("notes")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Las notas de resolución son requeridas")
        return v

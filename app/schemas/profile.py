# app/schemas/profile.py
import re
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from app.core.constants import COMUNAS

# App-level roles. Guests have no token, so we don't store them here.
Role = Literal["consumer", "supplier", "admin"]

DocumentType = Literal[
    "cedula",
    "licencia_conducir",
    "vehiculo",
    "permiso_sanitario",
    "certificacion",
    "otro",
]

VerificationStatus = Literal[
    "pending",
    "approved",
    "rejected",
    "more_info_needed",
    "suspended",
    "banned",
]

PHONE_RE = re.compile(r"^\+56[0-9]{9}$")


def validate_chilean_phone(v: str) -> str:
    v = v.strip().replace(" ", "")
    if not PHONE_RE.match(v):
        raise ValueError("Formato: +56912345678")
    return v


def validate_comuna_ids(ids: list[str]) -> list[str]:
    cleaned = list(dict.fromkeys(c.strip() for c in ids if c and c.strip()))
    if not cleaned:
        raise ValueError("Debes seleccionar al menos una comuna")
    invalid = [c for c in cleaned if c not in COMUNAS]
    if invalid:
        raise ValueError(f"Comunas inválidas: {', '.join(invalid)}")
    return cleaned


class ProfileRead(SQLModel):
    """Response schema returned to clients for their own profile."""

    id: uuid.UUID
    email: str
    name: str
    phone: str | None
    role: Role
    verification_status: VerificationStatus | None
    is_available: bool
    average_rating: float | None
    rating_count: int
    created_at: datetime


class ProfileUpdate(SQLModel):
    """
    Partial profile update for authenticated users.
    Only `name` and `phone` are editable here.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    phone: str | None = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if len(v) < 2:
            raise ValueError("El nombre debe tener al menos 2 caracteres")
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return validate_chilean_phone(v)


class ProviderRegister(SQLModel):
    """
    Supplier onboarding payload.

    Documents are uploaded separately (multipart) to /provider/documents.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=2, max_length=100)
    phone: str
    rut: str = Field(min_length=8, max_length=12)
    vehicle_type: str = Field(min_length=2, max_length=50)
    vehicle_capacity: int = Field(gt=0, le=50000)
    service_areas: list[str]
    bank_name: str | None = Field(default=None, max_length=100)
    bank_account_type: str | None = Field(default=None, max_length=50)
    bank_account_number: str | None = Field(default=None, max_length=30)

    @field_validator("name", "rut", "vehicle_type")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return validate_chilean_phone(v)

    @field_validator("service_areas")
    @classmethod
    def check_areas(cls, v: list[str]) -> list[str]:
        return validate_comuna_ids(v)


class ServiceAreasUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    comuna_ids: list[str]

    @field_validator("comuna_ids")
    @classmethod
    def check_areas(cls, v: list[str]) -> list[str]:
        return validate_comuna_ids(v)


class ServiceAreaRead(SQLModel):
    comuna_id: str
    comuna_name: str


class AvailabilityUpdate(SQLModel):
    """
    Toggle supplier availability.

    skip_warning=True confirms going offline while deliveries are in progress.
    """

    model_config = ConfigDict(extra="forbid")

    is_available: bool
    skip_warning: bool = False


class ActiveDeliverySummary(SQLModel):
    request_id: uuid.UUID
    offer_id: uuid.UUID
    address: str
    amount: int
    delivery_window: str | None


class AvailabilityResult(SQLModel):
    is_available: bool
    needs_confirmation: bool = False
    active_deliveries: list[ActiveDeliverySummary] = []


class DocumentRead(SQLModel):
    id: uuid.UUID
    provider_id: uuid.UUID
    document_type: str
    original_filename: str | None
    storage_path: str
    expires_at: datetime | None
    expiration_status: str
    uploaded_at: datetime
    signed_url: str | None = None


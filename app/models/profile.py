# app/models/profile.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    """
    Persistent profile for every nitoagua account.

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Role:
      - "consumer" | "supplier" | "admin"
      - guest consumers have no row; they reach their request through
        the request's tracking_token.

    Supplier-only columns (verification, availability, vehicle, bank,
    commission override, rating aggregate) stay NULL / default for consumers.
    """

    __tablename__ = "profiles"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from Supabase auth.users",
    )

    name: str = Field(
        max_length=100,
        description="Display name; first part of email by default",
    )

    phone: str | None = Field(
        default=None,
        description="Chilean phone number, +56XXXXXXXXX",
    )

    # Application role (not Supabase RLS role)
    role: str = Field(
        default="consumer",
        index=True,
        description="Application role: consumer | supplier | admin",
    )

    # ---- Supplier onboarding / verification ----

    # pending | approved | rejected | more_info_needed | suspended | banned
    verification_status: str | None = Field(
        default=None,
        index=True,
        description="Supplier verification lifecycle",
    )
    is_available: bool = Field(
        default=False,
        description="Supplier currently accepting new requests",
    )
    commission_override: float | None = Field(
        default=None,
        description="Per-supplier commission percent; NULL = platform default",
    )

    rut: str | None = None
    vehicle_type: str | None = None
    vehicle_capacity: int | None = None
    bank_name: str | None = None
    bank_account_type: str | None = None
    bank_account_number: str | None = None

    rejection_reason: str | None = None
    internal_notes: str | None = None
    suspension_reason: str | None = None

    # ---- Rating aggregate (kept in sync by RatingService) ----
    average_rating: float | None = None
    rating_count: int = Field(default=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime | None = None


class ProviderServiceArea(SQLModel, table=True):
    """A comuna a supplier delivers to."""

    __tablename__ = "provider_service_areas"
    __table_args__ = (UniqueConstraint("provider_id", "comuna_id"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    provider_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )
    comuna_id: str = Field(index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class ProviderDocument(SQLModel, table=True):
    """
    Verification document uploaded by a supplier.

    The file itself lives in the private Storage bucket; we keep the
    object path and metadata only.
    """

    __tablename__ = "provider_documents"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    provider_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )
    # cedula | licencia_conducir | vehiculo | permiso_sanitario | certificacion | otro
    document_type: str = Field(index=True)
    storage_path: str
    original_filename: str | None = None
    expires_at: datetime | None = Field(
        default=None,
        description="Document expiry date, if the document has one",
    )
    uploaded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

"""Row factories and JWT helpers shared by the test modules."""

import time
import uuid
from datetime import timedelta

from jose import jwt
from sqlmodel import Session

from app.core.clock import utcnow
from app.models.offer import Offer
from app.models.profile import Profile, ProviderServiceArea
from app.models.water_request import WaterRequest

TEST_JWT_SECRET = "test-jwt-secret"
CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


# -------- Auth helpers --------


def make_token(profile_id: uuid.UUID, email: str, expires_in: int = 3600) -> str:
    claims = {
        "sub": str(profile_id),
        "email": email,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(profile: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(profile.id, profile.email)}"}


# -------- Factories --------


def make_profile(
    session: Session,
    role: str = "consumer",
    name: str = "Camila Rojas",
    email: str | None = None,
    **fields,
) -> Profile:
    profile = Profile(
        id=uuid.uuid4(),
        email=email or f"{uuid.uuid4().hex[:10]}@nitoagua.cl",
        name=name,
        role=role,
        **fields,
    )
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def make_supplier(
    session: Session,
    name: str = "Aguas del Lago",
    comunas: tuple[str, ...] = ("villarrica",),
    verification_status: str = "approved",
    is_available: bool = True,
    **fields,
) -> Profile:
    supplier = make_profile(
        session,
        role="supplier",
        name=name,
        phone="+56987654321",
        verification_status=verification_status,
        is_available=is_available,
        **fields,
    )
    for comuna in comunas:
        session.add(ProviderServiceArea(provider_id=supplier.id, comuna_id=comuna))
    session.commit()
    return supplier


def make_request(
    session: Session,
    consumer: Profile | None = None,
    amount: int = 1000,
    comuna_id: str = "villarrica",
    **fields,
) -> WaterRequest:
    fields.setdefault("guest_name", consumer.name if consumer else "Pedro Soto")
    fields.setdefault("guest_phone", "+56912345678")
    request = WaterRequest(
        consumer_id=consumer.id if consumer else None,
        address="Camino Villarrica-Pucón km 12",
        special_instructions="Casa azul con portón verde",
        amount=amount,
        comuna_id=comuna_id,
        **fields,
    )
    session.add(request)
    session.commit()
    session.refresh(request)
    return request


def make_offer(
    session: Session,
    request: WaterRequest,
    provider: Profile,
    price: int = 20000,
    expires_in_minutes: int = 30,
    **fields,
) -> Offer:
    now = utcnow()
    offer = Offer(
        request_id=request.id,
        provider_id=provider.id,
        price=price,
        delivery_window_start=fields.pop("delivery_window_start", now + timedelta(hours=2)),
        delivery_window_end=fields.pop("delivery_window_end", now + timedelta(hours=4)),
        expires_at=now + timedelta(minutes=expires_in_minutes),
        **fields,
    )
    session.add(offer)
    session.commit()
    session.refresh(offer)
    return offer



# app/routers/admin_settings.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.models.profile import Profile
from app.schemas.commission import (
    PaymentRead,
    PaymentReject,
    PaymentVerify,
    PendingPaymentRead,
)
from app.schemas.settings import (
    OfferSettings,
    OfferSettingsUpdate,
    PricingSettings,
    PricingSettingsUpdate,
)
from app.services.wiring import settings_service, settlement_service

router = APIRouter(prefix="/admin", tags=["Admin Settings"])


# -------- Offer timing --------


@router.get(
    "/settings",
    response_model=OfferSettings,
    dependencies=[Depends(require_admin)],
)
def get_offer_settings(session: Session = Depends(get_session)):
    """Offer validity bounds, request timeout and dispute window."""
    return settings_service.get_offer_settings(session)


@router.put("/settings", response_model=OfferSettings)
def update_offer_settings(
    payload: OfferSettingsUpdate,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    return settings_service.update_offer_settings(session, payload, admin)


# -------- Pricing --------


@router.get(
    "/pricing",
    response_model=PricingSettings,
    dependencies=[Depends(require_admin)],
)
def get_pricing(session: Session = Depends(get_session)):
    return settings_service.get_pricing(session)


@router.put("/pricing", response_model=PricingSettings)
def update_pricing(
    payload: PricingSettingsUpdate,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    """
    Replace all price tiers, the urgency surcharge and the default commission.
    """
    return settings_service.update_pricing(session, payload, admin)


# -------- Settlement --------


@router.get(
    "/payments",
    response_model=list[PendingPaymentRead],
    dependencies=[Depends(require_admin)],
)
def list_pending_payments(session: Session = Depends(get_session)):
    """Commission payments waiting for verification, oldest first."""
    return settlement_service.list_pending_payments(session)


@router.get(
    "/payments/{payment_id}/receipt",
    dependencies=[Depends(require_admin)],
)
def get_payment_receipt(
    payment_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Short-lived signed link to the transfer receipt, or null."""
    return {"url": settlement_service.get_receipt_url(session, payment_id)}


@router.post("/payments/{payment_id}/verify", response_model=PaymentRead)
def verify_payment(
    payment_id: uuid.UUID,
    payload: PaymentVerify,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    return settlement_service.verify_payment(session, payment_id, payload, admin)


@router.post("/payments/{payment_id}/reject", response_model=PaymentRead)
def reject_payment(
    payment_id: uuid.UUID,
    payload: PaymentReject,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    return settlement_service.reject_payment(session, payment_id, payload, admin)

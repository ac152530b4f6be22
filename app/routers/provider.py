# app/routers/provider.py
import uuid
from datetime import datetime

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    UploadFile,
    status,
)
from sqlmodel import Session

from app.core.auth import require_approved_supplier, require_auth, require_supplier
from app.database import get_session
from app.models.profile import Profile
from app.schemas.commission import EarningsRead, PaymentRead
from app.schemas.offer import (
    AvailableRequestsRead,
    DeliveryCompleteResult,
    MyOffersRead,
    OfferCreate,
    OfferPreview,
    OfferRead,
    RequestDetailRead,
)
from app.schemas.profile import (
    AvailabilityResult,
    AvailabilityUpdate,
    DocumentRead,
    DocumentType,
    ProfileRead,
    ProviderRegister,
    ServiceAreaRead,
    ServiceAreasUpdate,
)
from app.services.wiring import delivery_service, offer_service, provider_service

router = APIRouter(prefix="/provider", tags=["Provider"])


# -------- Onboarding --------


@router.post("/register", response_model=ProfileRead)
def register_provider(
    payload: ProviderRegister,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_auth),
):
    """
    Apply to become a supplier (or resubmit after rejection / info request).

    The account stays in verification_status="pending" until an admin decides.
    """
    return provider_service.register_provider(session, payload, current_user)


@router.get("/documents", response_model=list[DocumentRead])
def list_documents(
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    return provider_service.list_documents(session, current_user.id)


@router.post(
    "/documents",
    response_model=DocumentRead,
    status_code=status.HTTP_201_CREATED,
)
def upload_document(
    document_type: DocumentType = Form(...),
    expires_at: datetime | None = Form(None),
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    """
    Upload a verification document (PDF, JPG, PNG or WEBP, max 10MB).
    """
    if not file.content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Falta el tipo de contenido del archivo",
        )

    file_bytes = file.file.read()
    return provider_service.upload_document(
        session=session,
        provider=current_user,
        document_type=document_type,
        content_type=file.content_type,
        file_bytes=file_bytes,
        original_filename=file.filename,
        expires_at=expires_at,
    )


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    provider_service.delete_document(session, current_user, document_id)
    return None


# -------- Settings --------


@router.get("/service-areas", response_model=list[ServiceAreaRead])
def get_service_areas(
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_approved_supplier),
):
    return provider_service.get_service_areas(session, current_user)


@router.put("/service-areas", response_model=list[ServiceAreaRead])
def update_service_areas(
    payload: ServiceAreasUpdate,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_approved_supplier),
):
    """Replace the supplier's comunas; at least one is required."""
    return provider_service.update_service_areas(session, current_user, payload.comuna_ids)


@router.post("/availability", response_model=AvailabilityResult)
def toggle_availability(
    payload: AvailabilityUpdate,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_approved_supplier),
):
    """
    Go online / offline.

    Going offline with deliveries in progress returns
    needs_confirmation=true; repeat with skip_warning=true to confirm.
    """
    return provider_service.toggle_availability(session, current_user, payload)


# -------- Requests & offers --------


@router.get("/requests", response_model=AvailableRequestsRead)
def get_available_requests(
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    """
    Pending requests in the supplier's comunas, urgent first.

    Unverified, offline or area-less suppliers get an empty list plus
    provider_status explaining why.
    """
    return offer_service.get_available_requests(session, current_user)


@router.get("/requests/{request_id}", response_model=RequestDetailRead)
def get_request_detail(
    request_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_approved_supplier),
):
    return offer_service.get_request_detail(session, request_id, current_user)


@router.post(
    "/requests/{request_id}/offers",
    response_model=OfferRead,
    status_code=status.HTTP_201_CREATED,
)
def create_offer(
    request_id: uuid.UUID,
    payload: OfferCreate,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    """Bid on a pending request. One offer per supplier per request."""
    return offer_service.create_offer(session, request_id, payload, current_user)


@router.get("/offer-preview", response_model=OfferPreview)
def get_offer_preview(
    amount: int = Query(..., gt=0),
    is_urgent: bool = False,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_approved_supplier),
):
    """Price, commission and net earnings for a request size."""
    return offer_service.get_offer_preview(session, amount, is_urgent, current_user)


@router.get("/offers", response_model=MyOffersRead)
def get_my_offers(
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    return offer_service.get_my_offers(session, current_user)


@router.post("/offers/{offer_id}/withdraw", response_model=OfferRead)
def withdraw_offer(
    offer_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    return offer_service.withdraw_offer(session, offer_id, current_user)


@router.post("/offers/{offer_id}/complete", response_model=DeliveryCompleteResult)
def complete_delivery(
    offer_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    """
    Mark the accepted offer as delivered.

    Writes the platform commission to the ledger.
    """
    return delivery_service.complete_delivery(session, offer_id, current_user)


# -------- Earnings --------


@router.get("/earnings", response_model=EarningsRead)
def get_earnings(
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    return provider_service.get_earnings(session, current_user)


@router.post(
    "/earnings/payments",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_commission_payment(
    amount: int = Form(...),
    receipt: UploadFile | None = File(None),
    session: Session = Depends(get_session),
    current_user: Profile = Depends(require_supplier),
):
    """
    Report a commission transfer; an admin verifies it.

    The receipt (image or PDF) is optional.
    """
    receipt_payload = None
    if receipt is not None:
        if not receipt.content_type:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Falta el tipo de contenido del comprobante",
            )
        receipt_payload = (receipt.content_type, receipt.file.read())

    return provider_service.submit_commission_payment(
        session, current_user, amount, receipt_payload
    )

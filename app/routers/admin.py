# app/routers/admin.py
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.models.profile import Profile
from app.schemas.admin import (
    AdminOrderDetail,
    AdminOrdersRead,
    AllowedEmailCreate,
    AllowedEmailRead,
    CommissionOverrideUpdate,
    MetricsPeriod,
    MetricsRead,
    OrderCancel,
    ProviderAdminRead,
    SuspendPayload,
    VerificationDecision,
    VerificationQueueRead,
)
from app.schemas.dispute import DisputeRead, DisputeResolve, DisputeStatus
from app.schemas.profile import VerificationStatus
from app.schemas.water_request import RequestStatus
from app.services.wiring import admin_service as service
from app.services.wiring import dispute_service

router = APIRouter(prefix="/admin", tags=["Admin"])


# -------- Verification & providers --------


@router.get(
    "/verification",
    response_model=VerificationQueueRead,
    dependencies=[Depends(require_admin)],
)
def get_verification_queue(session: Session = Depends(get_session)):
    """Supplier applications awaiting a decision, oldest first."""
    return service.get_verification_queue(session)


@router.get(
    "/providers",
    response_model=list[ProviderAdminRead],
    dependencies=[Depends(require_admin)],
)
def list_providers(
    status_filter: VerificationStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 50,
    session: Session = Depends(get_session),
):
    """
    Supplier directory.

    Query params (optional):
      - status_filter: verification status
      - search: name, email or phone (case-insensitive)
    """
    return service.list_providers(session, status_filter, search, skip, limit)


@router.get(
    "/providers/{provider_id}",
    response_model=ProviderAdminRead,
    dependencies=[Depends(require_admin)],
)
def get_provider(
    provider_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_provider(session, provider_id)


@router.post("/providers/{provider_id}/verify", response_model=ProviderAdminRead)
def verify_provider(
    provider_id: uuid.UUID,
    payload: VerificationDecision,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    """Approve, reject, or ask the supplier for more information."""
    return service.verify_provider(session, provider_id, payload, admin)


@router.post("/providers/{provider_id}/suspend", response_model=ProviderAdminRead)
def suspend_provider(
    provider_id: uuid.UUID,
    payload: SuspendPayload,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    return service.suspend_provider(session, provider_id, payload.reason, admin)


@router.post("/providers/{provider_id}/unsuspend", response_model=ProviderAdminRead)
def unsuspend_provider(
    provider_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    return service.unsuspend_provider(session, provider_id, admin)


@router.post("/providers/{provider_id}/ban", response_model=ProviderAdminRead)
def ban_provider(
    provider_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    return service.ban_provider(session, provider_id, admin)


@router.patch("/providers/{provider_id}/commission", response_model=ProviderAdminRead)
def update_commission_override(
    provider_id: uuid.UUID,
    payload: CommissionOverrideUpdate,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    """Per-supplier commission percent; null resets to the platform default."""
    return service.update_commission_override(session, provider_id, payload, admin)


# -------- Orders --------


@router.get(
    "/orders",
    response_model=AdminOrdersRead,
    dependencies=[Depends(require_admin)],
)
def list_orders(
    status_filter: RequestStatus | None = None,
    comuna_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    skip: int = 0,
    limit: int = 50,
    session: Session = Depends(get_session),
):
    return service.list_orders(
        session, status_filter, comuna_id, date_from, date_to, skip, limit
    )


@router.get(
    "/orders/{request_id}",
    response_model=AdminOrderDetail,
    dependencies=[Depends(require_admin)],
)
def get_order(
    request_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Order detail with its full offer history."""
    return service.get_order(session, request_id)


@router.post("/orders/{request_id}/cancel", response_model=AdminOrderDetail)
def cancel_order(
    request_id: uuid.UUID,
    payload: OrderCancel,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    return service.cancel_order(session, request_id, payload.reason, admin)


# -------- Disputes --------


@router.get(
    "/disputes",
    response_model=list[DisputeRead],
    dependencies=[Depends(require_admin)],
)
def list_disputes(
    status_filter: DisputeStatus | None = None,
    skip: int = 0,
    limit: int = 50,
    session: Session = Depends(get_session),
):
    return dispute_service.list_disputes(session, status_filter, skip, limit)


@router.get(
    "/disputes/{dispute_id}",
    response_model=DisputeRead,
    dependencies=[Depends(require_admin)],
)
def get_dispute(
    dispute_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return dispute_service.get_dispute(session, dispute_id)


@router.post(
    "/disputes/{dispute_id}/review",
    response_model=DisputeRead,
    dependencies=[Depends(require_admin)],
)
def mark_dispute_under_review(
    dispute_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return dispute_service.mark_under_review(session, dispute_id)


@router.post("/disputes/{dispute_id}/resolve", response_model=DisputeRead)
def resolve_dispute(
    dispute_id: uuid.UUID,
    payload: DisputeResolve,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    """Resolve in favour of the consumer or the provider; both are notified."""
    return dispute_service.resolve_dispute(session, dispute_id, payload, admin)


# -------- Admin access --------


@router.get(
    "/allowed-emails",
    response_model=list[AllowedEmailRead],
    dependencies=[Depends(require_admin)],
)
def list_allowed_emails(session: Session = Depends(get_session)):
    return service.list_allowed_emails(session)


@router.post(
    "/allowed-emails",
    response_model=AllowedEmailRead,
    status_code=status.HTTP_201_CREATED,
)
def add_allowed_email(
    payload: AllowedEmailCreate,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    return service.add_allowed_email(session, payload, admin)


@router.delete("/allowed-emails/{email}", status_code=status.HTTP_204_NO_CONTENT)
def remove_allowed_email(
    email: str,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    service.remove_allowed_email(session, email, admin)
    return None


# -------- Metrics --------


@router.get(
    "/metrics",
    response_model=MetricsRead,
    dependencies=[Depends(require_admin)],
)
def get_metrics(
    period: MetricsPeriod = "week",
    session: Session = Depends(get_session),
):
    """
    Dashboard metrics for the current period.

    Query params (optional):
      - period: today | week | month (default week)
    """
    return service.get_metrics(session, period)

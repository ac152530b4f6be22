# app/routers/cron.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_cron_secret
from app.database import get_session
from app.schemas.jobs import ExpireOffersResult, RequestTimeoutResult
from app.services.wiring import lifecycle_service as service

router = APIRouter(
    prefix="/cron",
    tags=["Cron"],
    dependencies=[Depends(require_cron_secret)],
)


@router.get("/expire-offers", response_model=ExpireOffersResult)
def expire_offers(session: Session = Depends(get_session)):
    """
    Expire active offers past their expires_at.

    Auth:
      - Authorization: Bearer <CRON_SECRET>
    """
    return service.expire_offers(session)


@router.get("/request-timeout", response_model=RequestTimeoutResult)
def request_timeout(session: Session = Depends(get_session)):
    """
    Move pending requests without offers past request_timeout_hours
    to no_offers and tell the consumer.

    Auth:
      - Authorization: Bearer <CRON_SECRET>
    """
    return service.timeout_requests(session)

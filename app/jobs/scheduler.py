# app/jobs/scheduler.py
import asyncio
import logging

from sqlmodel import Session

from app.core.config import get_settings
from app.database import engine
from app.services.wiring import lifecycle_service

logger = logging.getLogger(__name__)
settings = get_settings()


def run_lifecycle_once() -> None:
    """Expire stale offers, then time out requests left without offers."""
    with Session(engine) as session:
        expired = lifecycle_service.expire_offers(session)
        timed_out = lifecycle_service.timeout_requests(session)
    if expired.expired_count or timed_out.timed_out_count:
        logger.info(
            "Lifecycle run: %d offer(s) expired, %d request(s) timed out",
            expired.expired_count,
            timed_out.timed_out_count,
        )
    else:
        logger.debug("Lifecycle run: nothing to do")


async def lifecycle_loop(interval_seconds: int | None = None) -> None:
    """Background task that periodically runs the lifecycle jobs."""
    interval = interval_seconds or settings.LIFECYCLE_INTERVAL_SECONDS
    logger.info("Lifecycle scheduler started (every %ss)", interval)
    while True:
        try:
            await asyncio.to_thread(run_lifecycle_once)
        except Exception:
            logger.exception("Error in lifecycle scheduler loop")

        await asyncio.sleep(interval)

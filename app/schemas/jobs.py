# app/schemas/jobs.py
from sqlmodel import SQLModel


class ExpireOffersResult(SQLModel):
    expired_count: int
    notifications_sent: int
    duration_ms: int


class RequestTimeoutResult(SQLModel):
    timed_out_count: int
    notifications_sent: int
    notifications_failed: int
    skipped_with_offers: int
    duration_ms: int

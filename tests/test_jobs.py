from datetime import timedelta

from sqlmodel import select

from app.core.clock import utcnow
from app.jobs.scheduler import run_lifecycle_once
from app.models.notification import Notification
from app.models.offer import Offer
from app.models.water_request import WaterRequest
from factories import CRON_HEADERS, make_offer, make_request, make_supplier

API = "/api/v1"


def test_cron_requires_secret(client):
    assert client.get(f"{API}/cron/expire-offers").status_code == 401
    assert client.get(
        f"{API}/cron/expire-offers", headers={"Authorization": "Bearer wrong"}
    ).status_code == 401
    assert client.get(f"{API}/cron/request-timeout").status_code == 401


# -------- Offer expiry --------


def test_expire_offers_moves_only_stale_active_offers(client, session, supplier):
    request = make_request(session)
    other = make_supplier(session, name="Agua Pura")
    stale = make_offer(session, request, supplier, expires_in_minutes=-1)
    fresh = make_offer(session, request, other, expires_in_minutes=20)

    response = client.get(f"{API}/cron/expire-offers", headers=CRON_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["expired_count"] == 1
    assert body["notifications_sent"] == 1

    session.expire_all()
    assert session.get(Offer, stale.id).status == "expired"
    assert session.get(Offer, fresh.id).status == "active"
    notice = session.exec(
        select(Notification).where(Notification.user_id == supplier.id)
    ).one()
    assert notice.type == "offer_expired"


def test_expire_offers_is_idempotent(client, session, supplier):
    make_offer(session, make_request(session), supplier, expires_in_minutes=-1)

    first = client.get(f"{API}/cron/expire-offers", headers=CRON_HEADERS).json()
    second = client.get(f"{API}/cron/expire-offers", headers=CRON_HEADERS).json()

    assert first["expired_count"] == 1
    assert second["expired_count"] == 0
    assert second["notifications_sent"] == 0


# -------- Request timeout --------


def test_request_timeout_closes_old_requests_without_offers(client, session, consumer):
    old = make_request(session, consumer=consumer, created_at=utcnow() - timedelta(hours=5))
    recent = make_request(session, created_at=utcnow() - timedelta(hours=1))

    response = client.get(f"{API}/cron/request-timeout", headers=CRON_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["timed_out_count"] == 1
    assert body["notifications_sent"] == 1

    session.expire_all()
    stored = session.get(WaterRequest, old.id)
    assert stored.status == "no_offers"
    assert stored.timed_out_at is not None
    assert session.get(WaterRequest, recent.id).status == "pending"


def test_request_timeout_skips_requests_with_active_offers(client, session, supplier):
    request = make_request(session, created_at=utcnow() - timedelta(hours=6))
    make_offer(session, request, supplier)

    body = client.get(f"{API}/cron/request-timeout", headers=CRON_HEADERS).json()

    assert body["timed_out_count"] == 0
    assert body["skipped_with_offers"] == 1


def test_guest_timeout_without_smtp_counts_as_failed(client, session):
    make_request(
        session,
        guest_email="pedro@example.com",
        created_at=utcnow() - timedelta(hours=5),
    )

    body = client.get(f"{API}/cron/request-timeout", headers=CRON_HEADERS).json()

    assert body["timed_out_count"] == 1
    assert body["notifications_failed"] == 1


def test_scheduler_run_expires_then_times_out(session, supplier):
    request = make_request(session, created_at=utcnow() - timedelta(hours=5))
    offer = make_offer(session, request, supplier, expires_in_minutes=-1)

    run_lifecycle_once()

    session.expire_all()
    assert session.get(Offer, offer.id).status == "expired"
    # With its only offer expired, the request no longer waits
    assert session.get(WaterRequest, request.id).status == "no_offers"

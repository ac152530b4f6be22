from types import SimpleNamespace

import pytest
from pywebpush import WebPushException
from sqlmodel import select

from app.models.notification import Notification, PushSubscription
from app.services import push_service as push_module
from factories import auth_headers, make_profile

API = "/api/v1"

SUBSCRIPTION = {
    "endpoint": "https://fcm.googleapis.com/fcm/send/abc123",
    "keys": {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA", "auth": "tBHItJI5svbpez7KI4CCXg"},
    "expirationTime": None,
}


@pytest.fixture
def vapid(monkeypatch):
    monkeypatch.setattr(push_module.settings, "VAPID_PUBLIC_KEY", "BPublicKeyForTests")
    monkeypatch.setattr(push_module.settings, "VAPID_PRIVATE_KEY", "private-key-for-tests")
    monkeypatch.setattr(push_module.settings, "VAPID_CLAIMS_EMAIL", "mailto:soporte@nitoagua.cl")


@pytest.fixture
def sent(monkeypatch):
    """Captures webpush calls; returns the list of subscription_info dicts."""
    calls = []

    def fake_webpush(subscription_info, data, vapid_private_key, vapid_claims):
        calls.append(subscription_info)

    monkeypatch.setattr(push_module, "webpush", fake_webpush)
    return calls


def _notice(session, user, type_="new_offer", read=False):
    notification = Notification(
        user_id=user.id,
        type=type_,
        title="Nueva oferta",
        message="Recibiste una oferta por 1.000L",
        read=read,
    )
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return notification


# -------- In-app inbox --------


def test_inbox_lists_only_own_notifications(client, session, consumer):
    _notice(session, consumer)
    _notice(session, consumer, type_="offer_expired", read=True)
    _notice(session, make_profile(session, name="Otra Persona"))
    headers = auth_headers(consumer)

    everything = client.get(f"{API}/notifications", headers=headers).json()
    unread = client.get(f"{API}/notifications?unread_only=true", headers=headers).json()

    assert len(everything) == 2
    assert [n["type"] for n in unread] == ["new_offer"]
    assert client.get(f"{API}/notifications/unread-count", headers=headers).json() == {"unread": 1}


def test_mark_read_and_read_all(client, session, consumer):
    first = _notice(session, consumer)
    _notice(session, consumer)
    headers = auth_headers(consumer)

    marked = client.post(f"{API}/notifications/{first.id}/read", headers=headers)
    assert marked.status_code == 200
    assert marked.json()["read"] is True
    assert client.get(f"{API}/notifications/unread-count", headers=headers).json()["unread"] == 1

    client.post(f"{API}/notifications/read-all", headers=headers)
    assert client.get(f"{API}/notifications/unread-count", headers=headers).json()["unread"] == 0


def test_cannot_mark_someone_elses_notification(client, session, consumer):
    foreign = _notice(session, make_profile(session, name="Otra Persona"))

    response = client.post(
        f"{API}/notifications/{foreign.id}/read", headers=auth_headers(consumer)
    )
    assert response.status_code == 404


def test_inbox_requires_auth(client):
    assert client.get(f"{API}/notifications").status_code == 401


# -------- Web Push --------


def test_vapid_key_unavailable_without_configuration(client, monkeypatch):
    monkeypatch.setattr(push_module.settings, "VAPID_PUBLIC_KEY", None)
    monkeypatch.setattr(push_module.settings, "VAPID_PRIVATE_KEY", None)

    assert client.get(f"{API}/push/vapid-public-key").status_code == 503


def test_vapid_key_is_exposed(client, vapid):
    body = client.get(f"{API}/push/vapid-public-key").json()
    assert body == {"public_key": "BPublicKeyForTests"}


def test_subscribe_is_idempotent_per_endpoint(client, session, consumer):
    headers = auth_headers(consumer)

    assert client.post(f"{API}/push/subscribe", json=SUBSCRIPTION, headers=headers).status_code == 204
    assert client.post(f"{API}/push/subscribe", json=SUBSCRIPTION, headers=headers).status_code == 204

    rows = session.exec(select(PushSubscription)).all()
    assert [r.endpoint for r in rows] == [SUBSCRIPTION["endpoint"]]

    gone = client.post(
        f"{API}/push/unsubscribe", json={"endpoint": SUBSCRIPTION["endpoint"]}, headers=headers
    )
    assert gone.status_code == 204
    session.expire_all()
    assert session.exec(select(PushSubscription)).all() == []


def test_test_push_reaches_every_device(client, session, consumer, vapid, sent):
    headers = auth_headers(consumer)
    client.post(f"{API}/push/subscribe", json=SUBSCRIPTION, headers=headers)
    client.post(
        f"{API}/push/subscribe",
        json={**SUBSCRIPTION, "endpoint": "https://updates.push.services.mozilla.com/wpush/v2/xyz"},
        headers=headers,
    )

    body = client.post(f"{API}/push/test", headers=headers).json()

    assert body == {"sent": 2, "failed": 0, "expired": 0}
    assert len(sent) == 2


def test_gone_subscription_is_pruned(client, session, consumer, vapid, monkeypatch):
    def gone(**kwargs):
        raise WebPushException("Push failed: 410 Gone", response=SimpleNamespace(status_code=410))

    monkeypatch.setattr(push_module, "webpush", gone)
    headers = auth_headers(consumer)
    client.post(f"{API}/push/subscribe", json=SUBSCRIPTION, headers=headers)

    body = client.post(f"{API}/push/test", headers=headers).json()

    assert body == {"sent": 0, "failed": 0, "expired": 1}
    session.expire_all()
    assert session.exec(select(PushSubscription)).all() == []


def test_push_skipped_when_not_configured(client, consumer, monkeypatch, sent):
    monkeypatch.setattr(push_module.settings, "VAPID_PRIVATE_KEY", None)
    headers = auth_headers(consumer)
    client.post(f"{API}/push/subscribe", json=SUBSCRIPTION, headers=headers)

    body = client.post(f"{API}/push/test", headers=headers).json()

    assert body == {"sent": 0, "failed": 0, "expired": 0}
    assert sent == []

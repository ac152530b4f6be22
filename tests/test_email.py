import smtplib
from datetime import timedelta

import pytest

from app.core import email_client
from app.core.clock import utcnow
from factories import CRON_HEADERS, make_request

API = "/api/v1"


@pytest.fixture
def outbox(monkeypatch):
    """SMTP replaced by an in-memory list of (to, subject, body)."""
    sent = []

    def fake_send(to_email, subject, text_body, html_body=None):
        sent.append((to_email, subject, text_body))

    monkeypatch.setattr(email_client, "is_configured", lambda: True)
    monkeypatch.setattr(email_client, "send_email", fake_send)
    return sent


def test_guest_gets_confirmation_with_tracking_link(client, outbox):
    response = client.post(
        f"{API}/requests",
        json={
            "name": "Pedro Soto",
            "phone": "+56912345678",
            "email": "pedro@example.com",
            "comuna_id": "pucon",
            "address": "Los Robles 450",
            "special_instructions": "Portón negro",
            "amount": 5000,
        },
    )

    token = response.json()["tracking_token"]
    [(to, subject, body)] = outbox
    assert to == "pedro@example.com"
    assert subject == "[nitoagua] Recibimos tu solicitud de agua"
    assert "5 mil litros" in body
    assert "Pucón" in body
    assert f"/track/{token}" in body


def test_timeout_email_counts_as_sent(client, session, outbox):
    make_request(
        session,
        guest_email="pedro@example.com",
        created_at=utcnow() - timedelta(hours=5),
    )

    body = client.get(f"{API}/cron/request-timeout", headers=CRON_HEADERS).json()

    assert body["notifications_sent"] == 1
    assert body["notifications_failed"] == 0
    assert outbox[0][1] == "[nitoagua] Sin ofertas para tu solicitud"


def test_smtp_failure_does_not_break_request_creation(client, monkeypatch):
    def broken(**kwargs):
        raise smtplib.SMTPException("connection refused")

    monkeypatch.setattr(email_client, "is_configured", lambda: True)
    monkeypatch.setattr(email_client, "send_email", broken)

    response = client.post(
        f"{API}/requests",
        json={
            "name": "Pedro Soto",
            "phone": "+56912345678",
            "email": "pedro@example.com",
            "address": "Los Robles 450",
            "special_instructions": "Portón negro",
            "amount": 100,
        },
    )
    assert response.status_code == 201

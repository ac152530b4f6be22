from datetime import timedelta

from sqlmodel import select

from app.core.clock import utcnow
from app.models.notification import Notification
from factories import auth_headers, make_profile, make_request

API = "/api/v1"


def _delivered(session, consumer, supplier, hours_ago: float = 1):
    return make_request(
        session,
        consumer=consumer,
        status="delivered",
        supplier_id=supplier.id,
        accepted_at=utcnow() - timedelta(hours=hours_ago + 1),
        delivered_at=utcnow() - timedelta(hours=hours_ago),
    )


def _file(client, consumer, request, dispute_type="wrong_quantity"):
    return client.post(
        f"{API}/disputes",
        json={
            "request_id": str(request.id),
            "dispute_type": dispute_type,
            "description": "Llegaron menos litros",
        },
        headers=auth_headers(consumer),
    )


# -------- Filing --------


def test_consumer_files_dispute_and_admins_are_notified(client, session, consumer, supplier, admin):
    request = _delivered(session, consumer, supplier)

    response = _file(client, consumer, request)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "open"
    assert body["provider_id"] == str(supplier.id)

    session.expire_all()
    notices = session.exec(select(Notification).where(Notification.user_id == admin.id)).all()
    assert [n.type for n in notices] == ["dispute_created"]
    assert notices[0].title == "Nueva Disputa Reportada"


def test_eligibility_reports_deadline(client, session, consumer, supplier):
    request = _delivered(session, consumer, supplier)

    body = client.get(
        f"{API}/disputes/eligibility/{request.id}", headers=auth_headers(consumer)
    ).json()

    assert body["can_file"] is True
    assert body["deadline"] is not None


def test_second_dispute_conflicts(client, session, consumer, supplier):
    request = _delivered(session, consumer, supplier)
    assert _file(client, consumer, request).status_code == 201

    again = _file(client, consumer, request, dispute_type="other")

    assert again.status_code == 409
    eligibility = client.get(
        f"{API}/disputes/eligibility/{request.id}", headers=auth_headers(consumer)
    ).json()
    assert eligibility["can_file"] is False
    assert eligibility["existing_dispute_id"] is not None


def test_dispute_window_expired(client, session, consumer, supplier):
    request = _delivered(session, consumer, supplier, hours_ago=49)

    response = _file(client, consumer, request)

    assert response.status_code == 400
    assert response.json()["detail"] == (
        "El plazo para disputar ha expirado (48 horas después de la entrega)"
    )


def test_undelivered_request_cannot_be_disputed(client, session, consumer, supplier):
    request = make_request(session, consumer=consumer, status="accepted", supplier_id=supplier.id)

    response = _file(client, consumer, request)

    assert response.status_code == 400
    assert response.json()["detail"] == "Solo puedes disputar solicitudes entregadas"


def test_other_consumer_cannot_dispute(client, session, consumer, supplier):
    request = _delivered(session, consumer, supplier)
    stranger = make_profile(session, name="Otra Persona")

    assert _file(client, stranger, request).status_code == 403


def test_supplier_cannot_file_disputes(client, session, consumer, supplier):
    request = _delivered(session, consumer, supplier)
    assert _file(client, supplier, request).status_code == 403


def test_dispute_visible_to_both_parties(client, session, consumer, supplier):
    request = _delivered(session, consumer, supplier)
    dispute_id = _file(client, consumer, request).json()["id"]

    for party in (consumer, supplier):
        body = client.get(
            f"{API}/disputes/request/{request.id}", headers=auth_headers(party)
        ).json()
        assert body["id"] == dispute_id

    stranger = make_profile(session, name="Otra Persona")
    assert client.get(
        f"{API}/disputes/request/{request.id}", headers=auth_headers(stranger)
    ).status_code == 403


# -------- Admin resolution --------


def test_admin_reviews_and_resolves_dispute(client, session, consumer, supplier, admin):
    request = _delivered(session, consumer, supplier)
    dispute_id = _file(client, consumer, request).json()["id"]
    headers = auth_headers(admin)

    listed = client.get(f"{API}/admin/disputes?status_filter=open", headers=headers).json()
    assert [d["id"] for d in listed] == [dispute_id]

    review = client.post(f"{API}/admin/disputes/{dispute_id}/review", headers=headers)
    assert review.json()["status"] == "under_review"

    resolved = client.post(
        f"{API}/admin/disputes/{dispute_id}/resolve",
        json={"resolution": "resolved_consumer", "notes": "Se verificó el faltante"},
        headers=headers,
    )
    assert resolved.status_code == 200
    body = resolved.json()
    assert body["status"] == "resolved_consumer"
    assert body["resolved_by"] == str(admin.id)
    assert body["resolution_notes"] == "Se verificó el faltante"

    session.expire_all()
    for party in (consumer.id, supplier.id):
        types = [
            n.type
            for n in session.exec(select(Notification).where(Notification.user_id == party)).all()
        ]
        assert "dispute_resolved" in types


def test_resolved_dispute_cannot_be_resolved_again(client, session, consumer, supplier, admin):
    request = _delivered(session, consumer, supplier)
    dispute_id = _file(client, consumer, request).json()["id"]
    headers = auth_headers(admin)
    payload = {"resolution": "resolved_provider", "notes": "Entrega conforme"}

    assert client.post(
        f"{API}/admin/disputes/{dispute_id}/resolve", json=payload, headers=headers
    ).status_code == 200
    again = client.post(
        f"{API}/admin/disputes/{dispute_id}/resolve", json=payload, headers=headers
    )

    assert again.status_code == 409
    assert again.json()["detail"] == "Esta disputa ya fue resuelta"


def test_resolution_requires_notes(client, session, consumer, supplier, admin):
    request = _delivered(session, consumer, supplier)
    dispute_id = _file(client, consumer, request).json()["id"]

    response = client.post(
        f"{API}/admin/disputes/{dispute_id}/resolve",
        json={"resolution": "resolved_provider", "notes": "   "},
        headers=auth_headers(admin),
    )
    assert response.status_code == 422


def test_non_admin_cannot_resolve(client, session, consumer, supplier):
    request = _delivered(session, consumer, supplier)
    dispute_id = _file(client, consumer, request).json()["id"]

    response = client.post(
        f"{API}/admin/disputes/{dispute_id}/resolve",
        json={"resolution": "resolved_consumer", "notes": "x"},
        headers=auth_headers(consumer),
    )
    assert response.status_code == 403

import uuid

from app.models.offer import Offer
from app.models.water_request import WaterRequest
from factories import auth_headers, make_offer, make_profile, make_request, make_supplier

API = "/api/v1"

GUEST_PAYLOAD = {
    "name": "Pedro Soto",
    "phone": "+56912345678",
    "email": "pedro@example.com",
    "comuna_id": "villarrica",
    "address": "Camino Villarrica-Pucón km 12",
    "special_instructions": "Casa azul con portón verde",
    "amount": 1000,
    "is_urgent": False,
    "payment_method": "cash",
}


# -------- Creation --------


def test_guest_creates_request_with_tracking_token(client, session):
    response = client.post(f"{API}/requests", json=GUEST_PAYLOAD)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["tracking_token"]

    stored = session.get(WaterRequest, uuid.UUID(body["id"]))
    assert stored.consumer_id is None
    assert stored.guest_email == "pedro@example.com"
    assert stored.tracking_token == body["tracking_token"]


def test_registered_consumer_request_is_linked(client, consumer):
    response = client.post(
        f"{API}/requests",
        json={**GUEST_PAYLOAD, "email": None},
        headers=auth_headers(consumer),
    )
    assert response.status_code == 201

    mine = client.get(f"{API}/requests", headers=auth_headers(consumer))
    assert mine.status_code == 200
    assert [r["id"] for r in mine.json()] == [response.json()["id"]]
    assert mine.json()[0]["consumer_id"] == str(consumer.id)


def test_create_rejects_invalid_amount_and_phone(client):
    bad_amount = client.post(f"{API}/requests", json={**GUEST_PAYLOAD, "amount": 750})
    bad_phone = client.post(f"{API}/requests", json={**GUEST_PAYLOAD, "phone": "12345"})
    bad_comuna = client.post(f"{API}/requests", json={**GUEST_PAYLOAD, "comuna_id": "santiago"})

    assert bad_amount.status_code == 422
    assert bad_phone.status_code == 422
    assert bad_comuna.status_code == 422


def test_list_requires_auth(client):
    assert client.get(f"{API}/requests").status_code == 401


# -------- Tracking --------


def test_track_shows_timeline_and_offer_count(client, session, supplier):
    request = make_request(session)
    make_offer(session, request, supplier)

    response = client.get(f"{API}/requests/track/{request.tracking_token}")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["active_offer_count"] == 1
    assert body["accepted_offer"] is None
    steps = [(s["step"], s["completed"]) for s in body["timeline"]]
    assert steps == [("created", True), ("accepted", False), ("delivered", False)]


def test_track_unknown_token_is_404(client):
    assert client.get(f"{API}/requests/track/nope").status_code == 404


def test_track_accepted_request_includes_provider(client, session, supplier):
    request = make_request(session)
    offer = make_offer(session, request, supplier)
    client.post(f"{API}/offers/{offer.id}/select?token={request.tracking_token}")

    body = client.get(f"{API}/requests/track/{request.tracking_token}").json()

    assert body["status"] == "accepted"
    assert body["accepted_offer"]["provider_name"] == supplier.name
    assert body["accepted_offer"]["price"] == offer.price


# -------- Visibility --------


def test_request_visible_to_owner_by_token(client, session):
    request = make_request(session)

    with_token = client.get(f"{API}/requests/{request.id}?token={request.tracking_token}")
    without = client.get(f"{API}/requests/{request.id}")

    assert with_token.status_code == 200
    assert without.status_code == 404


def test_pending_request_visible_to_approved_supplier_only(client, session, supplier):
    request = make_request(session)
    pending_supplier = make_supplier(session, verification_status="pending")

    assert client.get(
        f"{API}/requests/{request.id}", headers=auth_headers(supplier)
    ).status_code == 200
    assert client.get(
        f"{API}/requests/{request.id}", headers=auth_headers(pending_supplier)
    ).status_code == 404


def test_other_consumer_cannot_see_request(client, session, consumer):
    request = make_request(session, consumer=consumer)
    stranger = make_profile(session, name="Otra Persona")

    response = client.get(f"{API}/requests/{request.id}", headers=auth_headers(stranger))
    assert response.status_code == 404


def test_admin_sees_any_request(client, session, admin):
    request = make_request(session)
    response = client.get(f"{API}/requests/{request.id}", headers=auth_headers(admin))
    assert response.status_code == 200


# -------- Cancellation --------


def test_cancel_pending_request_cancels_open_offers(client, session, consumer, supplier):
    request = make_request(session, consumer=consumer)
    offer = make_offer(session, request, supplier)

    response = client.post(
        f"{API}/requests/{request.id}/cancel",
        json={"reason": "  Ya conseguí agua  "},
        headers=auth_headers(consumer),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["cancellation_reason"] == "Ya conseguí agua"

    session.expire_all()
    assert session.get(Offer, offer.id).status == "cancelled"


def test_guest_cancels_accepted_request_with_token(client, session, supplier):
    request = make_request(session)
    offer = make_offer(session, request, supplier)
    client.post(f"{API}/offers/{offer.id}/select?token={request.tracking_token}")

    response = client.post(
        f"{API}/requests/{request.id}/cancel?token={request.tracking_token}",
        json={},
    )

    assert response.status_code == 200
    session.expire_all()
    assert session.get(Offer, offer.id).status == "cancelled"
    assert session.get(WaterRequest, request.id).cancelled_by is None


def test_cancel_requires_ownership(client, session, consumer):
    request = make_request(session)
    response = client.post(
        f"{API}/requests/{request.id}/cancel",
        json={},
        headers=auth_headers(consumer),
    )
    assert response.status_code == 403


def test_cancel_delivered_request_conflicts(client, session, consumer):
    request = make_request(session, consumer=consumer, status="delivered")
    response = client.post(
        f"{API}/requests/{request.id}/cancel",
        json={},
        headers=auth_headers(consumer),
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "No se puede cancelar una solicitud entregada"


def test_cancel_twice_conflicts(client, session, consumer):
    request = make_request(session, consumer=consumer)
    headers = auth_headers(consumer)

    assert client.post(f"{API}/requests/{request.id}/cancel", json={}, headers=headers).status_code == 200
    second = client.post(f"{API}/requests/{request.id}/cancel", json={}, headers=headers)

    assert second.status_code == 409
    assert second.json()["detail"] == "Esta solicitud ya fue cancelada"

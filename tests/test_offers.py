from datetime import timedelta

from app.core.clock import utcnow
from factories import auth_headers, make_offer, make_request, make_supplier

API = "/api/v1"


def _window(start_hours: float = 2, end_hours: float = 4) -> dict:
    now = utcnow()
    return {
        "delivery_window_start": (now + timedelta(hours=start_hours)).isoformat(),
        "delivery_window_end": (now + timedelta(hours=end_hours)).isoformat(),
    }


# -------- Browsing --------


def test_available_requests_filtered_by_service_area(client, session, supplier):
    here = make_request(session, comuna_id="villarrica", is_urgent=False)
    urgent = make_request(session, comuna_id="villarrica", is_urgent=True)
    make_request(session, comuna_id="pucon")
    make_request(session, comuna_id="villarrica", status="accepted")

    response = client.get(f"{API}/provider/requests", headers=auth_headers(supplier))

    assert response.status_code == 200
    body = response.json()
    assert body["provider_status"] == {
        "is_verified": True,
        "is_available": True,
        "has_service_areas": True,
    }
    # Urgent requests come first
    assert [r["id"] for r in body["requests"]] == [str(urgent.id), str(here.id)]


def test_available_requests_marks_own_offer_and_counts(client, session, supplier):
    request = make_request(session)
    other = make_supplier(session, name="Agua Pura")
    make_offer(session, request, supplier)
    make_offer(session, request, other)

    body = client.get(f"{API}/provider/requests", headers=auth_headers(supplier)).json()

    assert body["requests"][0]["offer_count"] == 2
    assert body["requests"][0]["has_my_offer"] is True


def test_offline_supplier_gets_empty_list_with_status(client, session):
    offline = make_supplier(session, is_available=False)
    make_request(session)

    body = client.get(f"{API}/provider/requests", headers=auth_headers(offline)).json()

    assert body["requests"] == []
    assert body["provider_status"]["is_available"] is False


def test_consumer_cannot_browse_requests(client, consumer):
    response = client.get(f"{API}/provider/requests", headers=auth_headers(consumer))
    assert response.status_code == 403


def test_request_detail_includes_suggested_price(client, session, supplier):
    request = make_request(session, amount=5000, is_urgent=True)

    response = client.get(
        f"{API}/provider/requests/{request.id}", headers=auth_headers(supplier)
    )

    assert response.status_code == 200
    body = response.json()
    # 75000 + 10% urgency surcharge
    assert body["suggested_price"] == 82500
    assert body["provider_has_offer"] is False


def test_offer_preview_uses_override(client, session):
    supplier = make_supplier(session, commission_override=10.0)

    response = client.get(
        f"{API}/provider/offer-preview?amount=1000", headers=auth_headers(supplier)
    )

    body = response.json()
    assert body["price"] == 20000
    assert body["commission"] == 2000
    assert body["earnings"] == 18000
    assert body["message"] == "Ganarás: $18.000 (después de 10% comisión)"


# -------- Create --------


def test_create_offer_prices_from_platform_and_notifies_consumer(
    client, session, consumer, supplier
):
    request = make_request(session, consumer=consumer)

    response = client.post(
        f"{API}/provider/requests/{request.id}/offers",
        json={**_window(), "message": "Llego con camión de 10.000L", "validity_minutes": 45},
        headers=auth_headers(supplier),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "active"
    assert body["price"] == 20000

    notifications = client.get(f"{API}/notifications", headers=auth_headers(consumer)).json()
    assert [n["type"] for n in notifications] == ["new_offer"]
    assert notifications[0]["data"]["request_id"] == str(request.id)


def test_create_offer_rejects_past_start(client, session, supplier):
    request = make_request(session)
    response = client.post(
        f"{API}/provider/requests/{request.id}/offers",
        json=_window(start_hours=-1, end_hours=1),
        headers=auth_headers(supplier),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "La hora de inicio debe ser en el futuro"


def test_create_offer_rejects_inverted_window(client, session, supplier):
    request = make_request(session)
    response = client.post(
        f"{API}/provider/requests/{request.id}/offers",
        json=_window(start_hours=3, end_hours=2),
        headers=auth_headers(supplier),
    )
    assert response.status_code == 400


def test_create_offer_rejects_window_without_offset(client, session, supplier):
    request = make_request(session)
    start = (utcnow() + timedelta(hours=2)).replace(tzinfo=None)

    response = client.post(
        f"{API}/provider/requests/{request.id}/offers",
        json={
            "delivery_window_start": start.isoformat(),
            "delivery_window_end": (start + timedelta(hours=2)).isoformat(),
        },
        headers=auth_headers(supplier),
    )
    assert response.status_code == 422


def test_create_offer_rejects_validity_out_of_bounds(client, session, supplier):
    request = make_request(session)
    response = client.post(
        f"{API}/provider/requests/{request.id}/offers",
        json={**_window(), "validity_minutes": 5},
        headers=auth_headers(supplier),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "La validez debe estar entre 15 y 120 minutos"


def test_second_offer_on_same_request_conflicts(client, session, supplier):
    request = make_request(session)
    headers = auth_headers(supplier)

    first = client.post(f"{API}/provider/requests/{request.id}/offers", json=_window(), headers=headers)
    second = client.post(f"{API}/provider/requests/{request.id}/offers", json=_window(), headers=headers)

    assert first.status_code == 201
    assert second.status_code == 409


def test_unverified_supplier_cannot_offer(client, session):
    pending = make_supplier(session, verification_status="pending")
    request = make_request(session)

    response = client.post(
        f"{API}/provider/requests/{request.id}/offers",
        json=_window(),
        headers=auth_headers(pending),
    )
    assert response.status_code == 403


def test_offer_on_accepted_request_conflicts(client, session, supplier):
    request = make_request(session, status="accepted")
    response = client.post(
        f"{API}/provider/requests/{request.id}/offers",
        json=_window(),
        headers=auth_headers(supplier),
    )
    assert response.status_code == 409


# -------- Withdraw & own list --------


def test_withdraw_active_offer(client, session, supplier):
    offer = make_offer(session, make_request(session), supplier)

    response = client.post(
        f"{API}/provider/offers/{offer.id}/withdraw", headers=auth_headers(supplier)
    )

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    again = client.post(
        f"{API}/provider/offers/{offer.id}/withdraw", headers=auth_headers(supplier)
    )
    assert again.status_code == 409


def test_withdraw_someone_elses_offer_is_forbidden(client, session, supplier):
    other = make_supplier(session, name="Agua Pura")
    offer = make_offer(session, make_request(session), other)

    response = client.post(
        f"{API}/provider/offers/{offer.id}/withdraw", headers=auth_headers(supplier)
    )
    assert response.status_code == 403


def test_my_offers_are_grouped_by_status(client, session, supplier):
    make_offer(session, make_request(session), supplier)
    make_offer(session, make_request(session), supplier, status="expired")
    make_offer(session, make_request(session, status="accepted"), supplier, status="accepted")

    body = client.get(f"{API}/provider/offers", headers=auth_headers(supplier)).json()

    assert len(body["pending"]) == 1
    assert len(body["accepted"]) == 1
    assert len(body["history"]) == 1
    assert body["completed"] == []
    # Contact details only revealed once the delivery is the supplier's
    assert body["pending"][0]["request"]["guest_phone"] is None
    assert body["accepted"][0]["request"]["guest_phone"] == "+56912345678"


# -------- Consumer listing --------


def test_request_offers_sorted_and_hide_expired(client, session, consumer, supplier):
    request = make_request(session, consumer=consumer)
    later = make_supplier(session, name="Agua Pura")
    stale = make_supplier(session, name="Camión Lento")
    now = utcnow()
    soon = make_offer(session, request, supplier)
    late = make_offer(
        session,
        request,
        later,
        delivery_window_start=now + timedelta(hours=5),
        delivery_window_end=now + timedelta(hours=6),
    )
    expired = make_offer(session, request, stale, expires_in_minutes=-1)

    response = client.get(
        f"{API}/requests/{request.id}/offers", headers=auth_headers(consumer)
    )

    assert response.status_code == 200
    ids = [o["id"] for o in response.json()]
    assert ids == [str(soon.id), str(late.id)]
    assert str(expired.id) not in ids
    assert response.json()[0]["provider_name"] == supplier.name
    assert response.json()[0]["countdown"]


def test_request_offers_require_ownership(client, session, consumer, supplier):
    request = make_request(session)
    make_offer(session, request, supplier)

    response = client.get(
        f"{API}/requests/{request.id}/offers", headers=auth_headers(consumer)
    )
    assert response.status_code == 403

    by_token = client.get(f"{API}/requests/{request.id}/offers?token={request.tracking_token}")
    assert by_token.status_code == 200

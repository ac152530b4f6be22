from app.models.profile import Profile
from factories import auth_headers, make_profile, make_request

API = "/api/v1"


def _rate(client, consumer, request, stars, comment=None):
    return client.post(
        f"{API}/ratings",
        json={"request_id": str(request.id), "rating": stars, "comment": comment},
        headers=auth_headers(consumer),
    )


def test_rating_updates_provider_aggregate(client, session, consumer, supplier):
    first = make_request(session, consumer=consumer, status="delivered", supplier_id=supplier.id)
    second = make_request(session, consumer=consumer, status="delivered", supplier_id=supplier.id)

    assert _rate(client, consumer, first, 5).json()["rating_count"] == 1
    body = _rate(client, consumer, second, 4, comment="  Puntual  ").json()

    assert body["is_update"] is False
    assert body["average_rating"] == 4.5
    assert body["rating_count"] == 2

    session.expire_all()
    stored = session.get(Profile, supplier.id)
    assert stored.average_rating == 4.5
    assert stored.rating_count == 2


def test_rating_same_request_again_updates(client, session, consumer, supplier):
    request = make_request(session, consumer=consumer, status="delivered", supplier_id=supplier.id)
    _rate(client, consumer, request, 2)

    body = _rate(client, consumer, request, 4).json()

    assert body["is_update"] is True
    assert body["rating_count"] == 1
    assert body["average_rating"] == 4

    own = client.get(f"{API}/ratings/request/{request.id}", headers=auth_headers(consumer)).json()
    assert own["rating"] == 4


def test_rating_requires_delivered_request(client, session, consumer, supplier):
    request = make_request(session, consumer=consumer, status="accepted", supplier_id=supplier.id)

    response = _rate(client, consumer, request, 5)

    assert response.status_code == 400
    assert response.json()["detail"] == "Solo puedes calificar solicitudes entregadas"


def test_rating_someone_elses_request_is_forbidden(client, session, consumer, supplier):
    request = make_request(session, consumer=consumer, status="delivered", supplier_id=supplier.id)
    stranger = make_profile(session, name="Otra Persona")

    assert _rate(client, stranger, request, 5).status_code == 403


def test_rating_bounds_are_validated(client, session, consumer, supplier):
    request = make_request(session, consumer=consumer, status="delivered", supplier_id=supplier.id)

    assert _rate(client, consumer, request, 0).status_code == 422
    assert _rate(client, consumer, request, 6).status_code == 422
    assert _rate(client, consumer, request, 4.5).status_code == 422


def test_public_provider_rating(client, session, consumer, supplier):
    request = make_request(session, consumer=consumer, status="delivered", supplier_id=supplier.id)
    _rate(client, consumer, request, 3)

    body = client.get(f"{API}/ratings/provider/{supplier.id}").json()
    assert body == {"provider_id": str(supplier.id), "average_rating": 3.0, "rating_count": 1}

    assert client.get(f"{API}/ratings/provider/{consumer.id}").status_code == 404

from datetime import datetime, timedelta, timezone

from sqlmodel import select

from app.core.clock import utcnow
from app.models.admin import AdminAllowedEmail
from app.models.commission import CommissionLedgerEntry, WithdrawalRequest
from app.models.notification import Notification
from app.models.offer import Offer
from app.services.admin_service import period_start
from factories import auth_headers, make_offer, make_profile, make_request, make_supplier

API = "/api/v1"


def _types_for(session, user_id) -> list[str]:
    session.expire_all()
    return [
        n.type
        for n in session.exec(select(Notification).where(Notification.user_id == user_id)).all()
    ]


# -------- Access --------


def test_admin_routes_reject_non_admins(client, consumer, supplier):
    for user in (consumer, supplier):
        assert client.get(f"{API}/admin/verification", headers=auth_headers(user)).status_code == 403
    assert client.get(f"{API}/admin/verification").status_code == 401


def test_allowed_email_grants_admin_access(client, session, admin):
    helper = make_profile(session, name="Soporte", email="soporte@nitoagua.cl")
    headers = auth_headers(admin)

    added = client.post(
        f"{API}/admin/allowed-emails",
        json={"email": "Soporte@nitoagua.cl", "notes": "turno noche"},
        headers=headers,
    )
    assert added.status_code == 201
    assert added.json()["email"] == "soporte@nitoagua.cl"
    assert client.get(f"{API}/admin/metrics", headers=auth_headers(helper)).status_code == 200

    duplicate = client.post(
        f"{API}/admin/allowed-emails", json={"email": "soporte@nitoagua.cl"}, headers=headers
    )
    assert duplicate.status_code == 409

    removed = client.delete(f"{API}/admin/allowed-emails/soporte@nitoagua.cl", headers=headers)
    assert removed.status_code == 204
    assert client.get(f"{API}/admin/metrics", headers=auth_headers(helper)).status_code == 403


def test_admin_cannot_remove_own_email(client, session):
    admin = make_profile(session, name="Jefa", email="jefa@nitoagua.cl")
    session.add(AdminAllowedEmail(email="jefa@nitoagua.cl"))
    session.commit()

    response = client.delete(
        f"{API}/admin/allowed-emails/jefa@nitoagua.cl", headers=auth_headers(admin)
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "No puedes quitar tu propio acceso"


# -------- Verification --------


def test_verification_queue_and_approval(client, session, admin):
    applicant = make_supplier(
        session, name="Nuevo Repartidor", verification_status="pending", is_available=False
    )
    headers = auth_headers(admin)

    queue = client.get(f"{API}/admin/verification", headers=headers).json()
    assert queue["pending_count"] == 1
    assert [p["id"] for p in queue["providers"]] == [str(applicant.id)]
    assert queue["providers"][0]["service_areas"] == ["villarrica"]

    response = client.post(
        f"{API}/admin/providers/{applicant.id}/verify",
        json={"decision": "approved"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["verification_status"] == "approved"
    assert response.json()["is_available"] is True
    assert _types_for(session, applicant.id) == ["verification_approved"]


def test_more_info_lists_missing_documents(client, session, admin):
    applicant = make_supplier(session, verification_status="pending", is_available=False)

    body = client.post(
        f"{API}/admin/providers/{applicant.id}/verify",
        json={
            "decision": "more_info_needed",
            "missing_documents": ["cedula", "vehiculo"],
        },
        headers=auth_headers(admin),
    ).json()

    assert body["verification_status"] == "more_info_needed"
    assert body["rejection_reason"] == "Documentos faltantes: cedula, vehiculo"


def test_rejection_requires_reason(client, session, admin):
    applicant = make_supplier(session, verification_status="pending")
    response = client.post(
        f"{API}/admin/providers/{applicant.id}/verify",
        json={"decision": "rejected"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 422


def test_suspend_and_reactivate_provider(client, session, admin, supplier):
    headers = auth_headers(admin)

    suspended = client.post(
        f"{API}/admin/providers/{supplier.id}/suspend",
        json={"reason": "Reclamos reiterados"},
        headers=headers,
    ).json()
    assert suspended["verification_status"] == "suspended"
    assert suspended["is_available"] is False

    # Suspended suppliers lose access to approved-only routes
    assert client.get(
        f"{API}/provider/service-areas", headers=auth_headers(supplier)
    ).status_code == 403

    reactivated = client.post(f"{API}/admin/providers/{supplier.id}/unsuspend", headers=headers)
    assert reactivated.json()["verification_status"] == "approved"
    again = client.post(f"{API}/admin/providers/{supplier.id}/unsuspend", headers=headers)
    assert again.status_code == 409


def test_banned_provider_cannot_be_suspended(client, session, admin, supplier):
    headers = auth_headers(admin)
    client.post(f"{API}/admin/providers/{supplier.id}/ban", headers=headers)

    response = client.post(
        f"{API}/admin/providers/{supplier.id}/suspend", json={"reason": "x"}, headers=headers
    )
    assert response.status_code == 409


def test_commission_override(client, session, admin, supplier):
    headers = auth_headers(admin)

    body = client.patch(
        f"{API}/admin/providers/{supplier.id}/commission",
        json={"commission_override": 8.5},
        headers=headers,
    ).json()
    assert body["commission_override"] == 8.5

    too_high = client.patch(
        f"{API}/admin/providers/{supplier.id}/commission",
        json={"commission_override": 150},
        headers=headers,
    )
    assert too_high.status_code == 422


def test_provider_directory_search(client, session, admin, supplier):
    make_supplier(session, name="Aguas Pucón", comunas=("pucon",))

    body = client.get(
        f"{API}/admin/providers?search=pucón", headers=auth_headers(admin)
    ).json()
    assert [p["name"] for p in body] == ["Aguas Pucón"]

    assert client.get(
        f"{API}/admin/providers/{admin.id}", headers=auth_headers(admin)
    ).status_code == 404


# -------- Orders --------


def test_orders_list_with_counts(client, session, admin, supplier):
    pending = make_request(session)
    make_offer(session, pending, supplier)
    make_request(session, status="delivered")

    body = client.get(f"{API}/admin/orders", headers=auth_headers(admin)).json()

    assert body["counts"]["pending"] == 1
    assert body["counts"]["delivered"] == 1
    row = next(o for o in body["orders"] if o["id"] == str(pending.id))
    assert row["offer_count"] == 1
    assert row["active_offer_count"] == 1

    filtered = client.get(
        f"{API}/admin/orders?status_filter=delivered", headers=auth_headers(admin)
    ).json()
    assert [o["status"] for o in filtered["orders"]] == ["delivered"]


def test_admin_cancels_accepted_order(client, session, admin, consumer, supplier):
    request = make_request(session, consumer=consumer)
    offer = make_offer(session, request, supplier)
    client.post(f"{API}/offers/{offer.id}/select", headers=auth_headers(consumer))

    response = client.post(
        f"{API}/admin/orders/{request.id}/cancel",
        json={"reason": "Camino cortado"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["cancellation_reason"] == "Camino cortado"
    assert [o["status"] for o in body["offers"]] == ["cancelled"]

    session.expire_all()
    assert session.get(Offer, offer.id).status == "cancelled"
    assert "request_cancelled" in _types_for(session, supplier.id)
    assert "request_cancelled" in _types_for(session, consumer.id)


def test_admin_cannot_cancel_delivered_or_cancelled(client, session, admin):
    delivered = make_request(session, status="delivered")
    cancelled = make_request(session, status="cancelled")
    headers = auth_headers(admin)

    a = client.post(f"{API}/admin/orders/{delivered.id}/cancel", json={"reason": "x"}, headers=headers)
    b = client.post(f"{API}/admin/orders/{cancelled.id}/cancel", json={"reason": "x"}, headers=headers)

    assert a.status_code == 409
    assert a.json()["detail"] == "No se puede cancelar un pedido entregado"
    assert b.status_code == 409
    assert b.json()["detail"] == "Este pedido ya esta cancelado"


# -------- Settings & pricing --------


def test_offer_settings_roundtrip_and_bounds(client, admin):
    headers = auth_headers(admin)
    assert client.get(f"{API}/admin/settings", headers=headers).json()["offer_validity_default"] == 30

    updated = client.put(
        f"{API}/admin/settings",
        json={
            "offer_validity_default": 45,
            "offer_validity_min": 20,
            "offer_validity_max": 90,
            "request_timeout_hours": 6,
            "dispute_window_hours": 72,
        },
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["request_timeout_hours"] == 6

    invalid = client.put(
        f"{API}/admin/settings",
        json={
            "offer_validity_default": 200,
            "offer_validity_min": 20,
            "offer_validity_max": 90,
            "request_timeout_hours": 6,
        },
        headers=headers,
    )
    assert invalid.status_code == 422


def test_settings_update_without_dispute_window_keeps_stored_value(
    client, session, consumer, supplier, admin
):
    headers = auth_headers(admin)
    timing = {
        "offer_validity_default": 30,
        "offer_validity_min": 15,
        "offer_validity_max": 120,
        "request_timeout_hours": 4,
    }
    client.put(f"{API}/admin/settings", json={**timing, "dispute_window_hours": 72}, headers=headers)

    response = client.put(
        f"{API}/admin/settings", json={**timing, "request_timeout_hours": 8}, headers=headers
    )

    assert response.status_code == 200
    assert response.json()["request_timeout_hours"] == 8
    assert response.json()["dispute_window_hours"] == 72

    # A delivery 60 h ago is still inside the 72 h window
    request = make_request(
        session,
        consumer=consumer,
        status="delivered",
        supplier_id=supplier.id,
        delivered_at=utcnow() - timedelta(hours=60),
    )
    eligibility = client.get(
        f"{API}/disputes/eligibility/{request.id}", headers=auth_headers(consumer)
    ).json()
    assert eligibility["can_file"] is True


def test_pricing_update_drives_offer_price(client, session, admin, supplier):
    headers = auth_headers(admin)
    pricing = client.get(f"{API}/admin/pricing", headers=headers).json()
    pricing["price_1000l"] = {"min": 18000, "suggested": 22000, "max": 28000}
    pricing["default_commission_percent"] = 12

    assert client.put(f"{API}/admin/pricing", json=pricing, headers=headers).status_code == 200

    preview = client.get(
        f"{API}/provider/offer-preview?amount=1000", headers=auth_headers(supplier)
    ).json()
    assert preview["price"] == 22000
    assert preview["commission"] == 2640


def test_pricing_tier_order_is_validated(client, admin):
    headers = auth_headers(admin)
    pricing = client.get(f"{API}/admin/pricing", headers=headers).json()
    pricing["price_100l"] = {"min": 7000, "suggested": 5000, "max": 6500}

    assert client.put(f"{API}/admin/pricing", json=pricing, headers=headers).status_code == 422


# -------- Settlement --------


def _pending_payment(session, supplier, amount=3000):
    session.add(
        CommissionLedgerEntry(provider_id=supplier.id, type="commission_owed", amount=amount)
    )
    payment = WithdrawalRequest(provider_id=supplier.id, amount=amount)
    session.add(payment)
    session.commit()
    session.refresh(payment)
    return payment


def test_verify_payment_writes_paid_ledger_row(client, session, admin, supplier):
    payment = _pending_payment(session, supplier)
    headers = auth_headers(admin)

    pending = client.get(f"{API}/admin/payments", headers=headers).json()
    assert pending[0]["provider_name"] == supplier.name
    assert pending[0]["provider_balance"] == 3000

    response = client.post(
        f"{API}/admin/payments/{payment.id}/verify",
        json={"bank_reference": "TRX-991"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    session.expire_all()
    paid = session.exec(
        select(CommissionLedgerEntry).where(CommissionLedgerEntry.type == "commission_paid")
    ).one()
    assert paid.amount == 3000
    assert paid.bank_reference == "TRX-991"
    assert paid.admin_id == admin.id
    assert _types_for(session, supplier.id) == ["payment_verified"]

    earnings = client.get(f"{API}/provider/earnings", headers=auth_headers(supplier)).json()
    assert earnings["pending_balance"] == 0

    again = client.post(f"{API}/admin/payments/{payment.id}/verify", json={}, headers=headers)
    assert again.status_code == 409


def test_reject_payment_leaves_ledger_untouched(client, session, admin, supplier):
    payment = _pending_payment(session, supplier)

    response = client.post(
        f"{API}/admin/payments/{payment.id}/reject",
        json={"reason": "Comprobante ilegible"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "Comprobante ilegible"
    session.expire_all()
    types = [e.type for e in session.exec(select(CommissionLedgerEntry)).all()]
    assert types == ["commission_owed"]
    assert _types_for(session, supplier.id) == ["payment_rejected"]


def test_receipt_url_is_null_without_receipt(client, session, admin, supplier):
    payment = _pending_payment(session, supplier)
    body = client.get(
        f"{API}/admin/payments/{payment.id}/receipt", headers=auth_headers(admin)
    ).json()
    assert body == {"url": None}


# -------- Metrics --------


def test_metrics_conversion_rate(client, session, admin, supplier):
    for status in ("pending", "accepted", "delivered", "cancelled"):
        make_request(session, status=status)
    session.add(
        CommissionLedgerEntry(provider_id=supplier.id, type="commission_owed", amount=3000)
    )
    session.commit()

    body = client.get(f"{API}/admin/metrics?period=month", headers=auth_headers(admin)).json()

    assert body["requests_total"] == 4
    assert body["conversion_rate"] == 50.0
    assert body["commission_owed"] == 3000
    assert body["active_providers"] == 1


def test_period_start_boundaries():
    # Thursday
    now = datetime(2025, 3, 13, 15, 30, tzinfo=timezone.utc)

    assert period_start("today", now) == datetime(2025, 3, 13, tzinfo=timezone.utc)
    assert period_start("week", now) == datetime(2025, 3, 10, tzinfo=timezone.utc)
    assert period_start("month", now) == datetime(2025, 3, 1, tzinfo=timezone.utc)


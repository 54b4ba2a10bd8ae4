import json

import httpx
import pytest

from boutique.payments import chargily_client
from boutique.payments import webhook

SECRET = "test_sk_secret"


@pytest.fixture(autouse=True)
def _gateway(monkeypatch):
    monkeypatch.setattr(chargily_client, "CHARGILY_SECRET_KEY", SECRET)
    monkeypatch.setattr(webhook, "WEBHOOK_REQUIRE_SIGNATURE", True)
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "chk_1", "checkout_url": "https://pay.chargily.net/test/checkouts/chk_1/pay"})

    gateway = httpx.Client(transport=httpx.MockTransport(handler))
    monkeypatch.setattr(chargily_client.httpx, "post", lambda url, **kw: gateway.post(url, **kw))
    return requests


def test_checkout_for_own_order(client, fake_db, _gateway):
    oid = fake_db.add_order(user_id="test-user", total_amount=2500)
    r = client.post("/api/v1/payments/checkout", json={"orderId": oid, "successUrl": "https://shop.example/merci"})
    assert r.status_code == 200
    assert r.json() == {"checkout_url": "https://pay.chargily.net/test/checkouts/chk_1/pay"}
    assert _gateway[0]["amount"] == 2500
    assert _gateway[0]["success_url"] == "https://shop.example/merci"


def test_checkout_requires_order_id(client, _gateway):
    r = client.post("/api/v1/payments/checkout", json={})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert _gateway == []


@pytest.mark.parametrize("fields,status", [
    ({"user_id": "someone-else"}, 403),
    ({"user_id": "test-user", "payment_status": "paid"}, 409),
    ({"user_id": "test-user", "status": "cancelled"}, 409),
])
def test_checkout_refusals(client, fake_db, _gateway, fields, status):
    oid = fake_db.add_order(**fields)
    r = client.post("/api/v1/payments/checkout", json={"orderId": oid})
    assert r.status_code == status
    assert _gateway == []


def test_checkout_unknown_order(client, _gateway):
    r = client.post("/api/v1/payments/checkout", json={"orderId": "00000000-0000-4000-8000-000000000000"})
    assert r.status_code == 404


def test_checkout_malformed_order_id_is_404(client, fake_db, _gateway):
    r = client.post("/api/v1/payments/checkout", json={"orderId": "not-a-uuid"})
    assert r.status_code == 404
    assert fake_db.calls == []
    assert _gateway == []


def test_admin_may_open_checkout_for_guest_order(authenticated_admin_client, fake_db, _gateway):
    oid = fake_db.add_order(user_id=None)
    r = authenticated_admin_client.post("/api/v1/payments/checkout", json={"orderId": oid})
    assert r.status_code == 200


def test_gateway_failure_is_generic_502(client, fake_db, monkeypatch):
    failing = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503, json={"message": "down"})))
    monkeypatch.setattr(chargily_client.httpx, "post", lambda url, **kw: failing.post(url, **kw))
    oid = fake_db.add_order(user_id="test-user")
    r = client.post("/api/v1/payments/checkout", json={"orderId": oid})
    assert r.status_code == 502
    assert r.json() == {"success": False, "error": "Une erreur temporaire est survenue, veuillez réessayer"}


def _post_webhook(client, body: bytes, signature=None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["signature"] = signature
    return client.post("/api/v1/payments/webhook", content=body, headers=headers)


def test_webhook_uses_exact_raw_bytes(client, fake_db):
    oid = fake_db.add_order()
    # Espacement non canonique: une re-sérialisation casserait la signature
    body = ('{ "type" : "checkout.paid",  "data": {"id": "chk_1", "metadata": {"order_id": "%s"}} }' % oid).encode()
    r = _post_webhook(client, body, chargily_client.compute_signature(body, SECRET))
    assert r.status_code == 200
    assert fake_db.order(oid)["payment_status"] == "paid"


def test_webhook_rejects_forged_signature(client, fake_db):
    oid = fake_db.add_order()
    body = json.dumps({"type": "checkout.paid", "data": {"id": "chk_1", "metadata": {"order_id": oid}}}).encode()
    r = _post_webhook(client, body, chargily_client.compute_signature(body, "not-the-secret"))
    assert r.status_code == 401
    assert r.json() == {"error": "invalid signature"}
    assert fake_db.order(oid)["payment_status"] == "unpaid"

    r = _post_webhook(client, body)
    assert r.status_code == 401


def test_webhook_malformed_order_id_is_acknowledged(client, fake_db):
    body = json.dumps({"type": "checkout.paid", "data": {"id": "chk_1", "metadata": {"order_id": "not-a-uuid"}}}).encode()
    r = _post_webhook(client, body, chargily_client.compute_signature(body, SECRET))
    assert r.status_code == 200
    assert r.json() == {"received": True}


def test_webhook_malformed_body(client):
    body = b"garbage"
    r = _post_webhook(client, body, chargily_client.compute_signature(body, SECRET))
    assert r.status_code == 400

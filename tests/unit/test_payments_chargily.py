import json

import httpx
import pytest

from boutique.payments import chargily_client
from boutique.payments import service as payments_service
from boutique.orders.errors import CheckoutInitiationError, OrderNotPayable

ORDER = {"id": "8d0f3c1e-1111-4a4a-9b9b-123456789abc", "total_amount": 7000.5, "status": "pending", "payment_status": "unpaid"}


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_create_checkout_posts_order_payload(monkeypatch):
    monkeypatch.setattr(chargily_client, "CHARGILY_SECRET_KEY", "test_sk_secret")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "01hj5n", "checkout_url": "https://pay.chargily.net/test/checkouts/01hj5n/pay"})

    result = payments_service.create_checkout_session(ORDER, http_client=_client(handler))

    assert result == {"checkout_url": "https://pay.chargily.net/test/checkouts/01hj5n/pay"}
    assert seen["url"].endswith("/checkouts")
    assert seen["auth"] == "Bearer test_sk_secret"
    body = seen["body"]
    assert body["amount"] == 7001
    assert body["currency"] == "dzd"
    assert body["metadata"] == {"order_id": ORDER["id"]}
    assert body["pass_fees_to"] == "customer"
    assert body["webhook_endpoint"].endswith("/api/v1/payments/webhook")
    assert body["success_url"].endswith("/payment-success")
    assert body["failure_url"].endswith("/payment-failed")


def test_explicit_redirect_urls_are_forwarded(monkeypatch):
    monkeypatch.setattr(chargily_client, "CHARGILY_SECRET_KEY", "test_sk_secret")
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return httpx.Response(201, json={"id": "x", "checkout_url": "https://pay.example/x"})

    payments_service.create_checkout_session(ORDER, "https://shop.example/ok", "https://shop.example/ko", http_client=_client(handler))
    assert seen["success_url"] == "https://shop.example/ok"
    assert seen["failure_url"] == "https://shop.example/ko"


@pytest.mark.parametrize("gateway_status,expected", [(422, 400), (401, 400), (500, 502), (503, 502)])
def test_gateway_errors_are_mapped(monkeypatch, gateway_status, expected):
    monkeypatch.setattr(chargily_client, "CHARGILY_SECRET_KEY", "test_sk_secret")
    client = _client(lambda request: httpx.Response(gateway_status, json={"message": "nope"}))
    with pytest.raises(CheckoutInitiationError) as exc:
        payments_service.create_checkout_session(ORDER, http_client=client)
    assert exc.value.status_code == expected


def test_unreachable_gateway_is_502(monkeypatch):
    monkeypatch.setattr(chargily_client, "CHARGILY_SECRET_KEY", "test_sk_secret")

    def handler(request):
        raise httpx.ConnectTimeout("timeout", request=request)

    with pytest.raises(CheckoutInitiationError) as exc:
        payments_service.create_checkout_session(ORDER, http_client=_client(handler))
    assert exc.value.status_code == 502
    assert exc.value.retryable


def test_missing_secret_is_502(monkeypatch):
    monkeypatch.setattr(chargily_client, "CHARGILY_SECRET_KEY", "")
    with pytest.raises(CheckoutInitiationError) as exc:
        payments_service.create_checkout_session(ORDER, http_client=_client(lambda r: httpx.Response(200, json={})))
    assert exc.value.status_code == 502


@pytest.mark.parametrize("order", [
    {**ORDER, "payment_status": "paid"},
    {**ORDER, "status": "cancelled"},
])
def test_paid_or_cancelled_orders_cannot_open_a_session(order):
    def handler(request):
        raise AssertionError("la passerelle ne doit pas être appelée")

    with pytest.raises(OrderNotPayable) as exc:
        payments_service.create_checkout_session(order, http_client=_client(handler))
    assert exc.value.status_code == 409


def test_failed_order_can_retry_payment(monkeypatch):
    monkeypatch.setattr(chargily_client, "CHARGILY_SECRET_KEY", "test_sk_secret")
    client = _client(lambda r: httpx.Response(200, json={"id": "y", "checkout_url": "https://pay.example/y"}))
    result = payments_service.create_checkout_session({**ORDER, "payment_status": "failed"}, http_client=client)
    assert result["checkout_url"] == "https://pay.example/y"


def test_signature_helpers():
    body = b'{"type":"checkout.paid"}'
    sig = chargily_client.compute_signature(body, "k")
    assert len(sig) == 64
    assert chargily_client.verify_signature(body, sig, "k")
    assert not chargily_client.verify_signature(body + b" ", sig, "k")
    assert not chargily_client.verify_signature(body, sig, "other")
    assert not chargily_client.verify_signature(body, None, "k")
    assert not chargily_client.verify_signature(body, "é", "k")

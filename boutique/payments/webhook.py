"""
Réconciliation des webhooks Chargily sur l'état de paiement des commandes.

Étapes (handle_webhook):
  1) Signature HMAC-SHA256 du corps brut (en-tête 'signature'); invalide -> 401 sans effet
  2) Parsing JSON: {type, data: {id, metadata: {order_id}}}; malformé -> 400
  3) Dispatch: checkout.paid -> paid; checkout.failed / checkout.canceled -> failed; autre -> no-op 200
  4) order_id absent, mal formé (non UUID) ou inconnu -> log + 200 (la passerelle n'a rien à rejouer)
  5) Un 'paid' n'est jamais rétrogradé en 'failed'
Ne lève jamais: renvoie un WebhookResult (code HTTP + corps JSON).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import json
import logging

from boutique.config import PAYMENT_METHOD_NAME, WEBHOOK_REQUIRE_SIGNATURE
from boutique.orders.errors import OrderPersistenceError
from boutique.orders.models import PaymentStatus, parse_uuid
from boutique.payments import chargily_client
from boutique.payments import repository as payments_repo

logger = logging.getLogger(__name__)

EVENT_PAID = "checkout.paid"
FAILURE_EVENTS = frozenset({"checkout.failed", "checkout.canceled"})


@dataclass
class WebhookResult:
    status_code: int
    body: Dict[str, Any] = field(default_factory=lambda: {"received": True})


def _received() -> WebhookResult:
    return WebhookResult(200, {"received": True})


# module boutique.payments.webhook
def _check_signature(raw_body: bytes, signature: Optional[str]) -> Optional[WebhookResult]:
    secret = chargily_client.CHARGILY_SECRET_KEY
    if not secret:
        logger.error("payments.webhook CHARGILY_SECRET_KEY manquant")
        return WebhookResult(500, {"error": "server misconfigured"})
    if not signature:
        if WEBHOOK_REQUIRE_SIGNATURE:
            logger.warning("payments.webhook rejected: missing signature header")
            return WebhookResult(401, {"error": "invalid signature"})
        logger.warning("payments.webhook accepted without signature (WEBHOOK_REQUIRE_SIGNATURE=false)")
        return None
    if not chargily_client.verify_signature(raw_body, signature, secret):
        logger.warning("payments.webhook rejected: signature mismatch")
        return WebhookResult(401, {"error": "invalid signature"})
    return None

def _parse_event(raw_body: bytes) -> Optional[Dict[str, Any]]:
    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    if not isinstance(event, dict) or not isinstance(event.get("type"), str):
        return None
    if not isinstance(event.get("data"), dict):
        return None
    return event

def _order_id_of(checkout: Dict[str, Any]) -> Optional[str]:
    metadata = checkout.get("metadata")
    if not isinstance(metadata, dict):
        return None
    return parse_uuid(metadata.get("order_id"))

def _mark_paid(order_id: str, transaction_id: Optional[str]) -> None:
    payments_repo.update_order_payment(order_id, {
        "payment_status": PaymentStatus.PAID.value,
        "transaction_id": transaction_id,
        "payment_method": PAYMENT_METHOD_NAME,
    })
    logger.info("payments.webhook order paid order_id=%s transaction_id=%s", order_id, transaction_id)

def _mark_failed(order_id: str, transaction_id: Optional[str], event_type: str) -> None:
    updated = payments_repo.update_order_payment(
        order_id,
        {"payment_status": PaymentStatus.FAILED.value, "transaction_id": transaction_id},
        unless_paid=True,
    )
    if updated:
        logger.info("payments.webhook order failed order_id=%s event=%s", order_id, event_type)
    else:
        logger.warning("payments.webhook ignored %s for already paid order_id=%s", event_type, order_id)

def handle_webhook(raw_body: bytes, signature: Optional[str]) -> WebhookResult:
    rejected = _check_signature(raw_body, signature)
    if rejected is not None:
        return rejected

    event = _parse_event(raw_body)
    if event is None:
        logger.warning("payments.webhook malformed body")
        return WebhookResult(400, {"error": "malformed payload"})

    event_type = event["type"]
    if event_type != EVENT_PAID and event_type not in FAILURE_EVENTS:
        logger.info("payments.webhook ignored event type=%s", event_type)
        return _received()

    checkout = event["data"]
    order_id = _order_id_of(checkout)
    if not order_id:
        logger.warning("payments.webhook %s without valid metadata.order_id checkout_id=%s", event_type, checkout.get("id"))
        return _received()

    transaction_id = str(checkout["id"]) if checkout.get("id") else None
    try:
        if payments_repo.get_order_payment(order_id) is None:
            logger.warning("payments.webhook unknown order_id=%s event=%s", order_id, event_type)
            return _received()
        if event_type == EVENT_PAID:
            _mark_paid(order_id, transaction_id)
        else:
            _mark_failed(order_id, transaction_id, event_type)
    except OrderPersistenceError:
        # La passerelle rejouera l'évènement
        return WebhookResult(500, {"error": "persistence error"})
    return _received()

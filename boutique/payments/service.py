"""
Couche service 'payments': ouverture d'une session de paiement Chargily pour une commande existante.
- Le montant vient de la commande persistée (jamais du client), converti en DZD entiers.
- Les URLs de retour par défaut et l'endpoint webhook viennent de la configuration, pas des en-têtes.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional
import logging

from boutique.config import (
    BASE_URL,
    CHARGILY_LOCALE,
    CHECKOUT_CURRENCY,
    CHECKOUT_FAILURE_PATH,
    CHECKOUT_SUCCESS_PATH,
    PUBLIC_API_URL,
    WEBHOOK_PATH,
)
from boutique.orders import service as orders_service
from boutique.orders.errors import CheckoutInitiationError, OrderNotPayable
from boutique.orders.models import OrderStatus, PaymentStatus
from boutique.payments import chargily_client

logger = logging.getLogger(__name__)

# module boutique.payments.service
def _amount_dzd(total_amount: Any) -> int:
    return int(Decimal(str(total_amount or 0)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def build_checkout_payload(order: Dict[str, Any], success_url: Optional[str] = None, failure_url: Optional[str] = None) -> Dict[str, Any]:
    return {
        "amount": _amount_dzd(order.get("total_amount")),
        "currency": CHECKOUT_CURRENCY,
        "success_url": success_url or f"{BASE_URL}{CHECKOUT_SUCCESS_PATH}",
        "failure_url": failure_url or f"{BASE_URL}{CHECKOUT_FAILURE_PATH}",
        "webhook_endpoint": f"{PUBLIC_API_URL}{WEBHOOK_PATH}",
        "metadata": {"order_id": str(order.get("id"))},
        "locale": CHARGILY_LOCALE,
        "pass_fees_to": "customer",
    }

def ensure_payable(order: Dict[str, Any]) -> None:
    if order.get("payment_status") == PaymentStatus.PAID.value:
        raise OrderNotPayable("Commande déjà payée")
    if order.get("status") == OrderStatus.CANCELLED.value:
        raise OrderNotPayable("Commande annulée")

def create_checkout_session(
    order: Dict[str, Any],
    success_url: Optional[str] = None,
    failure_url: Optional[str] = None,
    *,
    http_client=None,
) -> Dict[str, str]:
    """
    Ouvre un checkout Chargily pour la commande et renvoie {"checkout_url": ...}.
    Erreurs: CheckoutInitiationError (400 si la passerelle refuse la requête, 502 sinon).
    """
    ensure_payable(order)
    payload = build_checkout_payload(order, success_url, failure_url)
    try:
        checkout = chargily_client.create_checkout(payload, client=http_client)
    except chargily_client.ChargilyError as e:
        logger.exception(
            "payments.service.create_checkout_session failed order_id=%s gateway_status=%s payload=%s",
            order.get("id"), e.status_code, e.payload,
        )
        status = 400 if e.status_code and 400 <= e.status_code < 500 else 502
        raise CheckoutInitiationError("Impossible d'initier le paiement", status_code=status)
    logger.info("payments.service checkout opened order_id=%s checkout_id=%s", order.get("id"), checkout.get("id"))
    return {"checkout_url": checkout["checkout_url"]}

def start_checkout(order_id: str, user: Dict[str, Any], success_url: Optional[str] = None, failure_url: Optional[str] = None) -> Dict[str, str]:
    """Charge la commande (404/403), vérifie qu'elle est payable (409) puis ouvre la session."""
    order = orders_service.get_order_for_user(order_id, user)
    return create_checkout_session(order, success_url, failure_url)

"""Couche service de la feature Commandes.
Rôles:
- Créer une commande à partir d'un panier brut: validation + tarification, puis écriture en-tête + lignes.
- Compenser toute écriture partielle (suppression de l'en-tête, libération du stock réservé).
- Historique utilisateur, suivi public par téléphone, changement de statut côté admin.
Le statut de paiement n'est jamais modifié ici (réservé au webhook de la passerelle).
"""
from typing import Any, Dict, List, Optional, Tuple
import logging

from pydantic import ValidationError

from boutique.config import RESERVE_STOCK_ON_ORDER
from boutique.orders import repository
from boutique.orders.errors import (
    CartValidationError,
    InsufficientStockError,
    InvalidStatusTransition,
    OrderAccessDenied,
    OrderNotFoundError,
    OrderPersistenceError,
    UnknownStatusError,
)
from boutique.orders.models import OrderStatus, PaymentStatus, PricedCart, ShippingInfo, can_transition, parse_uuid
from boutique.orders.pricing import price_cart

logger = logging.getLogger(__name__)

def _parse_shipping(raw: Any) -> ShippingInfo:
    if raw is None:
        return ShippingInfo()
    if not isinstance(raw, dict):
        raise CartValidationError("Informations de livraison invalides")
    try:
        return ShippingInfo.model_validate(raw)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise CartValidationError(f"Informations de livraison invalides: {fields}")

def _parse_notes(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise CartValidationError("Notes invalides: texte attendu")
    return raw.strip() or None

def _order_row(user_id: Optional[str], priced: PricedCart, shipping: ShippingInfo, notes: Optional[str]) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "status": OrderStatus.PENDING.value,
        "payment_status": PaymentStatus.UNPAID.value,
        "total_amount": float(priced.total_amount),
        "email": shipping.email,
        "phone": shipping.phone,
        "shipping_address": shipping.address,
        "shipping_city": shipping.city,
        "shipping_country": shipping.country,
        "shipping_zip": shipping.zip,
        "notes": notes,
    }

def _release(reserved: List[Tuple[str, int]]) -> None:
    for product_id, qty in reserved:
        repository.release_product_stock(product_id, qty)

def _reserve_stock(order_id: str, priced: PricedCart) -> None:
    """
    Décrément conditionnel produit par produit. Au premier refus, on libère ce qui a été pris,
    on supprime la commande et on signale le produit en cause.
    """
    names = {it.reference_id: it.name for it in priced.items}
    reserved: List[Tuple[str, int]] = []
    for product_id, qty in priced.stock_requirements().items():
        try:
            applied = repository.reserve_product_stock(product_id, qty)
        except OrderPersistenceError:
            _release(reserved)
            repository.delete_order(order_id)
            raise
        if not applied:
            logger.info("orders.service stock race lost order_id=%s product_id=%s qty=%s", order_id, product_id, qty)
            _release(reserved)
            repository.delete_order(order_id)
            raise InsufficientStockError(names.get(product_id, product_id), product_id)
        reserved.append((product_id, qty))

def create_order(user_id: Optional[str], payload: Any) -> Dict[str, Any]:
    """
    Crée une commande 'pending'/'unpaid' et ses lignes.
    - payload: {items: [...], shippingInfo: {...}, notes?}
    - Le total est recalculé depuis le catalogue; tout prix client est ignoré.
    - Échec des lignes: suppression compensatoire de l'en-tête puis OrderPersistenceError.
    Retourne {id, total_amount, status}.
    """
    if not isinstance(payload, dict):
        raise CartValidationError("Requête invalide")
    priced = price_cart(payload.get("items"))
    shipping = _parse_shipping(payload.get("shippingInfo"))
    notes = _parse_notes(payload.get("notes"))

    header = repository.insert_order(_order_row(user_id, priced, shipping, notes))
    order_id = str(header["id"])
    try:
        repository.insert_order_items([it.to_row(order_id) for it in priced.items])
    except OrderPersistenceError:
        repository.delete_order(order_id)
        raise

    if RESERVE_STOCK_ON_ORDER:
        _reserve_stock(order_id, priced)

    logger.info(
        "orders.service order created id=%s user_id=%s items=%s total=%s",
        order_id, user_id, len(priced.items), priced.total_amount,
    )
    return {
        "id": order_id,
        "total_amount": float(priced.total_amount),
        "status": header.get("status") or OrderStatus.PENDING.value,
    }

def list_orders_for_user(user_id: str) -> List[dict]:
    return repository.list_user_orders(user_id)

def _order_key(order_id: Any) -> str:
    # Un identifiant non UUID ne peut désigner aucune commande
    key = parse_uuid(order_id)
    if key is None:
        raise OrderNotFoundError(str(order_id))
    return key

def get_order_for_user(order_id: str, user: Dict[str, Any]) -> dict:
    """Lecture d'une commande par son propriétaire (ou un admin)."""
    order = repository.get_order(_order_key(order_id))
    if not order:
        raise OrderNotFoundError(order_id)
    if user.get("role") != "admin" and str(order.get("user_id") or "") != str(user.get("id") or ""):
        raise OrderAccessDenied("Cette commande ne vous appartient pas")
    return order

def track_order(order_id: str, phone: str) -> Dict[str, Any]:
    """Suivi public: identifiant + téléphone; 404 si la combinaison est inconnue."""
    order_id = (order_id or "").strip()
    phone = (phone or "").strip()
    if not order_id or not phone:
        raise CartValidationError("Numéro de commande et téléphone requis")
    result = repository.track_order(_order_key(order_id), phone)
    if not result.get("found"):
        raise OrderNotFoundError(order_id)
    return result

def _reserved_quantities(order_id: str) -> Dict[str, int]:
    """Quantités produit réservées à la création (les packs n'ont pas de stock)."""
    quantities: Dict[str, int] = {}
    for item in repository.list_order_items(order_id):
        product_id = item.get("product_id")
        if product_id:
            quantities[product_id] = quantities.get(product_id, 0) + int(item.get("quantity") or 0)
    return quantities

def update_status(order_id: str, target: str) -> Tuple[dict, dict]:
    """
    Changement de statut (admin). Vérifie la transition puis écrit de façon conditionnelle
    sur le statut lu, pour ne pas écraser un changement concurrent.
    Une annulation rend au stock les quantités réservées par create_order.
    Retourne (commande mise à jour, commande avant mise à jour).
    """
    try:
        target_status = OrderStatus(target)
    except ValueError:
        raise UnknownStatusError(f"Statut inconnu: {target}")
    order_id = _order_key(order_id)
    current = repository.get_order(order_id)
    if not current:
        raise OrderNotFoundError(order_id)
    current_status = OrderStatus(current.get("status") or OrderStatus.PENDING.value)
    if not can_transition(current_status, target_status):
        raise InvalidStatusTransition(current_status.value, target_status.value)

    # Lignes lues avant l'écriture: un échec de lecture laisse la commande inchangée
    to_release: Dict[str, int] = {}
    if target_status == OrderStatus.CANCELLED and RESERVE_STOCK_ON_ORDER:
        to_release = _reserved_quantities(order_id)

    updated = repository.update_order_status(order_id, target_status.value, expected_current=current_status.value)
    if not updated:
        latest = repository.get_order(order_id) or {}
        raise InvalidStatusTransition(str(latest.get("status") or current_status.value), target_status.value)
    if to_release:
        _release(list(to_release.items()))
        logger.info("orders.service stock released id=%s products=%s", order_id, len(to_release))
    logger.info("orders.service status changed id=%s %s -> %s", order_id, current_status.value, target_status.value)
    return {**current, **updated}, current

"""
Accès aux données pour la feature 'orders' (tables 'orders', 'order_items', RPC stock/suivi).

Toutes les écritures passent par le client service-role: la commande est créée côté serveur,
le total n'est jamais fourni par le client.
Les erreurs d'accès sont journalisées puis converties en OrderPersistenceError,
sauf delete_order (compensation best-effort) qui renvoie un booléen.
"""
from typing import Any, Dict, List, Optional
import logging

import boutique.infra.supabase_client as supabase_client
from boutique.orders.errors import OrderPersistenceError

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "id, user_id, status, payment_status, total_amount, email, phone, "
    "shipping_address, shipping_city, shipping_country, shipping_zip, notes, "
    "transaction_id, payment_method, created_at, updated_at"
)

# module boutique.orders.repository
def _first(rows) -> Optional[dict]:
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None

def insert_order(row: Dict[str, Any]) -> dict:
    """Insère l'en-tête de commande et renvoie la ligne créée (id inclus)."""
    try:
        res = supabase_client.get_service_supabase().table("orders").insert(row).execute()
    except Exception:
        logger.exception("orders.repository.insert_order failed user_id=%s", row.get("user_id"))
        raise OrderPersistenceError("Impossible de créer la commande")
    created = _first(res.data)
    if not created or not created.get("id"):
        logger.error("orders.repository.insert_order returned no row user_id=%s", row.get("user_id"))
        raise OrderPersistenceError("Impossible de créer la commande")
    return created

def insert_order_items(rows: List[Dict[str, Any]]) -> List[dict]:
    """Insertion groupée des lignes (un seul appel)."""
    order_id = rows[0].get("order_id") if rows else None
    try:
        res = supabase_client.get_service_supabase().table("order_items").insert(rows).execute()
    except Exception:
        logger.exception("orders.repository.insert_order_items failed order_id=%s count=%s", order_id, len(rows))
        raise OrderPersistenceError("Impossible d'enregistrer les articles de la commande")
    return res.data or []

def delete_order(order_id: str) -> bool:
    """
    Suppression compensatoire d'un en-tête (les order_items suivent par cascade).
    Ne lève jamais: un échec ici est journalisé pour reprise manuelle.
    """
    try:
        supabase_client.get_service_supabase().table("orders").delete().eq("id", order_id).execute()
        return True
    except Exception:
        logger.exception("orders.repository.delete_order failed order_id=%s", order_id)
        return False

def get_order(order_id: str) -> Optional[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select(ORDER_COLUMNS)
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.get_order failed order_id=%s", order_id)
        raise OrderPersistenceError("Lecture de la commande impossible")
    return _first(res.data)

def list_user_orders(user_id: str, limit: int = 50) -> List[dict]:
    """Historique de l'utilisateur avec ses lignes, plus récentes d'abord."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select(f"{ORDER_COLUMNS}, order_items(*)")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.list_user_orders failed user_id=%s", user_id)
        raise OrderPersistenceError("Lecture des commandes impossible")
    return res.data or []

def list_order_items(order_id: str) -> List[dict]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("order_items")
            .select("*")
            .eq("order_id", order_id)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.list_order_items failed order_id=%s", order_id)
        raise OrderPersistenceError("Lecture des lignes de commande impossible")
    return res.data or []

def update_order_status(order_id: str, status: str, *, expected_current: Optional[str] = None) -> Optional[dict]:
    """
    Met à jour 'status'. Avec expected_current, la mise à jour est conditionnelle
    (aucune ligne modifiée si un autre acteur a changé le statut entre-temps).
    """
    try:
        query = (
            supabase_client.get_service_supabase()
            .table("orders")
            .update({"status": status})
            .eq("id", order_id)
        )
        if expected_current is not None:
            query = query.eq("status", expected_current)
        res = query.execute()
    except Exception:
        logger.exception("orders.repository.update_order_status failed order_id=%s status=%s", order_id, status)
        raise OrderPersistenceError("Mise à jour du statut impossible")
    return _first(res.data)

def reserve_product_stock(product_id: str, quantity: int) -> bool:
    """
    Décrément conditionnel (stock_quantity >= quantity) côté base.
    Renvoie False si le stock ne suffit plus au moment de l'écriture.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .rpc("reserve_product_stock", {"p_product_id": product_id, "p_quantity": quantity})
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.reserve_product_stock failed product_id=%s qty=%s", product_id, quantity)
        raise OrderPersistenceError("Réservation du stock impossible")
    return bool(res.data)

def release_product_stock(product_id: str, quantity: int) -> bool:
    try:
        (
            supabase_client.get_service_supabase()
            .rpc("release_product_stock", {"p_product_id": product_id, "p_quantity": quantity})
            .execute()
        )
        return True
    except Exception:
        logger.exception("orders.repository.release_product_stock failed product_id=%s qty=%s", product_id, quantity)
        return False

def track_order(order_id: str, phone: str) -> Dict[str, Any]:
    """Suivi public: RPC get_order_status(p_order_id, p_phone) -> {found, ...}."""
    try:
        res = (
            supabase_client.get_supabase()
            .rpc("get_order_status", {"p_order_id": order_id, "p_phone": phone})
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.track_order failed order_id=%s", order_id)
        raise OrderPersistenceError("Suivi de commande momentanément indisponible")
    data = res.data
    if isinstance(data, list):
        data = data[0] if data else {}
    return data or {}

"""
Accès aux données pour la feature 'payments' (réconciliation webhook sur la table 'orders').
Client service-role: le webhook n'a pas de session utilisateur.
"""
from typing import Any, Dict, List, Optional
import logging

import boutique.infra.supabase_client as supabase_client
from boutique.orders.errors import OrderPersistenceError

logger = logging.getLogger(__name__)

# module boutique.payments.repository
def get_order_payment(order_id: str) -> Optional[dict]:
    """Lit id, payment_status, transaction_id; None si la commande n'existe pas."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select("id, payment_status, transaction_id")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("payments.repository.get_order_payment failed order_id=%s", order_id)
        raise OrderPersistenceError("Lecture de la commande impossible")
    rows = res.data or []
    return rows[0] if rows else None

def update_order_payment(order_id: str, values: Dict[str, Any], *, unless_paid: bool = False) -> List[dict]:
    """
    Mise à jour par id (idempotente: rejouer le même évènement réécrit les mêmes valeurs).
    unless_paid=True ajoute la condition payment_status != 'paid' dans la même requête,
    pour qu'un 'paid' concurrent ne soit jamais écrasé par un échec.
    Retourne les lignes effectivement modifiées.
    """
    try:
        query = (
            supabase_client.get_service_supabase()
            .table("orders")
            .update(values)
            .eq("id", order_id)
        )
        if unless_paid:
            query = query.neq("payment_status", "paid")
        res = query.execute()
    except Exception:
        logger.exception("payments.repository.update_order_payment failed order_id=%s values=%s", order_id, values)
        raise OrderPersistenceError("Mise à jour du paiement impossible")
    return res.data or []

# module boutique.orders.views

"""Endpoints de la feature Commandes.
- POST /api/v1/orders: création (invité autorisé, utilisateur rattaché si jeton présent).
- GET /api/v1/orders: historique de l'utilisateur connecté.
- GET /api/v1/orders/track: suivi public par numéro de commande + téléphone (rate-limité).
- POST /api/v1/orders/{order_id}/status: changement de statut (admin), email en tâche de fond
  (sauf si STATUS_EMAIL_TRIGGER=db_hook: le hook base de données envoie alors seul).
Les erreurs métier (OrderError) sont rendues par le handler global en {"success": false, "error": ...}.
"""
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from boutique.utils.security import optional_user, require_user, require_admin
from boutique.utils.rate_limit import optional_rate_limit
from boutique.orders import service as orders_service
from boutique.orders.errors import CartValidationError, UnknownStatusError
from boutique.notifications import service as notifications_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])

async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise CartValidationError("Corps JSON invalide")

@router.post("", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
async def create_order(request: Request, user: Optional[Dict[str, Any]] = Depends(optional_user)):
    """
    Entrée JSON:
      { "items": [ {"product_id": "<uuid>", "quantity": 2}, {"pack_id": "<uuid>", "quantity": 1} ],
        "shippingInfo": {"address", "city", "country", "zip", "email", "phone"},
        "notes": "..." }
    Réponse: {"success": true, "order": {"id", "total_amount", "status"}}
    """
    payload = await _json_body(request)
    user_id = (user or {}).get("id")
    order = orders_service.create_order(user_id, payload)
    return {"success": True, "order": order}

@router.get("")
def list_my_orders(user: Dict[str, Any] = Depends(require_user)):
    return {"orders": orders_service.list_orders_for_user(user.get("id"))}

@router.get("/track", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def track_order(order_id: str = "", phone: str = ""):
    """Suivi public: ne renvoie que le résumé exposé par la RPC get_order_status."""
    return orders_service.track_order(order_id, phone)

@router.post("/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: Dict[str, Any] = Depends(require_admin),
):
    """
    Entrée JSON: {"status": "processing" | "shipped" | ...}
    - 409 si la transition est interdite (état terminal, retour en arrière).
    - L'email client est envoyé après la réponse (déclencheur "api"); un échec d'envoi n'annule pas le changement.
    """
    body = await _json_body(request)
    target = (body or {}).get("status") if isinstance(body, dict) else None
    if not target:
        raise UnknownStatusError("Statut manquant")
    updated, previous = orders_service.update_status(order_id, str(target))
    if notifications_service.handles("api"):
        background_tasks.add_task(notifications_service.notify_status_change, updated, previous)
    logger.info("orders.views status update by admin=%s order_id=%s", admin.get("id"), order_id)
    return {"success": True, "order": {"id": updated.get("id") or order_id, "status": updated.get("status")}}

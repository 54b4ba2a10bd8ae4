from typing import Any, Dict
import hmac
import logging

from fastapi import APIRouter, HTTPException, Request

from boutique.config import ORDER_HOOK_SECRET
from boutique.notifications import service as notifications_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])

@router.post("/order-status", include_in_schema=False)
async def order_status_hook(request: Request) -> Dict[str, Any]:
    """
    Cible du webhook base de données (UPDATE sur 'orders'):
    {type: "UPDATE", table: "orders", record: {...}, old_record: {...}}
    - X-Hook-Secret vérifié si ORDER_HOOK_SECRET est configuré (401 sinon)
    - N'envoie que si STATUS_EMAIL_TRIGGER=db_hook (sinon reason "handled_by_api")
    - Réponse: {"sent": bool, "reason"?: str}; toujours 200 une fois authentifié
    """
    if ORDER_HOOK_SECRET:
        provided = request.headers.get("X-Hook-Secret") or ""
        if not hmac.compare_digest(provided.encode("utf-8"), ORDER_HOOK_SECRET.encode("utf-8")):
            raise HTTPException(status_code=401, detail="Secret invalide")
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Corps JSON invalide")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Corps JSON invalide")

    if payload.get("type", "UPDATE") != "UPDATE" or payload.get("table", "orders") != "orders":
        return {"sent": False, "reason": "not_an_order_update"}
    if not notifications_service.handles("db_hook"):
        return {"sent": False, "reason": "handled_by_api"}
    record = payload.get("record") if isinstance(payload.get("record"), dict) else None
    old_record = payload.get("old_record") if isinstance(payload.get("old_record"), dict) else None
    return notifications_service.notify_status_change(record, old_record)

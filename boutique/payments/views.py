import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse

from boutique.utils.security import require_user
from boutique.utils.rate_limit import optional_rate_limit
from boutique.orders.errors import CartValidationError
from boutique.payments import service as payments_service
from boutique.payments import webhook as payments_webhook

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

# module boutique.payments.views
@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_checkout_session(request: Request, user: Dict[str, Any] = Depends(require_user)):
    """
    Ouvre une session de paiement Chargily pour une commande de l'utilisateur authentifié.
    - Entrée JSON: { "orderId": "<uuid>", "successUrl": "...", "failureUrl": "..." } (URLs optionnelles)
    - Sécurité: require_user + rate limit (10 req / 60s); un admin peut payer pour une commande invité
    - Réponse: {"checkout_url": "https://pay.chargily.net/..."}
    - Erreurs: 404 commande inconnue, 403 autre propriétaire, 409 déjà payée/annulée, 400/502 passerelle
    """
    try:
        body = await request.json()
    except ValueError:
        raise CartValidationError("Corps JSON invalide")
    if not isinstance(body, dict) or not body.get("orderId"):
        raise CartValidationError("orderId manquant")
    return payments_service.start_checkout(
        str(body["orderId"]),
        user,
        success_url=body.get("successUrl") or None,
        failure_url=body.get("failureUrl") or None,
    )

@router.post("/webhook", include_in_schema=False)
async def webhook_chargily(request: Request):
    """
    Webhook Chargily: le corps brut est lu tel quel (la signature porte sur ces octets exacts).
    - En-tête 'signature': HMAC-SHA256 hex du corps avec la clé secrète API
    - Réponses: 200 {"received": true}, 400 corps malformé, 401 signature invalide, 500 persistance
    """
    raw_body = await request.body()
    result = payments_webhook.handle_webhook(raw_body, request.headers.get("signature"))
    return JSONResponse(status_code=result.status_code, content=result.body)

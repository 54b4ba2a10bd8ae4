"""
Adaptateur Chargily Pay (API v2): centralise les appels HTTP et la vérification de signature.
- create_checkout: POST {CHARGILY_API_URL}/checkouts (Bearer secret, timeout explicite)
- compute_signature / verify_signature: HMAC-SHA256 hex du corps brut, clé = secret API
"""
from typing import Any, Dict, Optional
import hashlib
import hmac
import logging

import httpx

from boutique.config import CHARGILY_API_URL, CHARGILY_SECRET_KEY, CHARGILY_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class ChargilyError(Exception):
    """Échec d'appel à la passerelle. status_code=None si la passerelle n'a pas répondu."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


# module boutique.payments.chargily_client
def require_secret() -> str:
    if not CHARGILY_SECRET_KEY:
        raise ChargilyError("CHARGILY_SECRET_KEY manquant")
    return CHARGILY_SECRET_KEY

def create_checkout(payload: Dict[str, Any], *, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Crée un checkout Chargily.
    - payload: {amount, currency, success_url, failure_url, webhook_endpoint, metadata, locale, pass_fees_to}
    - client: httpx.Client injectable (tests: httpx.MockTransport)
    Retour: dict checkout (ex: {"id": "01hj...", "checkout_url": "https://pay.chargily.net/..."})
    """
    secret = require_secret()
    url = f"{CHARGILY_API_URL}/checkouts"
    headers = {"Authorization": f"Bearer {secret}", "Content-Type": "application/json"}
    try:
        if client is not None:
            resp = client.post(url, json=payload, headers=headers, timeout=CHARGILY_TIMEOUT_SECONDS)
        else:
            resp = httpx.post(url, json=payload, headers=headers, timeout=CHARGILY_TIMEOUT_SECONDS)
    except httpx.HTTPError as e:
        raise ChargilyError(f"Passerelle injoignable: {e.__class__.__name__}")

    try:
        data = resp.json()
    except ValueError:
        data = {"raw": resp.text[:500]}

    if resp.status_code >= 400:
        raise ChargilyError(f"Chargily API error {resp.status_code}", status_code=resp.status_code, payload=data)
    if not isinstance(data, dict) or not data.get("checkout_url"):
        raise ChargilyError("Réponse Chargily sans checkout_url", status_code=resp.status_code, payload=data)
    return data

def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()

def verify_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """Comparaison à temps constant de la signature reçue (en-tête 'signature') et calculée."""
    if not signature or not secret:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().encode("utf-8"))

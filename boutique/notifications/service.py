"""Notification client sur changement de statut de commande.
- Deux déclencheurs possibles (hook UPDATE 'orders' ou changement de statut admin); un seul est actif,
  choisi par STATUS_EMAIL_TRIGGER, pour qu'un changement ne produise qu'un email.
- Ne réagit qu'au champ 'status' (jamais à payment_status): un webhook de paiement rejoué n'envoie rien.
- Un échec d'envoi est journalisé et abandonné; il n'annule jamais le changement de statut.
"""
from typing import Any, Dict, Optional
import logging

from boutique.config import STATUS_EMAIL_TRIGGER
from boutique.notifications import mailer
from boutique.notifications.templates import render_status_email

logger = logging.getLogger(__name__)

def handles(trigger: str) -> bool:
    """True si ce déclencheur ("api" ou "db_hook") est celui qui envoie les emails."""
    return STATUS_EMAIL_TRIGGER == trigger

def should_notify(record: Optional[Dict[str, Any]], old_record: Optional[Dict[str, Any]]) -> Optional[str]:
    """Renvoie None si un email doit partir, sinon la raison du saut."""
    if not record:
        return "no_record"
    if not old_record or old_record.get("status") == record.get("status"):
        return "status_unchanged"
    if not record.get("email"):
        return "no_email"
    return None

def notify_status_change(record: Optional[Dict[str, Any]], old_record: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    reason = should_notify(record, old_record)
    if reason:
        logger.info("notifications.service skipped order_id=%s reason=%s", (record or {}).get("id"), reason)
        return {"sent": False, "reason": reason}

    email = render_status_email(record.get("status"), str(record.get("id") or ""), record.get("total_amount"))
    sent, error = mailer.send_email(record["email"], email["subject"], email["html"])
    if not sent:
        logger.warning("notifications.service email not sent order_id=%s error=%s", record.get("id"), error)
        return {"sent": False, "reason": error or "send_failed"}
    logger.info("notifications.service email sent order_id=%s status=%s", record.get("id"), record.get("status"))
    return {"sent": True}

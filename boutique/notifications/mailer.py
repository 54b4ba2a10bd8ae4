"""
Envoi d'emails transactionnels via Resend.
La clé est posée une fois à l'import: les envois tournent en parallèle (tâches de fond)
et ne doivent jamais modifier l'état global du SDK.
"""
from typing import Dict, Optional, Tuple
import logging

import resend

from boutique.config import EMAIL_FROM, RESEND_API_KEY

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY or None

# module boutique.notifications.mailer
def send_email(to: str, subject: str, html: str) -> Tuple[bool, Optional[str]]:
    """
    Envoie un email; ne lève jamais.
    Retour: (True, None) si Resend a accepté le message (id présent), sinon (False, raison).
    """
    if not resend.api_key:
        return False, "RESEND_API_KEY non configurée"

    payload: Dict[str, object] = {"from": EMAIL_FROM, "to": [to], "subject": subject, "html": html}
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        logger.exception("notifications.mailer.send_email failed to=%s", to)
        return False, str(exc)

    if not isinstance(response, dict) or not response.get("id"):
        return False, str(response)
    return True, None

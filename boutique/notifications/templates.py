"""
Gabarits d'email de suivi de commande, un par statut (générique sinon).
"""
from decimal import Decimal, InvalidOperation
from html import escape
from typing import Any, Dict, Tuple

from boutique.config import STORE_URL

# (titre, message, couleur)
_TEMPLATES: Dict[str, Tuple[str, str, str]] = {
    "processing": (
        "Votre commande est en impression",
        "Bonne nouvelle ! Vos impressions 3D sont en cours de production. Nous fabriquons vos articles avec soin.",
        "#3b82f6",
    ),
    "shipped": (
        "Votre commande est en route",
        "Vos impressions 3D ont été remises à notre transporteur et sont en chemin vers vous.",
        "#10b981",
    ),
    "delivered": (
        "Commande livrée",
        "Votre commande a été marquée comme livrée. Nous espérons que vos nouveaux articles vous plairont !",
        "#10b981",
    ),
    "cancelled": (
        "Commande annulée",
        "Votre commande a été annulée. Pour toute question, contactez notre support.",
        "#ef4444",
    ),
}

def _format_amount(amount: Any) -> str:
    try:
        value = Decimal(str(amount if amount is not None else 0))
    except (InvalidOperation, ValueError):
        value = Decimal("0")
    return f"{value:,.0f}".replace(",", " ")

def render_status_email(status: str, order_id: str, total_amount: Any) -> Dict[str, str]:
    """Retourne {"subject", "html"} pour le statut donné."""
    status = str(status or "")
    title, message, color = _TEMPLATES.get(status, (
        "Mise à jour de votre commande",
        f"Le statut de votre commande est maintenant : <strong>{escape(status)}</strong>",
        "#10b981",
    ))
    short_id = escape(str(order_id or "")[:8])
    html = f"""
    <div style="background-color:#f9fafb;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Helvetica,Arial,sans-serif;text-align:center;color:#333;padding:40px 20px;">
      <div style="background:#fff;border-radius:12px;padding:30px;max-width:500px;margin:0 auto;text-align:left;">
        <h2 style="color:{color};margin-top:0;font-size:24px;">{title}</h2>
        <p style="font-size:16px;line-height:1.5;color:#4b5563;">{message}</p>
        <div style="margin-top:25px;padding-top:25px;border-top:1px solid #e5e7eb;">
          <p style="margin:0;font-size:14px;color:#6b7280;">Commande : <strong>{short_id}...</strong></p>
          <p style="margin:5px 0 0;font-size:14px;color:#6b7280;">Total : <strong>{_format_amount(total_amount)} DA</strong></p>
        </div>
        <div style="margin-top:30px;text-align:center;">
          <a href="{escape(STORE_URL)}" style="background-color:#111;color:#fff;text-decoration:none;padding:12px 24px;border-radius:6px;font-weight:bold;display:inline-block;">Visiter la boutique</a>
        </div>
      </div>
    </div>
    """
    return {"subject": f"Commande {status.upper()} - Ibda3D", "html": html}

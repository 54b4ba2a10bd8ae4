from urllib.parse import urlparse
from typing import Any, Dict
import socket

from boutique.config import SUPABASE_URL, CHARGILY_SECRET_KEY, RESEND_API_KEY
import boutique.infra.supabase_client as supabase_client

CHECKED_TABLES = ["products", "packs", "orders", "order_items"]

def _check_table(client, name: str) -> Dict[str, Any]:
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def _resolve(hostname: str) -> Dict[str, Any]:
    try:
        socket.getaddrinfo(hostname, 443)
        return {"dns_ok": True, "dns_error": None}
    except Exception as e:
        return {"dns_ok": False, "dns_error": str(e)}

def health_supabase_info() -> Dict[str, Any]:
    """Joignabilité Supabase (DNS + lecture d'une ligne par table métier) et présence des secrets externes."""
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    info: Dict[str, Any] = {
        "supabase_url": SUPABASE_URL,
        "hostname": hostname,
        "dns_ok": None,
        "dns_error": None,
        "connect_ok": False,
        "error": None,
        "tables": {},
        "chargily_configured": bool(CHARGILY_SECRET_KEY),
        "resend_configured": bool(RESEND_API_KEY),
    }
    if hostname:
        info.update(_resolve(hostname))
    try:
        client = supabase_client.get_service_supabase()
        for t in CHECKED_TABLES:
            info["tables"][t] = _check_table(client, t)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info

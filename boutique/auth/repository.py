from typing import Dict, Any
import logging
from boutique.infra import supabase_client

logger = logging.getLogger(__name__)

# --- Auth (supabase.auth.*) ---

def get_user_from_access_token(access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l’utilisateur depuis supabase.auth.get_user(access_token)."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
        }
    return user or {}

def is_admin_or_owner(user_id: str) -> bool:
    """Rôle applicatif via la fonction SQL is_admin_or_owner (table user_roles)."""
    if not user_id:
        return False
    try:
        res = supabase_client.get_service_supabase().rpc("is_admin_or_owner", {"_user_id": user_id}).execute()
        return bool(res.data)
    except Exception:
        logger.exception("auth.repository.is_admin_or_owner failed user_id=%s", user_id)
        return False

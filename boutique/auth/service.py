from typing import Dict, Any, Optional
from boutique.config import ADMIN_EMAILS
from .repository import get_user_from_access_token as _repo_get_user_from_token, is_admin_or_owner

def determine_role(user_id: Optional[str], email: Optional[str], metadata: Dict[str, Any] | None) -> str:
    """Rôle effectif: admin si listé dans ADMIN_EMAILS, marqué admin/owner en metadata ou dans user_roles."""
    if email and email.lower() in ADMIN_EMAILS:
        return "admin"
    if str((metadata or {}).get("role", "")).lower() in ("admin", "owner"):
        return "admin"
    if user_id and is_admin_or_owner(user_id):
        return "admin"
    return "user"

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise user issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, metadata, role, token}
    """
    raw = _repo_get_user_from_token(access_token)
    uid = raw.get("id")
    email = raw.get("email")
    metadata = raw.get("user_metadata") or {}
    role = determine_role(uid, email, metadata)
    return {"id": uid, "email": email, "metadata": metadata, "role": role, "token": access_token}

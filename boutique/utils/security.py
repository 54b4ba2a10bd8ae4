from fastapi import Request, HTTPException, Depends
from typing import Optional, Dict, Any

def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None

def _resolve_user(token: str) -> Dict[str, Any]:
    try:
        # Délégué au service Auth
        from boutique.auth.service import get_user_from_token as _svc_get_user_from_token
        user = _svc_get_user_from_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return user

def get_current_user(request: Request) -> Dict[str, Any]:
    token = _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")
    return _resolve_user(token)

def get_optional_user(request: Request) -> Optional[Dict[str, Any]]:
    """
    Checkout invité autorisé: sans en-tête Authorization on renvoie None.
    Un jeton présent mais invalide reste une erreur 401 (pas de repli silencieux en invité).
    """
    token = _bearer_token(request)
    if not token:
        return None
    return _resolve_user(token)

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def optional_user(user: Optional[Dict[str, Any]] = Depends(get_optional_user)) -> Optional[Dict[str, Any]]:
    return user

def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user

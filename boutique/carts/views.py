# module boutique.carts.views

"""Endpoints panier.
- Invité: panier en session (cookie signé); utilisateur connecté: table cart_items.
- GET /api/v1/cart, POST /api/v1/cart/items, PATCH|DELETE /api/v1/cart/items/{line_id}, DELETE /api/v1/cart
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from boutique.utils.security import optional_user
from boutique.carts.store import CartStore, SessionCartStore, SupabaseCartStore
from boutique.orders.errors import CartValidationError

router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])

def get_cart_store(request: Request, user: Optional[Dict[str, Any]] = Depends(optional_user)) -> CartStore:
    if user and user.get("id"):
        return SupabaseCartStore(user["id"], user.get("token"))
    return SessionCartStore(request.session)

async def _json_object(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise CartValidationError("Corps JSON invalide")
    if not isinstance(body, dict):
        raise CartValidationError("Corps JSON invalide")
    return body

@router.get("")
def get_cart(store: CartStore = Depends(get_cart_store)):
    return {"items": store.list_lines()}

@router.post("/items")
async def add_item(request: Request, store: CartStore = Depends(get_cart_store)):
    """Entrée JSON: {"product_id": "<uuid>"} ou {"pack_id": "<uuid>"}, "quantity" (défaut 1)."""
    body = await _json_object(request)
    quantity = body.get("quantity", 1)
    if body.get("product_id") and not body.get("pack_id"):
        line = store.add("product", body["product_id"], quantity)
    elif body.get("pack_id") and not body.get("product_id"):
        line = store.add("pack", body["pack_id"], quantity)
    else:
        raise CartValidationError("Exactement un de product_id ou pack_id est requis")
    return {"item": line}

@router.patch("/items/{line_id}")
async def update_item(line_id: str, request: Request, store: CartStore = Depends(get_cart_store)):
    """Entrée JSON: {"quantity": n}; n <= 0 supprime la ligne."""
    body = await _json_object(request)
    return {"item": store.set_quantity(line_id, body.get("quantity"))}

@router.delete("/items/{line_id}")
def remove_item(line_id: str, store: CartStore = Depends(get_cart_store)):
    store.remove(line_id)
    return {"ok": True}

@router.delete("")
def clear_cart(store: CartStore = Depends(get_cart_store)):
    store.clear()
    return {"ok": True}

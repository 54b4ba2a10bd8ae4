"""
Paniers côté serveur: deux backends indépendants derrière la même interface.
- SessionCartStore: invités, lignes conservées dans la session signée (cookie Starlette)
- SupabaseCartStore: utilisateurs connectés, table 'cart_items' (RLS via le jeton utilisateur)
Les quantités obéissent aux mêmes bornes que les lignes de commande.
La fusion d'un panier invité dans le panier utilisateur à la connexion n'est pas faite ici.
"""
from typing import Any, Dict, List, MutableMapping, Optional
import logging
import uuid

import boutique.infra.supabase_client as supabase_client
from boutique.config import MAX_LINE_QUANTITY
from boutique.orders.errors import CartLineNotFoundError, CartValidationError, OrderPersistenceError
from boutique.orders.models import parse_uuid
from boutique.orders.pricing import parse_cart_line

logger = logging.getLogger(__name__)

SESSION_KEY = "cart"


def _validated(kind: str, reference_id: Any, quantity: Any):
    if kind not in ("product", "pack"):
        raise CartValidationError(f"Type de ligne inconnu: {kind}")
    return parse_cart_line({f"{kind}_id": reference_id, "quantity": quantity}, 0)


def _check_bound(quantity: int) -> None:
    if quantity > MAX_LINE_QUANTITY:
        raise CartValidationError(f"Quantité maximale dépassée ({MAX_LINE_QUANTITY})")


def _check_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise CartValidationError("Quantité invalide")
    _check_bound(quantity)
    return quantity


class CartStore:
    """Interface commune: lignes {id, kind, reference_id, quantity}."""

    def list_lines(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def add(self, kind: str, reference_id: str, quantity: int = 1) -> Dict[str, Any]:
        raise NotImplementedError

    def set_quantity(self, line_id: str, quantity: int) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def remove(self, line_id: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class SessionCartStore(CartStore):
    def __init__(self, session: MutableMapping[str, Any]):
        self.session = session

    def _lines(self) -> List[Dict[str, Any]]:
        lines = self.session.get(SESSION_KEY)
        return [dict(l) for l in lines] if isinstance(lines, list) else []

    def _save(self, lines: List[Dict[str, Any]]) -> None:
        self.session[SESSION_KEY] = lines

    def list_lines(self) -> List[Dict[str, Any]]:
        return self._lines()

    def add(self, kind: str, reference_id: str, quantity: int = 1) -> Dict[str, Any]:
        line = _validated(kind, reference_id, quantity)
        ref = str(line.reference_id)
        lines = self._lines()
        for existing in lines:
            if existing["kind"] == line.kind and existing["reference_id"] == ref:
                new_qty = existing["quantity"] + line.quantity
                _check_bound(new_qty)
                existing["quantity"] = new_qty
                self._save(lines)
                return existing
        created = {"id": uuid.uuid4().hex, "kind": line.kind, "reference_id": ref, "quantity": line.quantity}
        lines.append(created)
        self._save(lines)
        return created

    def set_quantity(self, line_id: str, quantity: int) -> Optional[Dict[str, Any]]:
        quantity = _check_quantity(quantity)
        if quantity <= 0:
            self.remove(line_id)
            return None
        lines = self._lines()
        for existing in lines:
            if existing["id"] == line_id:
                existing["quantity"] = quantity
                self._save(lines)
                return existing
        raise CartLineNotFoundError(line_id)

    def remove(self, line_id: str) -> None:
        self._save([l for l in self._lines() if l.get("id") != line_id])

    def clear(self) -> None:
        self._save([])


class SupabaseCartStore(CartStore):
    def __init__(self, user_id: str, user_token: Optional[str] = None):
        self.user_id = user_id
        self.user_token = user_token

    def _client(self):
        if self.user_token:
            return supabase_client.get_user_supabase(self.user_token)
        return supabase_client.get_service_supabase()

    @staticmethod
    def _to_line(row: Dict[str, Any]) -> Dict[str, Any]:
        kind = "pack" if row.get("pack_id") and not row.get("product_id") else "product"
        return {
            "id": str(row.get("id")),
            "kind": kind,
            "reference_id": str(row.get("pack_id") if kind == "pack" else row.get("product_id")),
            "quantity": int(row.get("quantity") or 0),
        }

    def _execute(self, what: str, query):
        try:
            return query.execute()
        except Exception:
            logger.exception("carts.store.SupabaseCartStore.%s failed user_id=%s", what, self.user_id)
            raise OrderPersistenceError("Panier momentanément indisponible")

    def list_lines(self) -> List[Dict[str, Any]]:
        res = self._execute("list_lines", (
            self._client()
            .table("cart_items")
            .select("id, product_id, pack_id, quantity")
            .eq("user_id", self.user_id)
        ))
        return [self._to_line(r) for r in (res.data or [])]

    def add(self, kind: str, reference_id: str, quantity: int = 1) -> Dict[str, Any]:
        line = _validated(kind, reference_id, quantity)
        ref = str(line.reference_id)
        for existing in self.list_lines():
            if existing["kind"] == line.kind and existing["reference_id"] == ref:
                new_qty = existing["quantity"] + line.quantity
                _check_bound(new_qty)
                self._execute("add", (
                    self._client().table("cart_items").update({"quantity": new_qty})
                    .eq("id", existing["id"]).eq("user_id", self.user_id)
                ))
                return {**existing, "quantity": new_qty}
        row = {
            "user_id": self.user_id,
            "product_id": ref if line.kind == "product" else None,
            "pack_id": ref if line.kind == "pack" else None,
            "quantity": line.quantity,
        }
        res = self._execute("add", self._client().table("cart_items").insert(row))
        created = (res.data or [None])[0] or {**row, "id": None}
        return self._to_line(created)

    def set_quantity(self, line_id: str, quantity: int) -> Optional[Dict[str, Any]]:
        quantity = _check_quantity(quantity)
        if quantity <= 0:
            self.remove(line_id)
            return None
        if parse_uuid(line_id) is None:
            raise CartLineNotFoundError(line_id)
        res = self._execute("set_quantity", (
            self._client().table("cart_items").update({"quantity": quantity})
            .eq("id", line_id).eq("user_id", self.user_id)
        ))
        rows = res.data or []
        if not rows:
            raise CartLineNotFoundError(line_id)
        return self._to_line(rows[0])

    def remove(self, line_id: str) -> None:
        if parse_uuid(line_id) is None:
            return
        self._execute("remove", (
            self._client().table("cart_items").delete().eq("id", line_id).eq("user_id", self.user_id)
        ))

    def clear(self) -> None:
        self._execute("clear", self._client().table("cart_items").delete().eq("user_id", self.user_id))

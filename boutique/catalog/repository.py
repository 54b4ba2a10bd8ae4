"""
Lecture seule du catalogue (tables 'products' et 'packs').
- Une requête par nature (in_ sur les ids) pour éviter le N+1.
- Les ids absents sont simplement omis: l'appelant les traite comme indisponibles.
- Une erreur de lecture lève CatalogUnavailableError (transitoire), jamais une liste vide silencieuse.
"""
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional
import logging

import boutique.infra.supabase_client as supabase_client
from boutique.orders.errors import CatalogUnavailableError
from boutique.orders.models import CatalogItem

logger = logging.getLogger(__name__)

# module boutique.catalog.repository
def _to_decimal(value) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0))
    except (InvalidOperation, ValueError):
        return Decimal("0")

def _to_stock(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None

def _row_to_item(row: dict, *, with_stock: bool) -> CatalogItem:
    return CatalogItem(
        id=str(row.get("id")),
        name=row.get("name") or "Article",
        unit_price=_to_decimal(row.get("price")),
        is_active=bool(row.get("is_active")),
        stock_quantity=_to_stock(row.get("stock_quantity")) if with_stock else None,
    )

def _fetch(table: str, columns: str, ids: Iterable[str]) -> List[dict]:
    id_list = sorted({str(i) for i in ids})
    if not id_list:
        return []
    try:
        res = (
            supabase_client.get_supabase()
            .table(table)
            .select(columns)
            .in_("id", id_list)
            .execute()
        )
    except Exception:
        logger.exception("catalog.repository._fetch failed table=%s ids=%s", table, id_list)
        raise CatalogUnavailableError("Catalogue momentanément indisponible, veuillez réessayer")
    return res.data or []

def fetch_products(ids: Iterable[str]) -> List[CatalogItem]:
    """Produits par ids: id, name, price, stock_quantity, is_active."""
    rows = _fetch("products", "id, name, price, stock_quantity, is_active", ids)
    return [_row_to_item(r, with_stock=True) for r in rows]

def fetch_packs(ids: Iterable[str]) -> List[CatalogItem]:
    """Packs par ids: pas de stock propre, stock_quantity=None."""
    rows = _fetch("packs", "id, name, price, is_active", ids)
    return [_row_to_item(r, with_stock=False) for r in rows]

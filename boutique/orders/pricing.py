"""
Validation et tarification d'un panier (pur calcul, aucune écriture).

Étapes:
  1) panier vide -> rejet
  2) chaque ligne: référence UUID bien formée, une seule nature (product_id xor pack_id),
     quantité entière dans [1, MAX_LINE_QUANTITY]; aucune lecture catalogue si une ligne échoue
  3) lecture groupée du catalogue (une requête par nature)
  4) article absent ou inactif -> ItemUnavailableError (pas de commande partielle)
  5) stock fini insuffisant -> InsufficientStockError (pas de reliquat)
  6) total = somme(prix catalogue * quantité); les prix envoyés par le client sont ignorés
"""
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Union
from uuid import UUID

from boutique.config import MAX_LINE_QUANTITY
from boutique.catalog import repository as catalog
from .errors import CartValidationError, ItemUnavailableError, InsufficientStockError
from .models import CatalogItem, PackLine, PricedCart, PricedItem, ProductLine, parse_uuid

Fetcher = Callable[[Iterable[str]], List[CatalogItem]]

# module boutique.orders.pricing
def _parse_reference(value: Any, index: int, field: str) -> UUID:
    ref = parse_uuid(value)
    if ref is None:
        raise CartValidationError(f"Ligne {index}: {field} invalide")
    return UUID(ref)

def _parse_quantity(value: Any, index: int, max_quantity: int) -> int:
    # bool est un int en Python: on le refuse explicitement, comme les flottants
    if isinstance(value, bool) or not isinstance(value, int):
        raise CartValidationError(f"Ligne {index}: quantité invalide")
    if value <= 0 or value > max_quantity:
        raise CartValidationError(f"Ligne {index}: quantité invalide (1 à {max_quantity})")
    return value

def parse_cart_line(raw: Any, index: int, max_quantity: int = MAX_LINE_QUANTITY) -> Union[ProductLine, PackLine]:
    """
    Convertit une ligne brute {product_id|pack_id, quantity} en ProductLine | PackLine.
    Les champs annexes (price, name...) envoyés par le client sont ignorés.
    """
    if not isinstance(raw, dict):
        raise CartValidationError(f"Ligne {index}: format invalide")
    product_id = raw.get("product_id")
    pack_id = raw.get("pack_id")
    if bool(product_id) == bool(pack_id):
        raise CartValidationError(f"Ligne {index}: exactement un de product_id ou pack_id est requis")
    quantity = _parse_quantity(raw.get("quantity"), index, max_quantity)
    if product_id:
        return ProductLine(reference_id=_parse_reference(product_id, index, "product_id"), quantity=quantity)
    return PackLine(reference_id=_parse_reference(pack_id, index, "pack_id"), quantity=quantity)

def parse_cart(raw_items: Any, max_quantity: int = MAX_LINE_QUANTITY) -> List[Union[ProductLine, PackLine]]:
    if not isinstance(raw_items, list) or not raw_items:
        raise CartValidationError("Panier vide")
    return [parse_cart_line(raw, i, max_quantity) for i, raw in enumerate(raw_items)]

def price_lines(
    lines: List[Union[ProductLine, PackLine]],
    *,
    fetch_products: Fetcher = None,
    fetch_packs: Fetcher = None,
) -> PricedCart:
    """
    Résout les lignes typées contre le catalogue et calcule le total.
    fetch_products/fetch_packs sont injectables (tests); par défaut le repository catalogue.
    """
    fetch_products = fetch_products or catalog.fetch_products
    fetch_packs = fetch_packs or catalog.fetch_packs

    product_ids = [str(l.reference_id) for l in lines if isinstance(l, ProductLine)]
    pack_ids = [str(l.reference_id) for l in lines if isinstance(l, PackLine)]
    products: Dict[str, CatalogItem] = {p.id: p for p in fetch_products(product_ids)} if product_ids else {}
    packs: Dict[str, CatalogItem] = {p.id: p for p in fetch_packs(pack_ids)} if pack_ids else {}

    # Quantité demandée cumulée par référence: deux lignes du même produit partagent le même stock
    requested: Dict[str, int] = {}
    for line in lines:
        ref = str(line.reference_id)
        requested[ref] = requested.get(ref, 0) + line.quantity

    total = Decimal("0")
    items: List[PricedItem] = []
    for line in lines:
        ref = str(line.reference_id)
        source = products if line.kind == "product" else packs
        item = source.get(ref)
        if item is None or not item.is_active:
            raise ItemUnavailableError(line.kind, ref)
        if item.stock_quantity is not None and item.stock_quantity < requested[ref]:
            raise InsufficientStockError(item.name, ref)
        total += item.unit_price * line.quantity
        items.append(PricedItem(
            kind=line.kind,
            reference_id=ref,
            name=item.name,
            unit_price=item.unit_price,
            quantity=line.quantity,
        ))
    return PricedCart(total_amount=total, items=items)

def price_cart(raw_items: Any, *, fetch_products: Fetcher = None, fetch_packs: Fetcher = None) -> PricedCart:
    """Point d'entrée: validation de toutes les lignes puis tarification."""
    lines = parse_cart(raw_items)
    return price_lines(lines, fetch_products=fetch_products, fetch_packs=fetch_packs)

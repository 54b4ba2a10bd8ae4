# module boutique.orders.models
"""
Types du flux commande.
- Lignes de panier en variantes étiquetées (ProductLine | PackLine), jamais une struct aux champs optionnels.
- CatalogItem / PricedItem / PricedCart: représentation interne stricte, montants en Decimal.
- OrderStatus / PaymentStatus: deux axes indépendants (exécution vs paiement).
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"


def parse_uuid(value: Any) -> Optional[str]:
    """
    Forme canonique (minuscules, avec tirets) d'un identifiant, ou None.
    Les colonnes id sont de type uuid: une autre valeur ferait échouer la requête PostgREST (22P02).
    """
    if not isinstance(value, str):
        return None
    raw = value.strip().lower()
    try:
        ref = UUID(raw)
    except ValueError:
        return None
    # UUID() accepte aussi les formes sans tirets ou entre accolades
    return str(ref) if str(ref) == raw else None


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Chemin nominal linéaire; 'cancelled' est accessible depuis tout état non terminal.
_HAPPY_PATH = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current in TERMINAL_STATUSES or current == target:
        return False
    if target == OrderStatus.CANCELLED:
        return True
    return _HAPPY_PATH.index(target) == _HAPPY_PATH.index(current) + 1


# --- Lignes de panier (entrée client, non fiable) ---

class ProductLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["product"] = "product"
    reference_id: UUID
    quantity: int


class PackLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["pack"] = "pack"
    reference_id: UUID
    quantity: int


CartLine = Annotated[Union[ProductLine, PackLine], Field(discriminator="kind")]


class ShippingInfo(BaseModel):
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    zip: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        # Les formulaires envoient "" pour un champ laissé vide
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


# --- Catalogue et tarification ---

@dataclass(frozen=True)
class CatalogItem:
    id: str
    name: str
    unit_price: Decimal
    is_active: bool
    stock_quantity: Optional[int] = None  # None: stock non contraint (packs)


@dataclass(frozen=True)
class PricedItem:
    kind: str
    reference_id: str
    name: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_row(self, order_id: str) -> Dict[str, Any]:
        """Snapshot order_items: nom et prix figés au moment de la commande."""
        return {
            "order_id": order_id,
            "product_id": self.reference_id if self.kind == "product" else None,
            "pack_id": self.reference_id if self.kind == "pack" else None,
            "product_name": self.name,
            "product_price": float(self.unit_price),
            "quantity": self.quantity,
        }


@dataclass
class PricedCart:
    total_amount: Decimal
    items: List[PricedItem] = field(default_factory=list)

    def stock_requirements(self) -> Dict[str, int]:
        """Quantités agrégées par produit (les packs ne sont pas contraints en stock)."""
        needed: Dict[str, int] = {}
        for it in self.items:
            if it.kind == "product":
                needed[it.reference_id] = needed.get(it.reference_id, 0) + it.quantity
        return needed

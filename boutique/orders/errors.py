"""
Taxonomie des erreurs du flux commande/paiement.

Chaque erreur porte son code HTTP et un message présentable au client.
Les erreurs 'retryable' (persistance, passerelle) sont rendues avec un message générique
par le handler (boutique.app_setup.exceptions); le détail reste dans les logs.
"""
from typing import Optional


class OrderError(Exception):
    status_code = 400
    retryable = False

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# --- Validation d'entrée (avant toute lecture catalogue) ---

class CartValidationError(OrderError):
    status_code = 400


class CartLineNotFoundError(OrderError):
    status_code = 404

    def __init__(self, line_id: str):
        super().__init__("Ligne de panier introuvable")
        self.line_id = line_id


class UnknownStatusError(OrderError):
    """Statut de commande absent ou hors de l'énumération."""
    status_code = 400


# --- Disponibilité (après lecture catalogue, avant toute écriture) ---

class ItemUnavailableError(OrderError):
    status_code = 400

    def __init__(self, kind: str, reference_id: str):
        label = "Produit" if kind == "product" else "Pack"
        super().__init__(f"{label} indisponible: {reference_id}")
        self.kind = kind
        self.reference_id = reference_id


class InsufficientStockError(OrderError):
    status_code = 400

    def __init__(self, name: str, reference_id: str):
        super().__init__(f"Stock insuffisant pour {name}")
        self.name = name
        self.reference_id = reference_id


class CatalogUnavailableError(OrderError):
    """Échec transitoire de lecture du catalogue (distinct de 'introuvable')."""
    status_code = 503
    retryable = True


# --- Persistance ---

class OrderPersistenceError(OrderError):
    status_code = 500
    retryable = True


class OrderNotFoundError(OrderError):
    status_code = 404

    def __init__(self, order_id: str):
        super().__init__(f"Commande introuvable: {order_id}")
        self.order_id = order_id


class OrderAccessDenied(OrderError):
    status_code = 403


class InvalidStatusTransition(OrderError):
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Transition de statut interdite: {current} -> {target}")
        self.current = current
        self.target = target


class OrderNotPayable(OrderError):
    status_code = 409


# --- Passerelle de paiement ---

class CheckoutInitiationError(OrderError):
    status_code = 502
    retryable = True

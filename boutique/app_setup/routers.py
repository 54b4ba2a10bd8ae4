"""
Registre central des routers.
- API v1: orders, payments (checkout + webhook), cart, notifications (hook statut)
- Health: health_router
"""
from fastapi import FastAPI
from boutique.orders import views as orders_views
from boutique.payments import views as payments_views
from boutique.carts import views as carts_views
from boutique.notifications import views as notifications_views
from boutique.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    L'ordre n'a pas d'impact sauf conflits de chemins (évités par préfixes).
    """
    # API v1
    app.include_router(orders_views.router)
    app.include_router(payments_views.router)
    app.include_router(carts_views.router)
    app.include_router(notifications_views.router)
    # Health & monitoring
    app.include_router(health_router)

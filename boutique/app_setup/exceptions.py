"""
Gestionnaires d'exceptions enregistrés par la factory.
- OrderError (métier): {"success": false, "error": message} avec le code porté par l'erreur.
  Les erreurs transitoires (persistance, passerelle) renvoient un message générique; le détail est dans les logs.
- HTTPException (auth, 401/403): JSON {"detail": ...} pour les clients programmatiques.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from boutique.orders.errors import OrderError

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "Une erreur temporaire est survenue, veuillez réessayer"

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(OrderError)
    async def order_error_handler(request: Request, exc: OrderError):
        if exc.retryable:
            logger.warning("%s on %s %s: %s", exc.__class__.__name__, request.method, request.url.path, exc.message)
            message = RETRY_MESSAGE
        else:
            message = exc.message
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": message})

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))

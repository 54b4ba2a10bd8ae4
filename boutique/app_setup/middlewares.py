from fastapi import Request, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from boutique.config import COOKIE_SECURE, CORS_ORIGINS, ALLOWED_HOSTS, SESSION_SECRET_KEY

"""
Middlewares transverses de l'application.
- register_basic_middlewares: session (paniers invités), CORS, TrustedHost et confiance en X-Forwarded-*.
- register_security_middleware: en-têtes de sécurité sur toutes les réponses.
- register_no_cache_middleware: empêche la mise en cache des réponses commandes/panier.
Notes:
- L'API s'authentifie par jeton Bearer (pas de cookie de session Supabase): pas de contrôle CSRF.
- Le webhook Chargily lit le corps brut: aucun middleware ne doit le consommer avant la route.
"""
NO_CACHE_PREFIXES = ("/api/v1/orders", "/api/v1/cart", "/api/v1/payments")

def register_basic_middlewares(app: FastAPI) -> None:
    """
    Ajoute les middlewares « de base »:
    - SessionMiddleware: cookie signé portant le panier invité.
    - CORSMiddleware: origines autorisées (front boutique).
    - TrustedHostMiddleware: limite les hôtes acceptés (défense host header).
    - ProxyHeadersMiddleware: fait confiance aux en-têtes du proxy (x-forwarded-*).
    """
    app.add_middleware(
        SessionMiddleware,
        secret_key=SESSION_SECRET_KEY,
        same_site="lax",
        https_only=COOKIE_SECURE,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials="*" not in CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

def register_security_middleware(app: FastAPI) -> None:
    """En-têtes: X-Frame-Options, X-Content-Type-Options, Referrer-Policy, Permissions-Policy, HSTS (si secure)."""
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
        if COOKIE_SECURE:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
        return response

def register_no_cache_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def no_cache_for_orders(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith(NO_CACHE_PREFIXES):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response

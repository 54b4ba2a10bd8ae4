"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

En production, le serveur importe `boutique.asgi:app`; toute la configuration
(routes, middlewares, lifespan) est centralisée dans boutique.app_setup.factory.
"""

from boutique.app import app

if __name__ == "__main__":
    # Exécution directe utile en développement local.
    import os
    import uvicorn
    uvicorn.run(
        "boutique.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )

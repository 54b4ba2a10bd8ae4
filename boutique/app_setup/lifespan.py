"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: fallback mémoire si l'init échoue
  - RATE_LIMIT_REDIS_URL: URL Redis (défaut redis://127.0.0.1:6379/0)
"""
import os
import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

logger = logging.getLogger("uvicorn.error")

def _redis_client():
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
        from fakeredis.aioredis import FakeRedis  # dépendance de test (extra 'test')
        return FakeRedis(decode_responses=True)
    redis_url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
    return aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Configure le rate limiting et gère les fallbacks.
    - Redis indisponible sans fallback: rate limiting désactivé proprement (l'API reste servie).
    - Les logs indiquent l'état effectif (enabled/disabled).
    """
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        yield
        return

    initialized = False
    try:
        await FastAPILimiter.init(_redis_client())
        initialized = True
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning("Rate limiting falling back to local in-memory due to init error: %s", e)
        else:
            app.state.rate_limit_enabled = False
            logger.warning("Rate limiting disabled due to init error: %s", e)

    yield

    if initialized:
        await FastAPILimiter.close()

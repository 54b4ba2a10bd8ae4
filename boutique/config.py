# boutique.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du backend boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Chargily, Resend)
- Fixe les bornes métier (quantité max par ligne) et les politiques (signature webhook, réservation de stock)
- Toutes les valeurs sont lues une seule fois au démarrage, jamais depuis la requête
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_flag(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes", "on")

def _env_int(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name) or str(default)))
    except ValueError:
        return default

# Supabase: URL et clés (anon pour les lectures RLS, service pour les écritures serveur)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("VITE_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Cookies / sécurité
COOKIE_SECURE = _env_flag("COOKIE_SECURE")
SESSION_SECRET_KEY = os.getenv("SESSION_SECRET_KEY", "replace_me_with_a_long_random_secret")
ADMIN_EMAILS = [e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()]

# CORS / hôtes
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Chargily Pay (passerelle de paiement, DZD)
CHARGILY_SECRET_KEY = _clean_env(os.getenv("CHARGILY_SECRET_KEY") or "")
CHARGILY_API_URL = _clean_env(os.getenv("CHARGILY_API_URL") or "https://pay.chargily.net/test/api/v2").rstrip("/")
CHARGILY_TIMEOUT_SECONDS = float(_env_int("CHARGILY_TIMEOUT_SECONDS", 10))
CHARGILY_LOCALE = _clean_env(os.getenv("CHARGILY_LOCALE") or "fr")
CHECKOUT_CURRENCY = "dzd"
PAYMENT_METHOD_NAME = "chargily"

# Webhook: exige la signature HMAC (la tolérance des requêtes non signées n'est qu'un mode legacy)
WEBHOOK_REQUIRE_SIGNATURE = _env_flag("WEBHOOK_REQUIRE_SIGNATURE", "true")

# Resend (emails transactionnels)
RESEND_API_KEY = _clean_env(os.getenv("RESEND_API_KEY") or "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Ibda3D Orders <onboarding@resend.dev>")
STORE_URL = _clean_env(os.getenv("STORE_URL") or "https://ibda3d.com")

# Secret partagé optionnel pour le hook "UPDATE orders" de la plateforme
ORDER_HOOK_SECRET = _clean_env(os.getenv("ORDER_HOOK_SECRET") or "")

# Déclencheur unique de l'email de statut: "api" (changement admin) ou "db_hook" (UPDATE orders)
STATUS_EMAIL_TRIGGER = _clean_env(os.getenv("STATUS_EMAIL_TRIGGER") or "api").lower()
if STATUS_EMAIL_TRIGGER not in ("api", "db_hook"):
    STATUS_EMAIL_TRIGGER = "api"

# URLs publiques: front (redirections) et API (endpoint webhook)
BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:5173").rstrip("/")
PUBLIC_API_URL = _clean_env(os.getenv("PUBLIC_API_URL") or "http://localhost:8000").rstrip("/")
CHECKOUT_SUCCESS_PATH = os.getenv("CHECKOUT_SUCCESS_PATH", "/payment-success")
CHECKOUT_FAILURE_PATH = os.getenv("CHECKOUT_FAILURE_PATH", "/payment-failed")
WEBHOOK_PATH = "/api/v1/payments/webhook"

# Bornes métier
MAX_LINE_QUANTITY = _env_int("MAX_LINE_QUANTITY", 10_000)
RESERVE_STOCK_ON_ORDER = _env_flag("RESERVE_STOCK_ON_ORDER", "true")

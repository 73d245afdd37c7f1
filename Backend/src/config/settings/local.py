import os
from pathlib import Path

from .base import *  # noqa

# --- Charger .env (Backend/.env) et ÉCRASER les variables OS si besoin -----
try:
    from dotenv import load_dotenv
    ENV_PATH = Path(__file__).resolve().parents[3] / ".env"  # -> dossier Backend/
    if ENV_PATH.exists():
        load_dotenv(ENV_PATH, override=True)
        import logging
        logging.getLogger(__name__).info(f"[settings] .env chargé depuis {ENV_PATH}")
except Exception as e:
    # pas bloquant si le .env est illisible
    import logging
    logging.getLogger(__name__).warning(f"[settings] Impossible de charger .env: {e}")

# --- Dev local ---
DEBUG = True
ALLOWED_HOSTS = ["127.0.0.1", "localhost", "host.docker.internal"]

# CORS en dev
CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_CREDENTIALS = True

# Relire les valeurs qui peuvent venir du .env
JWT_SECRET = os.getenv("JWT_SECRET", JWT_SECRET)
SIMPLE_JWT["SIGNING_KEY"] = JWT_SECRET

# En dev on garde l'authentification JWT mais on ajoute la session pour l'API navigable
REST_FRAMEWORK.update({
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "users.authentication.QhseJWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
})

# Pas de broker en dev: les taches s'executent dans le process
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "1") == "1"

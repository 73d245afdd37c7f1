from .base import *

# Production
DEBUG = False

# IMPORTANT: définir DJANGO_ALLOWED_HOSTS via variables d'env
# Exemple: export DJANGO_ALLOWED_HOSTS="qhse.example.com"
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "").split(",") if h] or ["*"]

# CORS: restreindre aux domaines du frontend en prod
CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = [u for u in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",") if u]

# Sécurité HTTP
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True
SECURE_SSL_REDIRECT = os.getenv("SECURE_SSL_REDIRECT", "1") == "1"
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True

# Le secret JWT par defaut est refuse en production
if JWT_SECRET == "qhse-secret-key-change-in-production":
    raise RuntimeError("JWT_SECRET doit être défini en production")

# Logs simples vers stdout
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {"simple": {"format": "[%(levelname)s] %(name)s: %(message)s"}},
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "simple"}},
    "root": {"handlers": ["console"], "level": "INFO"},
    "loggers": {"django.request": {"level": "ERROR"}},
}

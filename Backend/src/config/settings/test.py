from .base import *

# Tests
DEBUG = True

# DB sqlite en mémoire par défaut pour rapidité
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Auth plus légère en test
PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Email capturé en mémoire
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

# Throttling large en test (le verrouillage de compte reste actif)
REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_RATES": {"login": "1000/m"},
}

CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_BROKER_URL = "memory://"

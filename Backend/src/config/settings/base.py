import os
from datetime import timedelta
from pathlib import Path

# ----- Paths -----
# Base du projet (2 niveaux au-dessus de config/settings.py)
BASE_DIR = Path(__file__).resolve().parent.parent.parent
DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)

# ----- Core -----
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev_only_change_me")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
APP_NAME = "QHSE API"
APP_VERSION = "1.0.0"

# ALLOWED_HOSTS par defaut + env
_default_hosts = {"localhost", "127.0.0.1", "[::1]"}
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "").split(",") if h] or list(_default_hosts)

# ----- Applications -----
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # 3rd party
    "rest_framework",
    "corsheaders",

    # project apps
    "common",
    "users",
    "qhse",
    "laboratoire",
    "qualite",
    "hse",
    "notifications",
    "dashboard",
]

AUTH_USER_MODEL = "users.User"

# ----- Middleware -----
MIDDLEWARE = [
    # ordre recommande
    "django.middleware.security.SecurityMiddleware",

    # cors avant CommonMiddleware
    "corsheaders.middleware.CorsMiddleware",

    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",

    "common.middleware.RequestIDMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

# ----- Database -----
# sqlite par defaut, sinon DB_ENGINE=django.db.backends.postgresql etc.
DATABASES = {
    "default": {
        "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.getenv("DB_NAME", str(DATA_DIR / "qhse.sqlite3")),
        "USER": os.getenv("DB_USER", ""),
        "PASSWORD": os.getenv("DB_PASSWORD", ""),
        "HOST": os.getenv("DB_HOST", ""),
        "PORT": os.getenv("DB_PORT", ""),
    }
}

# ----- Password validation -----
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator", "OPTIONS": {"min_length": 6}},
    {"NAME": "users.validators.ComplexiteMotDePasseValidator"},
]

# ----- Internationalization -----
LANGUAGE_CODE = "fr-fr"
TIME_ZONE = "Europe/Paris"
USE_I18N = True
USE_TZ = True

# ----- Static files -----
STATIC_URL = "/static/"
STATIC_ROOT = str(BASE_DIR / "static")

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ----- Uploads -----
UPLOAD_MAX_SIZE = int(os.getenv("UPLOAD_MAX_SIZE", str(10 * 1024 * 1024)))
DATA_UPLOAD_MAX_MEMORY_SIZE = UPLOAD_MAX_SIZE
FILE_UPLOAD_MAX_MEMORY_SIZE = UPLOAD_MAX_SIZE

# ----- DRF -----
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "users.authentication.QhseJWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "EXCEPTION_HANDLER": "common.exceptions.custom_exception_handler",
    "DEFAULT_THROTTLE_RATES": {
        # par IP; doit rester au-dessus de LOGIN_MAX_ATTEMPTS pour que le verrou (423) passe avant
        "login": os.getenv("LOGIN_RATE", "100/15m"),
    },
    "DATETIME_FORMAT": "%Y-%m-%dT%H:%M:%S%z",
}

# ----- JWT -----
JWT_SECRET = os.getenv("JWT_SECRET", "qhse-secret-key-change-in-production")
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(hours=int(os.getenv("JWT_EXPIRES_HOURS", "24"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_EXPIRES_DAYS", "7"))),
    "ALGORITHM": "HS256",
    "SIGNING_KEY": JWT_SECRET,
    "AUTH_HEADER_TYPES": ("Bearer",),
    "USER_ID_FIELD": "id",
    "USER_ID_CLAIM": "id",
    "UPDATE_LAST_LOGIN": False,
}

# ----- Securite des connexions -----
LOGIN_MAX_ATTEMPTS = int(os.getenv("LOGIN_MAX_ATTEMPTS", "5"))
LOGIN_LOCK_HOURS = int(os.getenv("LOGIN_LOCK_HOURS", "2"))

# ----- Regles metier QHSE -----
QHSE_PAGINATION = {
    "default_limit": int(os.getenv("PAGINATION_DEFAULT_LIMIT", "10")),
    "max_limit": int(os.getenv("PAGINATION_MAX_LIMIT", "100")),
}
QHSE_ALERTES = {
    # jours avant echeance (formations, conformites, peremptions, certificats)
    "jours_expiration": int(os.getenv("ALERTE_JOURS_EXPIRATION", "30")),
    # seuil d'alerte de stock applique aux nouveaux EPI
    "stock_epi": int(os.getenv("ALERTE_STOCK_EPI", "5")),
    # pourcentage de risques critiques au-dela duquel le dashboard alerte
    "taux_risques_critiques": float(os.getenv("ALERTE_TAUX_RISQUES_CRITIQUES", "10")),
}

# ----- CORS / CSRF -----
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = [u for u in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",") if u] or [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
CSRF_TRUSTED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

# si tu as un front public (ex vercel) ajoute-le ici:
_CSFR_ENV = os.getenv("CSRF_TRUSTED_ORIGINS", "")
if _CSFR_ENV:
    CSRF_TRUSTED_ORIGINS = [u for u in _CSFR_ENV.split(",") if u]

# ----- Celery -----
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_TASK_IGNORE_RESULT = True
CELERY_BEAT_SCHEDULE = {
    "purger-refresh-tokens": {
        "task": "users.tasks.purger_refresh_tokens_expires",
        "schedule": 60 * 60 * 6,
    },
    "expirer-dotations-epi": {
        "task": "hse.tasks.expirer_dotations_epi",
        "schedule": 60 * 60 * 24,
    },
    "generer-alertes": {
        "task": "notifications.tasks.generer_alertes",
        "schedule": 60 * 60,
    },
}

# ----- Logs simples -----
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {"simple": {"format": "[%(levelname)s] %(name)s: %(message)s"}},
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "simple"}},
    "root": {"handlers": ["console"], "level": os.getenv("LOG_LEVEL", "INFO")},
}

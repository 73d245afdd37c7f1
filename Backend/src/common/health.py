import logging
import time

from django.contrib.auth import get_user_model
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.utils import timezone

logger = logging.getLogger(__name__)

_DEMARRAGE = time.monotonic()


def _database_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        return True
    except DatabaseError as e:
        logger.error(f"[health] base de données indisponible: {e}")
        return False


def health(request):
    """
    Endpoint de sante tres simple.
    GET /api/health -> {"status":"OK","timestamp":...,"uptime":...,"database":"connected"}
    """
    return JsonResponse({
        "status": "OK",
        "timestamp": timezone.now().isoformat(),
        "uptime": round(time.monotonic() - _DEMARRAGE, 3),
        "database": "connected" if _database_ok() else "disconnected",
    })


def db_test(request):
    """GET /api/db-test -> verifie la connexion et compte les utilisateurs."""
    if not _database_ok():
        return JsonResponse(
            {"success": False, "message": "Base de données non connectée", "code": "DATABASE_UNAVAILABLE"},
            status=503,
        )
    return JsonResponse({
        "success": True,
        "message": "Connexion à la base de données OK",
        "data": {
            "vendor": connection.vendor,
            "users": get_user_model().objects.count(),
        },
    })

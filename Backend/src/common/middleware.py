import logging
import time
import uuid
from typing import Callable

from django.http import HttpRequest, HttpResponse

logger = logging.getLogger("qhse.requests")


class RequestIDMiddleware:
    """
    Identifie et journalise chaque requete API.
    - Header de sortie: X-Request-ID (repris de l'entree s'il est fourni)
    - Accessible via request.request_id
    - Une ligne de log par requete /api: methode, chemin, statut, duree
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.request_id = request_id
        debut = time.monotonic()

        response = self.get_response(request)

        response.headers["X-Request-ID"] = request_id
        if request.path.startswith("/api/"):
            duree = (time.monotonic() - debut) * 1000
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(
                level,
                f"{request.method} {request.path} {response.status_code} {duree:.0f}ms [{request_id}]",
            )
        return response

import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class UserFacingAPIException(APIException):
    """
    Exception controllable et propre pour retourner un message a l'utilisateur.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Une erreur est survenue."
    default_code = "error"


class StockInsuffisant(UserFacingAPIException):
    default_detail = "Stock insuffisant"
    default_code = "STOCK_INSUFFISANT"


class TransitionInvalide(UserFacingAPIException):
    default_detail = "Opération impossible dans l'état actuel"
    default_code = "TRANSITION_INVALIDE"


# Codes par defaut quand l'exception DRF n'en porte pas de plus precis
_CODES_PAR_TYPE = (
    (exceptions.ValidationError, "VALIDATION_ERROR"),
    (exceptions.NotAuthenticated, "MISSING_TOKEN"),
    (exceptions.AuthenticationFailed, "AUTH_ERROR"),
    (exceptions.PermissionDenied, "INSUFFICIENT_PERMISSIONS"),
    (exceptions.NotFound, "NOT_FOUND"),
    (exceptions.MethodNotAllowed, "METHOD_NOT_ALLOWED"),
    (exceptions.Throttled, "TOO_MANY_REQUESTS"),
    (exceptions.ParseError, "INVALID_JSON"),
)

_MESSAGES_PAR_CODE = {
    "VALIDATION_ERROR": "Erreur de validation",
    "MISSING_TOKEN": "Token d'accès requis",
    "TOO_MANY_REQUESTS": "Trop de tentatives, réessayez plus tard",
}

# codes generiques de DRF que l'on remplace par nos codes stables
_CODES_DRF = {
    "error", "invalid", "not_authenticated", "authentication_failed", "permission_denied",
    "not_found", "method_not_allowed", "throttled", "parse_error",
}


def _code_pour(exc: APIException) -> str:
    code = getattr(exc, "detail", None)
    code = getattr(code, "code", None)
    if code and code not in _CODES_DRF:
        return code
    if not isinstance(exc, UserFacingAPIException) or exc.default_code == "error":
        for klass, generic in _CODES_PAR_TYPE:
            if isinstance(exc, klass):
                return generic
    return exc.default_code if exc.default_code not in _CODES_DRF else "ERROR"


def _aplatir(detail: Any, data: Any, prefix: str = "") -> List[Dict[str, Any]]:
    """Transforme le detail d'une ValidationError en liste {field, message, value}."""
    erreurs: List[Dict[str, Any]] = []
    if isinstance(detail, dict):
        for field, sub in detail.items():
            path = f"{prefix}.{field}" if prefix else str(field)
            sub_data = data.get(field) if isinstance(data, dict) else None
            erreurs.extend(_aplatir(sub, sub_data, path))
    elif isinstance(detail, list):
        if all(not isinstance(d, (dict, list)) for d in detail):
            for message in detail:
                erreurs.append({"field": prefix or "non_field_errors", "message": str(message), "value": data})
        else:
            for index, sub in enumerate(detail):
                sub_data = data[index] if isinstance(data, list) and index < len(data) else None
                erreurs.extend(_aplatir(sub, sub_data, f"{prefix}.{index}" if prefix else str(index)))
    else:
        erreurs.append({"field": prefix or "non_field_errors", "message": str(detail), "value": data})
    return erreurs


def _message_pour(exc: APIException, code: str) -> str:
    if code in _MESSAGES_PAR_CODE:
        return _MESSAGES_PAR_CODE[code]
    detail = exc.detail
    if isinstance(detail, dict):
        detail = detail.get("detail", next(iter(detail.values()), ""))
    if isinstance(detail, list):
        detail = detail[0] if detail else ""
    return str(detail)


def custom_exception_handler(exc, context) -> Optional[Response]:
    """
    Enveloppe toutes les erreurs dans un format stable:
    {"success": false, "message", "error", "code", ["errors": [{field, message, value}]]}
    """
    if isinstance(exc, Http404):
        exc = exceptions.NotFound(str(exc) or "Ressource non trouvée")
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied()

    response = exception_handler(exc, context)
    request = context.get("request")

    if response is not None:
        code = _code_pour(exc)
        erreurs = None
        if isinstance(exc, exceptions.ValidationError):
            data = getattr(request, "data", None) if request is not None else None
            erreurs = _aplatir(exc.detail, data)
        message = _message_pour(exc, code)
        body: Dict[str, Any] = {
            "success": False,
            "message": message,
            "error": erreurs[0]["message"] if erreurs else message,
            "code": code,
        }
        if erreurs:
            body["errors"] = erreurs
        response.data = body
        return response

    # Erreur non geree -> 500
    request_id = getattr(getattr(request, "_request", request), "request_id", "-")
    logger.exception(f"[erreur] requete {request_id}: {exc}")
    return Response(
        {
            "success": False,
            "message": "Erreur interne du serveur",
            "error": str(exc) if settings.DEBUG else "Une erreur est survenue",
            "code": "SERVER_ERROR",
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

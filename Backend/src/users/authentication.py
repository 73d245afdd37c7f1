import logging

import jwt
from rest_framework import exceptions
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings

logger = logging.getLogger(__name__)


class QhseJWTAuthentication(JWTAuthentication):
    """
    Authentification Bearer JWT avec des codes d'erreur distincts:
    - MISSING_TOKEN     : pas d'en-tete (leve plus loin par IsAuthenticated)
    - INVALID_TOKEN     : en-tete ou token mal forme, mauvais type de token
    - TOKEN_EXPIRED     : signature valide mais token expire
    - INVALID_SIGNATURE : token signe avec un autre secret
    - AUTH_ERROR        : utilisateur introuvable ou desactive
    """

    def get_raw_token(self, header):
        try:
            return super().get_raw_token(header)
        except exceptions.AuthenticationFailed:
            raise exceptions.AuthenticationFailed("Format de token invalide", code="INVALID_TOKEN")

    def get_validated_token(self, raw_token):
        try:
            jwt.decode(
                raw_token,
                key=api_settings.SIGNING_KEY,
                algorithms=[api_settings.ALGORITHM],
                options={"verify_aud": False},
            )
        except jwt.ExpiredSignatureError:
            raise exceptions.AuthenticationFailed("Token expiré", code="TOKEN_EXPIRED")
        except jwt.InvalidSignatureError:
            raise exceptions.AuthenticationFailed("Signature du token invalide", code="INVALID_SIGNATURE")
        except jwt.InvalidTokenError:
            raise exceptions.AuthenticationFailed("Token invalide", code="INVALID_TOKEN")

        try:
            return api_settings.AUTH_TOKEN_CLASSES[0](raw_token)
        except TokenError as e:
            # ex: refresh token presente a la place d'un access token
            raise exceptions.AuthenticationFailed(f"Token invalide: {e}", code="INVALID_TOKEN")

    def get_user(self, validated_token):
        try:
            return super().get_user(validated_token)
        except exceptions.AuthenticationFailed as e:
            logger.warning(f"[auth] token refusé pour l'utilisateur {validated_token.get('id')}: {e}")
            raise exceptions.AuthenticationFailed(
                "Utilisateur introuvable ou désactivé", code="AUTH_ERROR"
            )

from rest_framework import status

from common.exceptions import UserFacingAPIException


class IdentifiantsInvalides(UserFacingAPIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Email ou mot de passe incorrect"
    default_code = "INVALID_CREDENTIALS"


class CompteVerrouille(UserFacingAPIException):
    status_code = status.HTTP_423_LOCKED
    default_detail = "Compte temporairement verrouillé en raison de trop nombreuses tentatives de connexion"
    default_code = "ACCOUNT_LOCKED"


class CompteDesactive(UserFacingAPIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Compte désactivé"
    default_code = "ACCOUNT_DISABLED"


class RefreshTokenInvalide(UserFacingAPIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Token de rafraîchissement invalide"
    default_code = "INVALID_REFRESH_TOKEN"


class UtilisateurExistant(UserFacingAPIException):
    default_detail = "Un utilisateur avec cet email existe déjà"
    default_code = "USER_EXISTS"


class MotDePasseActuelInvalide(UserFacingAPIException):
    default_detail = "Mot de passe actuel incorrect"
    default_code = "INVALID_CURRENT_PASSWORD"

from datetime import datetime, timezone
from typing import Tuple

from rest_framework_simplejwt.tokens import RefreshToken

from .models import RefreshTokenRecord, User


def claims_publics(user: User) -> dict:
    """Champs publics de l'identite embarques dans les tokens."""
    return {
        "email": user.email,
        "nom": user.nom,
        "prenom": user.prenom,
        "role": user.role,
        "permissions": list(user.permissions or []),
        "entreprise": user.entreprise,
    }


def generer_tokens(user: User) -> Tuple[str, str]:
    """
    Signe un couple (access, refresh) et memorise le refresh token
    sur l'utilisateur.
    """
    refresh = RefreshToken.for_user(user)
    for key, value in claims_publics(user).items():
        refresh[key] = value
    access = refresh.access_token

    RefreshTokenRecord.objects.create(
        user=user,
        token=str(refresh),
        expires_at=datetime.fromtimestamp(refresh["exp"], tz=timezone.utc),
    )
    return str(access), str(refresh)


def generer_access_token(refresh: RefreshToken, user: User) -> str:
    """Nouveau token d'acces a partir d'un refresh token deja verifie."""
    access = refresh.access_token
    # l'identite peut avoir change depuis l'emission du refresh token
    for key, value in claims_publics(user).items():
        access[key] = value
    return str(access)

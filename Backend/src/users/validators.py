import re

from django.core.exceptions import ValidationError


class ComplexiteMotDePasseValidator:
    """
    Exige au moins une minuscule, une majuscule et un chiffre.
    (la longueur minimale est geree par MinimumLengthValidator)
    """

    def validate(self, password, user=None):
        if not re.search(r"[a-z]", password or "") or not re.search(r"[A-Z]", password or "") \
                or not re.search(r"\d", password or ""):
            raise ValidationError(
                "Le mot de passe doit contenir au moins une minuscule, une majuscule et un chiffre",
                code="password_too_simple",
            )

    def get_help_text(self):
        return "Votre mot de passe doit contenir au moins une minuscule, une majuscule et un chiffre."

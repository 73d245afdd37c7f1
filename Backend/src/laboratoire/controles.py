"""
Jugement des resultats d'analyse contre leurs seuils.
"""
from typing import Optional

CRITERES = ("≤", "≥", "=", "±", "Entre")
TOLERANCE_DEFAUT = 5.0


def evaluer_resultat(
    valeur: Optional[float],
    critere: str,
    seuil_min: Optional[float] = None,
    seuil_max: Optional[float] = None,
    tolerance: Optional[float] = None,
) -> str:
    """
    "Conforme" / "Non conforme", ou "En attente" s'il manque la valeur
    ou le seuil dont le critere a besoin.

    ± : ecart a seuil_min <= seuil_min x tolerance % (5 % par defaut)
    """
    if valeur is None:
        return "En attente"
    if critere == "≤":
        if seuil_max is None:
            return "En attente"
        conforme = valeur <= seuil_max
    elif critere == "≥":
        if seuil_min is None:
            return "En attente"
        conforme = valeur >= seuil_min
    elif critere == "=":
        if seuil_min is None:
            return "En attente"
        conforme = valeur == seuil_min
    elif critere == "±":
        if seuil_min is None:
            return "En attente"
        tol = tolerance if tolerance is not None else TOLERANCE_DEFAUT
        conforme = abs(valeur - seuil_min) <= abs(seuil_min) * tol / 100
    else:
        if seuil_min is None and seuil_max is None:
            return "En attente"
        conforme = (seuil_min is None or valeur >= seuil_min) and (seuil_max is None or valeur <= seuil_max)
    return "Conforme" if conforme else "Non conforme"


def conformite_echantillon(score: int) -> str:
    if score >= 90:
        return "Conforme"
    if score >= 70:
        return "Partiellement conforme"
    return "Non conforme"

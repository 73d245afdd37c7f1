"""
Regles de calcul QHSE (fonctions pures, sans acces base).
"""
from typing import Iterable, Mapping, Optional, Tuple

from common.kpis import arrondi

PROBABILITES = {"Très faible": 1, "Faible": 2, "Modérée": 3, "Élevée": 4, "Très élevée": 5}
GRAVITES = {"Négligeable": 1, "Faible": 2, "Modérée": 3, "Élevée": 4, "Critique": 5}

NIVEAUX_RISQUE = ("Faible", "Modéré", "Élevé", "Critique")

SCORES_CONFORMITE = {
    "Exemplaire": 100,
    "Bon": 80,
    "Acceptable": 60,
    "Insuffisant": 40,
    "Critique": 20,
}


def score_risque(probabilite: str, gravite: str) -> int:
    """Score 1..25 = niveau de probabilite x niveau de gravite."""
    return PROBABILITES.get(probabilite, 1) * GRAVITES.get(gravite, 1)


def niveau_risque(score: int) -> str:
    if score <= 4:
        return "Faible"
    if score <= 8:
        return "Modéré"
    if score <= 15:
        return "Élevé"
    return "Critique"


def evaluer_risque(probabilite: str, gravite: str) -> Tuple[int, str]:
    score = score_risque(probabilite, gravite)
    return score, niveau_risque(score)


def score_audit(statuts_criteres: Iterable[str]) -> int:
    """100 x (conformes + 0.5 x observations) / total, arrondi 0.5 vers le haut; 0 sans critere."""
    statuts = list(statuts_criteres)
    if not statuts:
        return 0
    conformes = sum(1 for s in statuts if s == "Conforme")
    observations = sum(1 for s in statuts if s == "Observation")
    return int(arrondi((conformes + observations * 0.5) / len(statuts) * 100))


def conclusion_audit(non_conformites: int, observations: int) -> str:
    if non_conformites > 0:
        return "Non conforme"
    if observations > 0:
        return "Conforme avec réserves"
    return "Conforme"


def score_conformite(niveau: Optional[str]) -> Optional[int]:
    return SCORES_CONFORMITE.get(niveau)


def somme_couts(couts: Mapping, postes=("formation", "materiel", "deplacement", "hebergement")) -> float:
    total = 0.0
    for poste in postes:
        try:
            total += float(couts.get(poste) or 0)
        except (TypeError, ValueError):
            continue
    return total

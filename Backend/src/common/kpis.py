"""
KPIs et petites fonctions statistiques reutilisables
(tableaux de bord, statistiques par periode, incertitudes de mesure).
"""
from __future__ import annotations
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Optional
import math

from django.db.models import Count, QuerySet


def safe_div(a: float, b: float, default: float = 0.0) -> float:
    try:
        return a / b if b not in (0, 0.0, None) else default
    except (TypeError, ValueError):
        return default


def arrondi(valeur: float, decimales: int = 0) -> float:
    """Arrondi commercial (0.5 -> 1), pas l'arrondi bancaire de round()."""
    pas = Decimal(1).scaleb(-decimales)
    return float(Decimal(str(valeur)).quantize(pas, rounding=ROUND_HALF_UP))


def taux(num: float, den: float, decimales: int = 0) -> float:
    """Pourcentage num/den, 0 si le denominateur est nul."""
    valeur = arrondi(safe_div(num, den) * 100, decimales)
    return int(valeur) if decimales == 0 else valeur


def evolution(curr: float, prev: float) -> float:
    """Taux d'evolution en % ( (curr - prev) / abs(prev) )."""
    if prev in (0, 0.0, None):
        return 0.0
    return arrondi((curr - prev) / abs(prev) * 100, 1)


def mean(xs: Iterable[float]) -> Optional[float]:
    xs = list(x for x in xs if x is not None)
    if not xs:
        return None
    return sum(xs) / len(xs)


def stddev_pop(xs: Iterable[float]) -> Optional[float]:
    xs = list(x for x in xs if x is not None)
    if not xs:
        return None
    m = mean(xs)
    var = sum((x - m) ** 2 for x in xs) / len(xs)
    return math.sqrt(var)


def compter_par(qs: QuerySet, champ: str) -> Dict[str, int]:
    """Comptage groupe: {valeur: nombre} (GROUP BY champ)."""
    rows = qs.order_by().values(champ).annotate(total=Count("pk"))
    return {row[champ] if row[champ] not in (None, "") else "Non renseigné": row["total"] for row in rows}

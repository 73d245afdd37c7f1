import calendar
from datetime import date, datetime, timezone
from typing import Any, Optional, Union

from django.utils import dateparse
from django.utils import timezone as dj_timezone


def as_datetime(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """
    Normalise une valeur de date (objet ou chaine ISO stockee en JSON)
    en datetime "aware". Retourne None si la valeur est vide ou illisible.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        dt = dateparse.parse_datetime(str(value))
        if dt is None:
            d = dateparse.parse_date(str(value))
            if d is None:
                return None
            dt = datetime(d.year, d.month, d.day)
    if dj_timezone.is_naive(dt):
        dt = dj_timezone.make_aware(dt, timezone.utc)
    return dt


def as_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    dt = as_datetime(value)
    return dt.date() if dt else None


def ajouter_mois(dt: datetime, mois: int) -> datetime:
    """Ajoute un nombre de mois en ramenant le jour au dernier jour valide."""
    total = dt.month - 1 + int(mois)
    annee = dt.year + total // 12
    m = total % 12 + 1
    jour = min(dt.day, calendar.monthrange(annee, m)[1])
    return dt.replace(year=annee, month=m, day=jour)


def to_number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default

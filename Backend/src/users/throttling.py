import re

from rest_framework.throttling import ScopedRateThrottle

_DUREES = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_PERIODE = re.compile(r"^(\d*)\s*([smhd])[a-z]*$")


class LoginRateThrottle(ScopedRateThrottle):
    """
    Limitation des tentatives de connexion par IP.
    Accepte un multiplicateur dans la periode: "5/15m" ou "5/15min" = 5 requetes / 15 minutes.
    """

    def parse_rate(self, rate):
        if rate is None:
            return (None, None)
        num, period = rate.split("/")
        match = _PERIODE.match(period.strip().lower())
        if match is None:
            raise ValueError(f"Periode de limitation invalide: '{rate}'")
        multiple, unite = match.groups()
        return int(num), int(multiple or 1) * _DUREES[unite]

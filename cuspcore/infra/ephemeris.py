"""
Primitive d'illumination lunaire adossée à Swiss Ephemeris.

Les longitudes écliptiques apparentes du Soleil et de la Lune sont calculées en mode Moshier
(aucun fichier d'éphémérides requis). L'élongation donne l'angle de phase et la fraction éclairée.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

import structlog
import swisseph as swe

from cuspcore.core.constants import FULL_CIRCLE
from cuspcore.domain.errors import EphemerisUnavailableError
from cuspcore.domain.lunar import Illumination

log = structlog.get_logger(__name__)


def julian_day(instant: datetime) -> float:
    """Jour julien UT d'un instant (naïf = UTC)."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    ut = instant.astimezone(timezone.utc)
    hour = ut.hour + ut.minute / 60.0 + (ut.second + ut.microsecond / 1e6) / 3600.0
    return swe.julday(ut.year, ut.month, ut.day, hour)


class SwissEphemerisIllumination:
    """Implémentation de `IlluminationSource` via pyswisseph."""

    def __init__(self, flags: int = swe.FLG_MOSEPH):
        self.flags = flags

    def _longitude(self, jd: float, body: int) -> float:
        result, _ = swe.calc_ut(jd, body, self.flags)
        return result[0] % FULL_CIRCLE

    def illumination(self, instant: datetime) -> Illumination:
        """Retourne la fraction éclairée et l'angle de phase à `instant`.

        Raises:
            EphemerisUnavailableError: si Swiss Ephemeris échoue.
        """
        try:
            jd = julian_day(instant)
            sun = self._longitude(jd, swe.SUN)
            moon = self._longitude(jd, swe.MOON)
        except swe.Error as err:
            log.warning("ephemeris_failed", instant=instant.isoformat(), error=str(err))
            raise EphemerisUnavailableError(str(err)) from err
        elongation = (moon - sun) % FULL_CIRCLE
        fraction = (1.0 - math.cos(math.radians(elongation))) / 2.0
        phase = elongation / FULL_CIRCLE
        return Illumination(fraction=fraction, phase=phase % 1.0)

"""
Normalisation des positions planétaires issues de flux hétérogènes.

Les flux amont ne s'accordent pas sur le sens de "0°" (début de signe ou absence de donnée). Une
lecture suspecte est donc remplacée, dans l'ordre, par un recalcul depuis la longitude écliptique
puis par la dernière position valide connue; à défaut la planète est retirée du résultat.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from cuspcore.app.metrics import PLANET_FALLBACKS
from cuspcore.core.constants import DEGREES_PER_SIGN, FULL_CIRCLE, ZODIAC_SIGNS
from cuspcore.domain.entities import PlanetaryPosition

log = structlog.get_logger(__name__)

_CALC_SOURCE_RE = re.compile(r"calc|mock|approx", re.IGNORECASE)
_LONGITUDE_KEYS = ("ecliptic_longitude", "longitude", "lon", "lng")
_MAX_DEGREE = 29.99


class LastGoodPositionCache:
    """Dernière position non dégénérée connue par planète.

    Instancié une fois par processus/session et passé explicitement; sert uniquement de repli.
    """

    def __init__(self) -> None:
        self._positions: dict[str, PlanetaryPosition] = {}

    def get(self, planet: str) -> PlanetaryPosition | None:
        return self._positions.get(planet)

    def remember(self, position: PlanetaryPosition) -> None:
        self._positions[position.planet] = position

    def clear(self) -> None:
        self._positions.clear()

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, planet: object) -> bool:
        return planet in self._positions


def normalize_planet_name(name: str | None) -> str:
    """"mars", "MARS", "north_node" → "Mars", "Mars", "North node"."""
    if not name:
        return ""
    cleaned = name.replace("_", " ").strip().lower()
    return cleaned[:1].upper() + cleaned[1:]


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _longitude(raw: Mapping[str, Any]) -> float | None:
    for key in _LONGITUDE_KEYS:
        value = _number(raw.get(key))
        if value is not None:
            return value
    return None


def _retrograde(raw: Mapping[str, Any]) -> bool:
    explicit = raw.get("retrograde")
    if isinstance(explicit, bool):
        return explicit
    for key in ("speed", "velocity"):
        value = _number(raw.get(key))
        if value is not None:
            return value < 0
    return False


def _sign(raw: Mapping[str, Any]) -> str | None:
    value = raw.get("sign")
    if not isinstance(value, str):
        return None
    name = value.strip().capitalize()
    return name if name in ZODIAC_SIGNS else None


def longitude_to_sign(longitude: float) -> tuple[str, float]:
    """Convertit une longitude écliptique en (signe, degré dans le signe).

    La longitude est d'abord ramenée dans [0, 360); le degré est arrondi au centième.
    """
    lon = longitude % FULL_CIRCLE
    if lon >= FULL_CIRCLE:
        lon = 0.0
    index = int(lon // DEGREES_PER_SIGN)
    degree = round(lon - index * DEGREES_PER_SIGN, 2)
    return ZODIAC_SIGNS[index], min(degree, _MAX_DEGREE)


def is_calculated_source(source: Any) -> bool:
    return isinstance(source, str) and bool(_CALC_SOURCE_RE.search(source))


def _from_longitude(name: str, lon: float, retro: bool) -> PlanetaryPosition:
    sign, degree = longitude_to_sign(lon)
    return PlanetaryPosition(planet=name, sign=sign, degree=degree, retrograde=retro)


def _normalize_one(
    raw: Mapping[str, Any], cache: LastGoodPositionCache
) -> tuple[PlanetaryPosition | None, bool]:
    """Retourne (position, fiable); une position fiable met à jour le cache."""
    name = normalize_planet_name(raw.get("name") or raw.get("planet")) or "Planet"
    retro = _retrograde(raw)
    lon = _longitude(raw)
    sign = _sign(raw)
    degree = _number(raw.get("degree"))

    # a) signe + degré explicites non nuls
    if sign and degree is not None and 0.0 < degree < DEGREES_PER_SIGN:
        return PlanetaryPosition(planet=name, sign=sign, degree=degree, retrograde=retro), True

    # b) degré exactement nul: probablement un bouche-trou
    if sign and degree == 0.0:
        if lon is not None and is_calculated_source(raw.get("source")):
            log.debug("planet_zero_degree_recomputed", planet=name)
            return _from_longitude(name, lon, retro), True
        cached = cache.get(name)
        if cached is not None:
            PLANET_FALLBACKS.labels(reason="zero_degree").inc()
            log.info("planet_zero_degree_last_good", planet=name)
            return cached, False
        # Lecture du flux conservée telle quelle, sans devenir "dernière valeur valide"
        return PlanetaryPosition(planet=name, sign=sign, degree=0.0, retrograde=retro), False

    # c) longitude seule
    if lon is not None:
        return _from_longitude(name, lon, retro), True

    # d) dernière valeur connue
    cached = cache.get(name)
    if cached is not None:
        PLANET_FALLBACKS.labels(reason="no_data").inc()
        log.info("planet_no_data_last_good", planet=name)
        return cached, False

    # e) rien d'exploitable
    PLANET_FALLBACKS.labels(reason="dropped").inc()
    log.warning("planet_dropped", planet=name)
    return None, False


def normalize_planetary_positions(
    raw_records: Iterable[Mapping[str, Any]], cache: LastGoodPositionCache
) -> list[PlanetaryPosition]:
    """Réconcilie des enregistrements bruts en positions canoniques.

    Args:
        raw_records: enregistrements du flux (clés `name`/`planet`, `sign`, `degree`,
            `ecliptic_longitude`/`longitude`/`lon`/`lng`, `retrograde`, `speed`/`velocity`,
            `source`).
        cache: cache des dernières positions valides, mis à jour en place.

    Returns:
        list[PlanetaryPosition]: positions dans l'ordre d'entrée, planètes inexploitables omises.
    """
    result: list[PlanetaryPosition] = []
    for raw in raw_records:
        position, reliable = _normalize_one(raw, cache)
        if position is None:
            continue
        if reliable:
            cache.remember(position)
        result.append(position)
    return result

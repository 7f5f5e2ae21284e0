"""
Calcul de la phase lunaire à partir d'une primitive d'illumination.

La primitive fournit, pour un instant donné, la fraction du disque éclairée et un angle de phase
dans [0, 1) (0 = nouvelle lune, 0.25 = premier quartier, 0.5 = pleine lune, 0.75 = dernier
quartier). Tous les utilisateurs voient la même "lune du jour": l'état est évalué dans une zone de
référence unique.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Protocol
from zoneinfo import ZoneInfo

import structlog

from cuspcore.core.constants import (
    FULL_MOON,
    NEW_MOON,
    PHASE_CYCLE,
    QUARTER_FALLBACK_DAYS,
    QUARTER_SEARCH_MAX_HOURS,
    QUARTER_TARGETS,
    QUARTER_TOLERANCE,
    WANING_CRESCENT,
    WANING_GIBBOUS,
    WAXING_CRESCENT,
    WAXING_GIBBOUS,
)
from cuspcore.domain.entities import MoonPhaseState
from cuspcore.domain.errors import EphemerisUnavailableError

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Illumination:
    """Valeur de la primitive: fraction éclairée [0, 1] et angle de phase [0, 1)."""

    fraction: float
    phase: float


class IlluminationSource(Protocol):
    """Primitive astronomique injectable."""

    def illumination(self, instant: datetime) -> Illumination: ...


@dataclass(frozen=True)
class QuarterEvent:
    """Prochain quartier trouvé (ou repli)."""

    name: str
    at: datetime
    fallback: bool = False


def phase_name_from_fraction(phase: float) -> str:
    """Nomme une phase: nom exact à ±1.25% d'un quartier, sinon la bande encadrante."""
    phase = phase % 1.0
    if phase < QUARTER_TOLERANCE or phase > 1.0 - QUARTER_TOLERANCE:
        return NEW_MOON
    for name, value in QUARTER_TARGETS[1:]:
        if abs(phase - value) < QUARTER_TOLERANCE:
            return name
    if phase < 0.25:
        return WAXING_CRESCENT
    if phase < 0.5:
        return WAXING_GIBBOUS
    if phase < 0.75:
        return WANING_GIBBOUS
    return WANING_CRESCENT


def _crossed(previous: float, current: float) -> str | None:
    if previous - current > 0.5:
        # Passage de ~1.0 à ~0.0
        return NEW_MOON
    for name, value in QUARTER_TARGETS[1:]:
        if previous < value <= current:
            return name
    return None


def find_next_quarter(start: datetime, source: IlluminationSource) -> QuarterEvent:
    """Cherche heure par heure (35 jours au plus) le prochain quartier franchi.

    Repli "Full Moon dans 14 jours" si aucun franchissement n'est observé ou si la primitive
    devient indisponible en cours de recherche.
    """
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    fallback = QuarterEvent(
        name=FULL_MOON, at=start + timedelta(days=QUARTER_FALLBACK_DAYS), fallback=True
    )
    try:
        previous = source.illumination(start).phase % 1.0
        for hour in range(1, QUARTER_SEARCH_MAX_HOURS + 1):
            instant = start + timedelta(hours=hour)
            current = source.illumination(instant).phase % 1.0
            name = _crossed(previous, current)
            if name is not None:
                return QuarterEvent(name=name, at=instant)
            previous = current
    except EphemerisUnavailableError as err:
        log.warning("quarter_search_unavailable", error=str(err))
        return fallback
    log.warning("quarter_search_exhausted", start=start.isoformat())
    return fallback


def current_phase(
    now: datetime, source: IlluminationSource, reference_tz: str = "Australia/Sydney"
) -> MoonPhaseState:
    """Calcule l'état lunaire à l'instant `now`, daté dans la zone de référence."""
    tz = ZoneInfo(reference_tz)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_now = now.astimezone(tz)
    value = source.illumination(local_now)
    event = find_next_quarter(local_now, source)
    state = MoonPhaseState(
        phase_name=phase_name_from_fraction(value.phase),
        illumination_percent=max(0, min(100, round(value.fraction * 100))),
        next_phase_name=event.name,
        next_phase_date=event.at.astimezone(tz).date(),
    )
    log.debug(
        "moon_phase_computed",
        reference_tz=reference_tz,
        phase=state.phase_name,
        pct=state.illumination_percent,
        next_phase=state.next_phase_name,
        next_phase_date=state.next_phase_date.isoformat(),
    )
    return state


def next_phase_in_cycle(name: str) -> str:
    """Phase suivante dans le cycle des huit phases (inconnue → Waxing Crescent)."""
    if name not in PHASE_CYCLE:
        return WAXING_CRESCENT
    return PHASE_CYCLE[(PHASE_CYCLE.index(name) + 1) % len(PHASE_CYCLE)]


def format_phase_date(value: date) -> str:
    """Format d'affichage jj/mm/aaaa."""
    return value.strftime("%d/%m/%Y")
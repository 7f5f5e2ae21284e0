"""
Surface publique du moteur, consommée par la couche d'interface.

Les fonctions de résolution rendent une ligne ou None: l'interface affiche un état neutre "pas de
contenu aujourd'hui" sur None. Quand toutes les requêtes candidates ont échoué, elles lèvent
`ContentUnavailableError` pour que l'interface propose de réessayer.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Any

from cuspcore.core.constants import CACHE_KIND_DAILY, CACHE_KIND_MONTHLY, LEGACY_CACHE_PREFIXES
from cuspcore.domain import planets
from cuspcore.domain.entities import ContentRow, MonthlyRow, MoonPhaseState, PlanetaryPosition
from cuspcore.domain.errors import ContentUnavailableError
from cuspcore.domain.lunar import current_phase
from cuspcore.domain.outcomes import Resolution, ResolutionStatus


def _container():
    from cuspcore.core.container import container  # import local pour éviter les cycles

    return container


def _row_or_none(kind: str, identity_label: str | None, resolution: Resolution):
    if resolution.status is ResolutionStatus.STORE_ERROR:
        raise ContentUnavailableError(kind, identity_label or "", list(resolution.errors))
    return resolution.row if resolution.found else None


async def resolve_daily_content(
    identity_label: str | None,
    hemisphere: str | None = None,
    *,
    user_id: str | None = None,
    force_date: str | date | None = None,
    use_cache: bool = True,
    allow_pure_sign_fallback: bool = False,
    user_timezone: str | None = None,
) -> ContentRow | None:
    """Contenu quotidien de l'identité, ou None (introuvable, identité vide, périmé).

    Raises:
        ContentUnavailableError: si toutes les requêtes candidates ont échoué.
    """
    resolution = await _container().resolver.resolve_daily(
        identity_label,
        hemisphere,
        user_id=user_id,
        force_date=force_date,
        use_cache=use_cache,
        allow_pure_sign_fallback=allow_pure_sign_fallback,
        user_timezone=user_timezone,
    )
    return _row_or_none(CACHE_KIND_DAILY, identity_label, resolution)


async def resolve_monthly_content(
    identity_label: str | None,
    hemisphere: str | None = None,
    *,
    user_id: str | None = None,
    now: datetime | None = None,
) -> MonthlyRow | None:
    """Prévision mensuelle de l'identité, ou None.

    Raises:
        ContentUnavailableError: si toutes les requêtes candidates ont échoué.
    """
    resolution = await _container().resolver.resolve_monthly(
        identity_label, hemisphere, user_id=user_id, now=now
    )
    return _row_or_none(CACHE_KIND_MONTHLY, identity_label, resolution)


def current_moon_phase(now: datetime | None = None) -> MoonPhaseState:
    """État lunaire courant, évalué dans la zone de référence configurée."""
    c = _container()
    return current_phase(
        now or datetime.now(timezone.utc), c.ephemeris, c.settings.MOON_REFERENCE_TZ
    )


def normalize_planetary_positions(
    raw_records: Iterable[Mapping[str, Any]],
) -> list[PlanetaryPosition]:
    """Normalise un flux de positions avec le cache de dernières valeurs du processus."""
    return planets.normalize_planetary_positions(raw_records, _container().positions)


async def purge_user_cache(user_id: str | None, include_legacy: bool = True) -> int:
    """Vide le cache d'un utilisateur (et les clés héritées); retourne le nombre supprimé."""
    cache = _container().cache
    removed = await cache.purge_scope(user_id)
    if include_legacy:
        removed += await cache.purge_prefixes(LEGACY_CACHE_PREFIXES)
    return removed

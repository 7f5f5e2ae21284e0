"""
Construction des dates de service candidates ("aujourd'hui" ambigu).

Le store ancre chaque contenu sur une date canonique alors que chaque client évalue "aujourd'hui"
avec sa propre horloge. Plutôt que de deviner le sens du décalage, on énumère un petit ensemble
ordonné de dates plausibles; le résolveur prend la première qui correspond.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from cuspcore.domain.errors import InvalidOptionsError

log = structlog.get_logger(__name__)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _aware(now: datetime) -> datetime:
    # Un instant naïf est interprété en UTC
    return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)


def resolve_timezone(name: str | None) -> tzinfo:
    """Retourne la zone IANA demandée, ou UTC si absente/inconnue."""
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("unknown_user_timezone", timezone=name)
        return timezone.utc


def service_date(now: datetime, tz: tzinfo) -> str:
    """Date calendaire (YYYY-MM-DD) de l'instant `now` vue depuis `tz`."""
    return _aware(now).astimezone(tz).date().isoformat()


def build_anchors(
    now: datetime,
    user_timezone: str | None = None,
    device_timezone: tzinfo | None = None,
) -> list[str]:
    """Construit les dates de service candidates, par ordre de priorité.

    1) aujourd'hui dans la zone de l'utilisateur (UTC si inconnue)
    2) aujourd'hui en UTC
    3) aujourd'hui selon l'horloge locale de la machine (`device_timezone` si fourni)
    4) hier puis 5) demain dans la zone de l'utilisateur

    Les doublons sont retirés en conservant le premier rang.
    """
    now = _aware(now)
    user_tz = resolve_timezone(user_timezone)
    local_now = now.astimezone(device_timezone) if device_timezone else now.astimezone()
    user_today = now.astimezone(user_tz).date()

    anchors = [
        user_today.isoformat(),
        service_date(now, timezone.utc),
        local_now.date().isoformat(),
        (user_today - timedelta(days=1)).isoformat(),
        (user_today + timedelta(days=1)).isoformat(),
    ]
    return list(dict.fromkeys(anchors))


def parse_force_date(value: str | date) -> str:
    """Valide une date forcée et la renvoie au format YYYY-MM-DD.

    Raises:
        InvalidOptionsError: si la valeur n'est pas une date ISO valide.
    """
    if isinstance(value, datetime):
        raise InvalidOptionsError("force_date doit être une date, pas un instant")
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not _ISO_DATE_RE.match(text):
        raise InvalidOptionsError(f"force_date invalide: {value!r}")
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError as err:
        raise InvalidOptionsError(f"force_date invalide: {value!r}") from err


def month_anchor(now: datetime, user_timezone: str | None = None) -> str:
    """Premier jour du mois courant (YYYY-MM-01) dans la zone de l'utilisateur."""
    today = _aware(now).astimezone(resolve_timezone(user_timezone)).date()
    return today.replace(day=1).isoformat()

"""
Adaptateurs par table entre formes canoniques et conventions du store.

Chaque génération du store a encodé signe et hémisphère différemment. Plutôt que de laisser ces
encodages fuir dans la normalisation des libellés, chaque table logique possède un adaptateur:

- quotidien: signe verbatim ("Aries–Taurus Cusp"), hémisphère en toutes lettres, date exacte;
- mensuel: signe en minuscules, segments joints par "-" sans le mot "cusp", hémisphère "NH"/"SH"
  (ou en toutes lettres selon la configuration), date du premier jour du mois.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from cuspcore.core.constants import HEMISPHERE_CODES
from cuspcore.domain.entities import ContentRow, MonthlyRow
from cuspcore.domain.labels import NormalizedLabel, normalize_hemisphere
from cuspcore.domain.queries import StoreQuery

log = structlog.get_logger(__name__)


class DailyTableAdapter:
    """Table des contenus quotidiens (`horoscope_cache`)."""

    COLUMNS = ("sign", "hemisphere", "date", "daily_horoscope", "affirmation", "deeper_insight")

    def __init__(self, table: str = "horoscope_cache"):
        self.table = table

    def query(self, sign: str, hemisphere: str, date: str) -> StoreQuery:
        return StoreQuery(
            table=self.table,
            sign=sign,
            hemisphere=normalize_hemisphere(hemisphere),
            date=date,
            date_op="eq",
            columns=self.COLUMNS,
        )

    def to_row(self, record: dict[str, Any]) -> ContentRow | None:
        """Convertit un enregistrement brut; None si le texte principal est absent."""
        guidance = record.get("daily_horoscope") or record.get("guidance")
        if not guidance:
            log.warning(
                "daily_row_without_guidance", sign=record.get("sign"), date=record.get("date")
            )
            return None
        try:
            return ContentRow(
                sign=record["sign"],
                hemisphere=normalize_hemisphere(record.get("hemisphere")),
                date=str(record["date"])[:10],
                guidance=guidance,
                affirmation=record.get("affirmation"),
                deeper_insight=record.get("deeper_insight") or record.get("deeperInsight"),
            )
        except (KeyError, ValidationError):
            log.warning("daily_row_malformed", keys=sorted(record))
            return None


class MonthlyTableAdapter:
    """Table des prévisions mensuelles (`monthly_forecasts`)."""

    COLUMNS = ("sign", "hemisphere", "date", "monthly_forecast")

    def __init__(self, table: str = "monthly_forecasts", hemisphere_style: str = "short"):
        self.table = table
        self.hemisphere_style = hemisphere_style

    @staticmethod
    def slug(parts: tuple[str, ...]) -> str:
        """("Aries", "Taurus") → "aries-taurus"."""
        return "-".join(p.lower() for p in parts)

    def slug_candidates(self, label: NormalizedLabel) -> list[str]:
        """Slug complet puis segment principal seul."""
        if label.is_empty:
            return []
        candidates = [self.slug(label.parts), label.parts[0].lower()]
        return list(dict.fromkeys(candidates))

    def hemisphere_value(self, hemisphere: str) -> str:
        full = normalize_hemisphere(hemisphere)
        return HEMISPHERE_CODES[full] if self.hemisphere_style == "short" else full

    def query(self, slug: str, hemisphere: str, month_date: str) -> StoreQuery:
        return StoreQuery(
            table=self.table,
            sign=slug,
            hemisphere=self.hemisphere_value(hemisphere),
            date=month_date,
            date_op="lte",
            columns=self.COLUMNS,
        )

    def to_row(self, record: dict[str, Any]) -> MonthlyRow | None:
        text = record.get("monthly_forecast") or record.get("monthly_text")
        if not text:
            return None
        try:
            return MonthlyRow(
                sign=record["sign"],
                hemisphere=str(record.get("hemisphere") or ""),
                date=str(record["date"])[:10],
                monthly_text=text,
            )
        except (KeyError, ValidationError):
            log.warning("monthly_row_malformed", keys=sorted(record))
            return None

"""
Entités du domaine métier.

Ce module définit les modèles de données manipulés par le moteur: lignes de contenu quotidien et
mensuel, entrées de cache étiquetées, état lunaire et positions planétaires.
"""

from datetime import date as _date
from typing import Any, Literal

from pydantic import BaseModel, Field

Hemisphere = Literal["Northern", "Southern"]


class ContentRow(BaseModel):
    """Ligne de contenu quotidien identifiée par (sign, hemisphere, date)."""

    sign: str
    hemisphere: Hemisphere
    date: str  # YYYY-MM-DD
    guidance: str
    affirmation: str | None = None
    deeper_insight: str | None = None


class MonthlyRow(BaseModel):
    """Ligne de prévision mensuelle (date = premier jour du mois)."""

    sign: str
    hemisphere: str  # forme du store: "NH"/"SH" ou mot complet
    date: str  # YYYY-MM-01
    monthly_text: str


class CacheEntry(BaseModel):
    """Copie en cache d'une ligne, étiquetée par la requête qui l'a produite.

    L'entrée n'est réutilisable que si les quatre étiquettes (scope, sign, hemisphere, date)
    correspondent exactement à la requête courante.
    """

    kind: str
    user_scope: str
    sign: str
    hemisphere: str
    date: str
    payload: dict[str, Any]


class MoonPhaseState(BaseModel):
    """État lunaire recalculé à la demande (jamais persisté)."""

    phase_name: str
    illumination_percent: int = Field(ge=0, le=100)
    next_phase_name: str
    next_phase_date: _date


class PlanetaryPosition(BaseModel):
    """Position d'une planète exprimée dans un signe."""

    planet: str
    sign: str
    degree: float = Field(ge=0.0, lt=30.0)
    retrograde: bool = False

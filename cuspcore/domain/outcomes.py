"""Issues typées d'une résolution de contenu.

Une résolution aboutit toujours à une `Resolution`; seul le statut `FOUND` porte une ligne.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ResolutionStatus(Enum):
    """Statuts possibles d'une résolution."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    EMPTY_IDENTITY = "empty_identity"
    STORE_ERROR = "store_error"
    STALE = "stale"


@dataclass
class Resolution:
    """Résultat d'une résolution.

    Attributs
    - status: statut final.
    - row: ligne de contenu si `FOUND`, sinon None.
    - source: "cache" ou "store" selon l'origine de la ligne.
    - matched_sign / matched_date: couple (variante, ancre) ayant produit la ligne.
    - attempts: nombre de requêtes émises vers le store.
    - errors: raisons des échecs de requête rencontrés (une par tentative échouée).
    """

    status: ResolutionStatus
    row: Any = None
    source: str | None = None
    matched_sign: str | None = None
    matched_date: str | None = None
    attempts: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status is ResolutionStatus.FOUND

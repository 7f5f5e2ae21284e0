"""Requêtes vers le store distant.

`StoreQuery` est le seul moyen d'interroger le store: sa construction exige un filtre d'identité
(`sign`) non vide, un hémisphère et une date. Une requête "sans filtre de signe", qui renverrait le
contenu le plus récent de n'importe quel utilisateur, n'est donc pas représentable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from cuspcore.domain.errors import EmptyIdentityFilterError

DateOp = Literal["eq", "lte"]


@dataclass(frozen=True)
class StoreQuery:
    """Requête ciblant au plus une ligne.

    Attributs
    - table: nom de la table.
    - sign / hemisphere: valeurs exactes, déjà au format du store.
    - date: valeur YYYY-MM-DD comparée avec `date_op`.
    - date_op: "eq" (quotidien) ou "lte" (mensuel, la plus récente d'abord).
    - columns: colonnes à sélectionner (vide = toutes).
    """

    table: str
    sign: str
    hemisphere: str
    date: str
    date_op: DateOp = "eq"
    columns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.sign or not self.sign.strip():
            raise EmptyIdentityFilterError("a store query requires a non-empty sign filter")
        if not self.hemisphere or not self.date:
            raise EmptyIdentityFilterError("a store query requires hemisphere and date filters")

    @property
    def newest_first(self) -> bool:
        return self.date_op == "lte"

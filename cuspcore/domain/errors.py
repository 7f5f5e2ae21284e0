"""Exceptions du moteur de résolution.

Les conditions attendues (identité vide, contenu introuvable, résultat périmé) ne lèvent jamais
d'exception: elles sont portées par `Resolution`. Les exceptions ci-dessous signalent soit un échec
technique local à une tentative (capturé par le résolveur), soit l'échec de toutes les tentatives
(levé par la surface publique), soit une erreur de programmation.
"""

from __future__ import annotations


class CuspcoreError(Exception):
    """Racine des erreurs du moteur."""


class StoreQueryError(CuspcoreError):
    """Échec d'une requête vers le store distant (transport, HTTP, timeout, payload)."""

    def __init__(self, table: str, sign: str, date: str, reason: str) -> None:
        self.table = table
        self.sign = sign
        self.date = date
        self.reason = reason
        super().__init__(f"store query failed on {table} ({sign} @ {date}): {reason}")


class CacheBackendError(CuspcoreError):
    """Le support du cache local est indisponible."""


class EphemerisUnavailableError(CuspcoreError):
    """La primitive astronomique n'a pas pu produire de valeur."""


class InvalidOptionsError(CuspcoreError, ValueError):
    """Options de résolution mal formées (erreur de l'appelant)."""


class EmptyIdentityFilterError(CuspcoreError, ValueError):
    """Tentative de construire une requête sans filtre d'identité."""


class ContentUnavailableError(CuspcoreError):
    """Toutes les requêtes candidates ont échoué: ni contenu ni absence avérée."""

    def __init__(self, kind: str, identity: str, errors: list[str]) -> None:
        self.kind = kind
        self.identity = identity
        self.errors = errors
        super().__init__(f"{kind} content unavailable for {identity!r}: {', '.join(errors)}")

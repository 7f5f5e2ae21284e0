"""
Cache local des contenus résolus.

Ce module fournit le cache clé/valeur du moteur, avec une version en mémoire et une version Redis.
Les clés suivent le format `<kind>:<scope>:<sign>:<hemisphere>:<date>` et les valeurs sont des
`CacheEntry` sérialisées en JSON.

Invariant: une entrée n'est rendue que si ses quatre étiquettes (scope, sign, hemisphere, date)
ainsi que son type correspondent exactement à la clé demandée. Une entrée rangée sous une mauvaise
clé (bug de construction de clé) n'est jamais servie.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

import redis.asyncio as aioredis
import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError

from cuspcore.core.constants import ANON_SCOPE
from cuspcore.domain.entities import CacheEntry
from cuspcore.domain.errors import CacheBackendError

log = structlog.get_logger(__name__)


def user_scope(user_id: str | None) -> str:
    """Scope de cache d'un utilisateur (`anon` si inconnu)."""
    scope = (user_id or "").strip()
    return scope or ANON_SCOPE


@dataclass(frozen=True)
class CacheKey:
    """Clé de cache structurée."""

    kind: str
    scope: str
    sign: str
    hemisphere: str
    date: str

    def render(self) -> str:
        return f"{self.kind}:{self.scope}:{self.sign}:{self.hemisphere}:{self.date}"

    def matches(self, entry: CacheEntry) -> bool:
        return (
            entry.kind == self.kind
            and entry.user_scope == self.scope
            and entry.sign == self.sign
            and entry.hemisphere == self.hemisphere
            and entry.date == self.date
        )


class ContentCache(ABC):
    """Cache étiqueté indépendant du support.

    Les sous-classes implémentent les opérations brutes (`_read`, `_write`, `_delete`, `_keys`);
    la vérification des étiquettes est faite ici, une seule fois pour tous les supports.
    """

    @abstractmethod
    async def _read(self, key: str) -> str | None: ...

    @abstractmethod
    async def _write(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def _delete(self, keys: list[str]) -> int: ...

    @abstractmethod
    async def _keys(self) -> list[str]: ...

    async def get(self, key: CacheKey) -> CacheEntry | None:
        """Retourne l'entrée de `key` si elle existe et que ses étiquettes correspondent.

        Raises:
            CacheBackendError: si le support est indisponible.
        """
        raw = await self._read(key.render())
        if raw is None:
            return None
        try:
            entry = CacheEntry.model_validate_json(raw)
        except ValidationError:
            log.warning("cache_entry_unreadable", key=key.render())
            return None
        if not key.matches(entry):
            log.warning(
                "cache_entry_tag_mismatch",
                key=key.render(),
                entry_scope=entry.user_scope,
                entry_sign=entry.sign,
                entry_hemisphere=entry.hemisphere,
                entry_date=entry.date,
            )
            return None
        return entry

    async def set(self, key: CacheKey, entry: CacheEntry) -> None:
        """Enregistre `entry` sous `key`.

        Raises:
            ValueError: si les étiquettes de l'entrée ne correspondent pas à la clé.
            CacheBackendError: si le support est indisponible.
        """
        if not key.matches(entry):
            raise ValueError(f"cache entry tags do not match key {key.render()}")
        await self._write(key.render(), entry.model_dump_json())

    async def purge_scope(self, user_id: str | None) -> int:
        """Supprime toutes les entrées d'un scope utilisateur; retourne le nombre supprimé."""
        scope = user_scope(user_id)
        keys = [k for k in await self._keys() if k.split(":", 2)[1:2] == [scope]]
        return await self._delete(keys) if keys else 0

    async def purge_prefixes(self, prefixes: Iterable[str]) -> int:
        """Supprime les clés commençant par l'un des préfixes (caches hérités)."""
        prefixes = tuple(prefixes)
        if not prefixes:
            return 0
        keys = [k for k in await self._keys() if k.startswith(prefixes)]
        return await self._delete(keys) if keys else 0


class InMemoryContentCache(ContentCache):
    """Cache en mémoire (dev/tests), non persistant."""

    def __init__(self) -> None:
        self._db: dict[str, str] = {}

    async def _read(self, key: str) -> str | None:
        return self._db.get(key)

    async def _write(self, key: str, value: str) -> None:
        self._db[key] = value

    async def _delete(self, keys: list[str]) -> int:
        return sum(1 for k in keys if self._db.pop(k, None) is not None)

    async def _keys(self) -> list[str]:
        return list(self._db)


class RedisContentCache(ContentCache):
    """Cache adossé à Redis (client asyncio), avec expiration optionnelle."""

    def __init__(self, url: str, ttl_seconds: int = 0, namespace: str = "cuspcore"):
        """Crée un client Redis à partir de l'URL fournie.

        Paramètres:
        - url: URL Redis.
        - ttl_seconds: durée de vie des entrées (0 = pas d'expiration).
        - namespace: préfixe ajouté aux clés côté Redis.
        """
        self.client = aioredis.Redis.from_url(url, decode_responses=True)
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace

    def _k(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def _read(self, key: str) -> str | None:
        try:
            return await self.client.get(self._k(key))
        except RedisError as err:
            raise CacheBackendError(str(err)) from err

    async def _write(self, key: str, value: str) -> None:
        try:
            if self.ttl_seconds > 0:
                await self.client.set(self._k(key), value, ex=self.ttl_seconds)
            else:
                await self.client.set(self._k(key), value)
        except RedisError as err:
            raise CacheBackendError(str(err)) from err

    async def _delete(self, keys: list[str]) -> int:
        try:
            return int(await self.client.delete(*[self._k(k) for k in keys]))
        except RedisError as err:
            raise CacheBackendError(str(err)) from err

    async def _keys(self) -> list[str]:
        prefix = f"{self.namespace}:"
        try:
            return [k[len(prefix) :] async for k in self.client.scan_iter(match=f"{prefix}*")]
        except RedisError as err:
            raise CacheBackendError(str(err)) from err

    async def close(self) -> None:
        await self.client.aclose()

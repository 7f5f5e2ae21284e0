"""
Accès au store de contenus distant.

Deux implémentations partagent l'interface `ContentStore`:

- `PostgrestContentStore`: API REST compatible PostgREST (Supabase), via `httpx.AsyncClient`;
- `InMemoryContentStore`: tables en mémoire pour le développement et les tests.

Toute requête passe par une `StoreQuery`, qui porte obligatoirement un filtre de signe: il n'existe
aucune méthode permettant d'interroger une table sans ce filtre.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from cuspcore.app.metrics import STORE_QUERIES_TOTAL, STORE_QUERY_SECONDS
from cuspcore.core.http_constants import HTTP_BAD_REQUEST
from cuspcore.domain.errors import InvalidOptionsError, StoreQueryError
from cuspcore.domain.queries import StoreQuery

log = structlog.get_logger(__name__)


class ContentStore(ABC):
    """Interface minimale du store distant."""

    @abstractmethod
    async def fetch_one(self, query: StoreQuery) -> dict[str, Any] | None:
        """Retourne la première ligne correspondant à `query`, ou None.

        Raises:
            StoreQueryError: échec de transport, statut HTTP en erreur, délai dépassé ou
                réponse illisible.
        """
        raise NotImplementedError

    async def close(self) -> None:  # noqa: B027 - no-op par défaut
        """Libère les ressources éventuelles."""


class PostgrestContentStore(ContentStore):
    """Store distant exposé par une API PostgREST.

    Variables utilisées (via Settings):
      - `SUPABASE_URL`: URL de base du projet.
      - `SUPABASE_ANON_KEY`: clé envoyée en `apikey` et en bearer token.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_s: float = 12.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if timeout_s <= 0:
            raise InvalidOptionsError(f"timeout must be positive, got {timeout_s!r}")
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        headers: dict[str, str] = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        timeout = httpx.Timeout(connect=5.0, read=timeout_s, write=5.0, pool=5.0)
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        self._client = httpx.AsyncClient(
            headers=headers, timeout=timeout, limits=limits, transport=transport
        )

    @staticmethod
    def build_params(query: StoreQuery) -> dict[str, str]:
        """Traduit une `StoreQuery` en paramètres PostgREST."""
        params = {
            "select": ",".join(query.columns) if query.columns else "*",
            "sign": f"eq.{query.sign}",
            "hemisphere": f"eq.{query.hemisphere}",
            "date": f"{query.date_op}.{query.date}",
            "limit": "1",
        }
        if query.newest_first:
            params["order"] = "date.desc"
        return params

    async def _get(self, query: StoreQuery) -> httpx.Response:
        url = f"{self.base_url}/rest/v1/{query.table}"
        return await self._client.get(url, params=self.build_params(query))

    async def fetch_one(self, query: StoreQuery) -> dict[str, Any] | None:
        started = time.perf_counter()
        try:
            resp = await asyncio.wait_for(self._get(query), timeout=self.timeout_s)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            self._fail(query, "timeout")
            raise StoreQueryError(query.table, query.sign, query.date, "timeout") from exc
        except httpx.HTTPError as exc:
            self._fail(query, "transport")
            raise StoreQueryError(query.table, query.sign, query.date, str(exc)) from exc
        finally:
            STORE_QUERY_SECONDS.labels(table=query.table).observe(time.perf_counter() - started)

        if resp.status_code >= HTTP_BAD_REQUEST:
            self._fail(query, f"http_{resp.status_code}")
            raise StoreQueryError(
                query.table, query.sign, query.date, f"http status {resp.status_code}"
            )
        try:
            data = resp.json()
        except ValueError as exc:
            self._fail(query, "bad_json")
            raise StoreQueryError(query.table, query.sign, query.date, "invalid json") from exc
        if not isinstance(data, list):
            self._fail(query, "bad_payload")
            raise StoreQueryError(query.table, query.sign, query.date, "payload is not a list")

        row = data[0] if data and isinstance(data[0], dict) else None
        STORE_QUERIES_TOTAL.labels(table=query.table, result="hit" if row else "miss").inc()
        return row

    def _fail(self, query: StoreQuery, reason: str) -> None:
        STORE_QUERIES_TOTAL.labels(table=query.table, result="error").inc()
        log.warning(
            "store_query_failed",
            table=query.table,
            sign=query.sign,
            hemisphere=query.hemisphere,
            date=query.date,
            reason=reason,
        )

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryContentStore(ContentStore):
    """Store en mémoire: tables = listes de dictionnaires.

    Chaque requête reçue est conservée dans `queries` (ordre d'émission), ce qui permet de vérifier
    qu'aucune requête inattendue n'a été émise. `failures` associe un signe à une exception levée
    à la place de la réponse (simulation de pannes ciblées).
    """

    def __init__(self, tables: dict[str, Iterable[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            name: [dict(r) for r in rows] for name, rows in (tables or {}).items()
        }
        self.queries: list[StoreQuery] = []
        self.failures: dict[str, BaseException] = {}

    def add(self, table: str, **row: Any) -> None:
        self.tables.setdefault(table, []).append(row)

    @staticmethod
    def _matches(query: StoreQuery, row: dict[str, Any]) -> bool:
        if row.get("sign") != query.sign or row.get("hemisphere") != query.hemisphere:
            return False
        value = str(row.get("date", ""))[:10]
        if query.date_op == "lte":
            return value <= query.date
        return value == query.date

    async def fetch_one(self, query: StoreQuery) -> dict[str, Any] | None:
        self.queries.append(query)
        failure = self.failures.get(query.sign)
        if failure is not None:
            STORE_QUERIES_TOTAL.labels(table=query.table, result="error").inc()
            raise failure
        rows = [r for r in self.tables.get(query.table, []) if self._matches(query, r)]
        if query.newest_first:
            rows.sort(key=lambda r: str(r.get("date", "")), reverse=True)
        row = dict(rows[0]) if rows else None
        STORE_QUERIES_TOTAL.labels(table=query.table, result="hit" if row else "miss").inc()
        return row

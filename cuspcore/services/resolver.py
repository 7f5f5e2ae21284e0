"""
Résolution des contenus quotidiens et mensuels.

Orchestration:
1. dates candidates (date forcée seule, sinon `build_anchors`);
2. variantes de clé (`build_lookup_key_variants`), liste vide = arrêt immédiat;
3. sondage du cache local sur le produit ancres × variantes (ancres en boucle externe);
4. à défaut, requêtes exactes (sign, hemisphere, date) vers le store, dans le même ordre; la
   première ligne non vide fait foi et est recopiée dans le cache.

Aucune requête sans filtre de signe n'est jamais émise, même quand toutes les variantes échouent.

Chaque résolution reçoit un identifiant croissant par "créneau" (type, utilisateur, identité,
hémisphère). Si une résolution plus récente a démarré sur le même créneau avant la fin d'une plus
ancienne, le résultat de l'ancienne est écarté (statut `STALE`).
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable, Sequence
from datetime import date, datetime, timezone, tzinfo
from typing import Any

import structlog
from pydantic import ValidationError

from cuspcore.app.metrics import CACHE_LOOKUPS_TOTAL, RESOLUTIONS_TOTAL, STALE_RESULTS_TOTAL
from cuspcore.core.constants import CACHE_KIND_DAILY, CACHE_KIND_MONTHLY
from cuspcore.domain.anchors import build_anchors, month_anchor, parse_force_date
from cuspcore.domain.entities import CacheEntry, ContentRow, MonthlyRow
from cuspcore.domain.errors import CacheBackendError, InvalidOptionsError, StoreQueryError
from cuspcore.domain.labels import (
    build_lookup_key_variants,
    normalize_hemisphere,
    normalize_label,
)
from cuspcore.domain.outcomes import Resolution, ResolutionStatus
from cuspcore.domain.queries import StoreQuery
from cuspcore.infra.cache import CacheKey, ContentCache, user_scope
from cuspcore.infra.content_store import ContentStore
from cuspcore.infra.table_adapters import DailyTableAdapter, MonthlyTableAdapter

log = structlog.get_logger(__name__)

Slot = tuple[str, str, str, str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentResolver:
    """Résolveur de contenus quotidiens et mensuels.

    Paramètres:
    - store: store distant (`ContentStore`).
    - cache: cache local étiqueté (`ContentCache`).
    - daily_adapter / monthly_adapter: conventions des tables.
    - default_hemisphere: hémisphère utilisé si l'appelant n'en donne pas (ou un inconnu).
    - user_timezone: zone IANA par défaut pour le calcul des ancres.
    - device_timezone: zone de l'horloge locale (par défaut, celle de la machine).
    - store_timeout_s: borne appliquée à chaque requête; un dépassement compte comme un échec
      de cette tentative, la boucle continue.
    - clock: source de l'instant courant (injectable en test).
    """

    def __init__(
        self,
        store: ContentStore,
        cache: ContentCache,
        daily_adapter: DailyTableAdapter | None = None,
        monthly_adapter: MonthlyTableAdapter | None = None,
        *,
        default_hemisphere: str = "Southern",
        user_timezone: str | None = None,
        device_timezone: tzinfo | None = None,
        store_timeout_s: float = 12.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if store_timeout_s <= 0:
            raise InvalidOptionsError(f"timeout must be positive, got {store_timeout_s!r}")
        self.store = store
        self.cache = cache
        self.daily = daily_adapter or DailyTableAdapter()
        self.monthly = monthly_adapter or MonthlyTableAdapter()
        self.default_hemisphere = default_hemisphere
        self.user_timezone = user_timezone
        self.device_timezone = device_timezone
        self.store_timeout_s = store_timeout_s
        self.clock = clock
        self._ids = itertools.count(1)
        self._latest: dict[Slot, int] = {}

    # --- suppression des résultats périmés ---

    def _begin(self, slot: Slot) -> int:
        request_id = next(self._ids)
        self._latest[slot] = request_id
        return request_id

    def _release(self, slot: Slot, request_id: int) -> None:
        if self._latest.get(slot) == request_id:
            del self._latest[slot]

    def _finish(self, kind: str, slot: Slot, request_id: int, result: Resolution) -> Resolution:
        if self._latest.get(slot) != request_id:
            STALE_RESULTS_TOTAL.labels(kind=kind).inc()
            RESOLUTIONS_TOTAL.labels(kind=kind, status=ResolutionStatus.STALE.value).inc()
            log.info(
                "stale_result_suppressed",
                kind=kind,
                request_id=request_id,
                latest_id=self._latest.get(slot),
                sign=slot[2],
            )
            return Resolution(ResolutionStatus.STALE, attempts=result.attempts)
        self._release(slot, request_id)
        RESOLUTIONS_TOTAL.labels(kind=kind, status=result.status.value).inc()
        return result

    # --- cache ---

    async def _cache_get(self, kind: str, key: CacheKey) -> CacheEntry | None:
        try:
            entry = await self.cache.get(key)
        except CacheBackendError as err:
            CACHE_LOOKUPS_TOTAL.labels(kind=kind, result="error").inc()
            log.warning("cache_read_failed", key=key.render(), error=str(err))
            return None
        return entry

    async def _probe_cache(
        self, kind: str, keys: Sequence[CacheKey]
    ) -> tuple[CacheKey, CacheEntry] | None:
        """Lit toutes les clés en parallèle et retient la première présente, dans l'ordre."""
        entries = await asyncio.gather(*(self._cache_get(kind, k) for k in keys))
        for key, entry in zip(keys, entries):
            if entry is not None:
                CACHE_LOOKUPS_TOTAL.labels(kind=kind, result="hit").inc()
                return key, entry
        CACHE_LOOKUPS_TOTAL.labels(kind=kind, result="miss").inc()
        return None

    async def _cache_put(self, key: CacheKey, payload: dict[str, Any]) -> None:
        entry = CacheEntry(
            kind=key.kind,
            user_scope=key.scope,
            sign=key.sign,
            hemisphere=key.hemisphere,
            date=key.date,
            payload=payload,
        )
        try:
            await self.cache.set(key, entry)
        except CacheBackendError as err:
            log.warning("cache_write_failed", key=key.render(), error=str(err))

    # --- store ---

    async def _fetch(self, query: StoreQuery) -> dict[str, Any] | None:
        try:
            return await asyncio.wait_for(
                self.store.fetch_one(query), timeout=self.store_timeout_s
            )
        except asyncio.TimeoutError as exc:
            raise StoreQueryError(query.table, query.sign, query.date, "timeout") from exc

    # --- quotidien ---

    async def resolve_daily(
        self,
        identity_label: str | None,
        hemisphere: str | None = None,
        *,
        user_id: str | None = None,
        force_date: str | date | None = None,
        use_cache: bool = True,
        allow_pure_sign_fallback: bool = False,
        user_timezone: str | None = None,
        now: datetime | None = None,
    ) -> Resolution:
        """Résout le contenu quotidien d'une identité.

        Args:
            identity_label: libellé brut du signe ou de la cuspide.
            hemisphere: "Northern"/"Southern"/"NH"/"SH" (défaut configuré si absent).
            user_id: identifiant utilisateur; détermine le scope du cache.
            force_date: date imposée (YYYY-MM-DD), utilisée comme unique ancre.
            use_cache: sonder le cache local avant le store.
            allow_pure_sign_fallback: autoriser un signe seul pour une cuspide.
            user_timezone: zone IANA de l'utilisateur (défaut: celle du résolveur).
            now: instant de référence (défaut: horloge du résolveur).

        Returns:
            Resolution: `FOUND` avec la ligne, ou `NOT_FOUND`, `EMPTY_IDENTITY`, `STORE_ERROR`
            (toutes les tentatives ont échoué), `STALE`.

        Raises:
            InvalidOptionsError: si `force_date` est mal formée.
        """
        if force_date is not None:
            anchors = [parse_force_date(force_date)]
        else:
            anchors = build_anchors(
                now or self.clock(), user_timezone or self.user_timezone, self.device_timezone
            )
        hemi = normalize_hemisphere(hemisphere, self.default_hemisphere)
        norm = normalize_label(identity_label)
        variants = build_lookup_key_variants(
            identity_label, allow_pure_sign_fallback_for_cusp=allow_pure_sign_fallback
        )
        if not variants:
            status = (
                ResolutionStatus.EMPTY_IDENTITY if norm.is_empty else ResolutionStatus.NOT_FOUND
            )
            RESOLUTIONS_TOTAL.labels(kind=CACHE_KIND_DAILY, status=status.value).inc()
            log.info("daily_no_variants", label=identity_label, status=status.value)
            return Resolution(status)

        scope = user_scope(user_id)
        slot = (CACHE_KIND_DAILY, scope, norm.canonical_no_suffix, hemi)
        request_id = self._begin(slot)
        try:
            result = await self._resolve_daily(variants, anchors, hemi, scope, use_cache)
        except BaseException:
            self._release(slot, request_id)
            raise
        return self._finish(CACHE_KIND_DAILY, slot, request_id, result)

    async def _resolve_daily(
        self,
        variants: list[str],
        anchors: list[str],
        hemisphere: str,
        scope: str,
        use_cache: bool,
    ) -> Resolution:
        keys = [
            CacheKey(CACHE_KIND_DAILY, scope, variant, hemisphere, anchor)
            for anchor in anchors
            for variant in variants
        ]
        if use_cache:
            hit = await self._probe_cache(CACHE_KIND_DAILY, keys)
            if hit is not None:
                key, entry = hit
                try:
                    row = ContentRow.model_validate(entry.payload)
                except ValidationError:
                    log.warning("cache_payload_invalid", key=key.render())
                else:
                    log.info("daily_cache_hit", scope=scope, sign=key.sign, date=key.date)
                    return Resolution(
                        ResolutionStatus.FOUND,
                        row=row,
                        source="cache",
                        matched_sign=key.sign,
                        matched_date=key.date,
                    )

        attempts = 0
        errors: list[str] = []
        for key in keys:
            query = self.daily.query(key.sign, hemisphere, key.date)
            attempts += 1
            try:
                record = await self._fetch(query)
            except StoreQueryError as err:
                errors.append(err.reason)
                log.warning(
                    "store_candidate_skipped", table=query.table, sign=key.sign, date=key.date,
                    reason=err.reason,
                )
                continue
            row = self.daily.to_row(record) if record else None
            if row is None:
                continue
            await self._cache_put(key, row.model_dump())
            log.info(
                "daily_store_hit",
                scope=scope,
                sign=key.sign,
                date=key.date,
                attempts=attempts,
                guidance_len=len(row.guidance),
            )
            return Resolution(
                ResolutionStatus.FOUND,
                row=row,
                source="store",
                matched_sign=key.sign,
                matched_date=key.date,
                attempts=attempts,
                errors=errors,
            )

        status = (
            ResolutionStatus.STORE_ERROR if errors and len(errors) == attempts
            else ResolutionStatus.NOT_FOUND
        )
        log.info(
            "daily_store_miss",
            scope=scope,
            variants=len(variants),
            anchors=anchors,
            attempts=attempts,
            errors=len(errors),
        )
        return Resolution(status, attempts=attempts, errors=errors)

    # --- mensuel ---

    async def resolve_monthly(
        self,
        identity_label: str | None,
        hemisphere: str | None = None,
        *,
        user_id: str | None = None,
        use_cache: bool = True,
        user_timezone: str | None = None,
        now: datetime | None = None,
    ) -> Resolution:
        """Résout la prévision mensuelle: slug complet puis segment principal, la plus récente
        ligne dont la date précède ou égale le premier jour du mois courant."""
        norm = normalize_label(identity_label)
        if norm.is_empty:
            RESOLUTIONS_TOTAL.labels(
                kind=CACHE_KIND_MONTHLY, status=ResolutionStatus.EMPTY_IDENTITY.value
            ).inc()
            return Resolution(ResolutionStatus.EMPTY_IDENTITY)

        hemi = normalize_hemisphere(hemisphere, self.default_hemisphere)
        month = month_anchor(now or self.clock(), user_timezone or self.user_timezone)
        scope = user_scope(user_id)
        slot = (CACHE_KIND_MONTHLY, scope, norm.canonical_no_suffix, hemi)
        request_id = self._begin(slot)
        try:
            result = await self._resolve_monthly(
                self.monthly.slug_candidates(norm), hemi, month, scope, use_cache
            )
        except BaseException:
            self._release(slot, request_id)
            raise
        return self._finish(CACHE_KIND_MONTHLY, slot, request_id, result)

    async def _resolve_monthly(
        self, slugs: list[str], hemisphere: str, month: str, scope: str, use_cache: bool
    ) -> Resolution:
        wire_hemisphere = self.monthly.hemisphere_value(hemisphere)
        keys = [CacheKey(CACHE_KIND_MONTHLY, scope, s, wire_hemisphere, month) for s in slugs]
        if use_cache:
            hit = await self._probe_cache(CACHE_KIND_MONTHLY, keys)
            if hit is not None:
                key, entry = hit
                try:
                    row = MonthlyRow.model_validate(entry.payload)
                except ValidationError:
                    log.warning("cache_payload_invalid", key=key.render())
                else:
                    log.info("monthly_cache_hit", scope=scope, sign=key.sign, month=month)
                    return Resolution(
                        ResolutionStatus.FOUND,
                        row=row,
                        source="cache",
                        matched_sign=key.sign,
                        matched_date=row.date,
                    )

        attempts = 0
        errors: list[str] = []
        for key in keys:
            query = self.monthly.query(key.sign, hemisphere, month)
            attempts += 1
            try:
                record = await self._fetch(query)
            except StoreQueryError as err:
                errors.append(err.reason)
                log.warning(
                    "store_candidate_skipped", table=query.table, sign=key.sign, reason=err.reason
                )
                continue
            row = self.monthly.to_row(record) if record else None
            if row is None:
                continue
            # La clé est étiquetée par le mois courant: une ligne plus ancienne n'y est pas figée
            if row.date == month:
                await self._cache_put(key, row.model_dump())
            log.info("monthly_store_hit", scope=scope, sign=key.sign, date=row.date)
            return Resolution(
                ResolutionStatus.FOUND,
                row=row,
                source="store",
                matched_sign=key.sign,
                matched_date=row.date,
                attempts=attempts,
                errors=errors,
            )

        status = (
            ResolutionStatus.STORE_ERROR if errors and len(errors) == attempts
            else ResolutionStatus.NOT_FOUND
        )
        log.info("monthly_store_miss", scope=scope, slugs=slugs, month=month, errors=len(errors))
        return Resolution(status, attempts=attempts, errors=errors)

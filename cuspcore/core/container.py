"""
Conteneur d'injection de dépendances du moteur.

Instancie les composants centraux (settings, cache, store distant, éphémérides, résolveur) et
expose un singleton `container` utilisé par la surface publique.
"""

from __future__ import annotations

import structlog

from cuspcore.core.logging import bind_app_context, setup_logging
from cuspcore.core.settings import Settings, get_settings
from cuspcore.domain.planets import LastGoodPositionCache
from cuspcore.infra.cache import ContentCache, InMemoryContentCache, RedisContentCache
from cuspcore.infra.content_store import (
    ContentStore,
    InMemoryContentStore,
    PostgrestContentStore,
)
from cuspcore.infra.ephemeris import SwissEphemerisIllumination
from cuspcore.infra.table_adapters import DailyTableAdapter, MonthlyTableAdapter
from cuspcore.services.resolver import ContentResolver

log = structlog.get_logger(__name__)


class Container:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        json_logs = self.settings.APP_ENV not in ("dev", "test")
        setup_logging(self.settings.LOG_LEVEL, json_output=json_logs)
        bind_app_context(self.settings.APP_NAME, self.settings.APP_ENV)

        self.cache: ContentCache
        if self.settings.REDIS_URL:
            try:
                self.cache = RedisContentCache(
                    self.settings.REDIS_URL, ttl_seconds=self.settings.CACHE_TTL_S
                )
                self.storage_backend = "redis"
            except Exception as err:
                if self.settings.REQUIRE_REDIS:
                    raise RuntimeError("Redis required but unavailable") from err
                log.warning("redis_unavailable_memory_fallback", error=str(err))
                self.cache = InMemoryContentCache()
                self.storage_backend = "memory-fallback"
        else:
            if self.settings.REQUIRE_REDIS:
                raise RuntimeError("Redis required but REDIS_URL not set")
            self.cache = InMemoryContentCache()
            self.storage_backend = "memory"

        # Store distant: PostgREST si configuré, sinon tables vides en mémoire
        self.store: ContentStore
        if self.settings.SUPABASE_URL:
            self.store = PostgrestContentStore(
                self.settings.SUPABASE_URL,
                api_key=self.settings.SUPABASE_ANON_KEY,
                timeout_s=self.settings.STORE_TIMEOUT_S,
            )
            self.store_backend = "postgrest"
        else:
            self.store = InMemoryContentStore()
            self.store_backend = "memory"

        self.ephemeris = SwissEphemerisIllumination()
        self.positions = LastGoodPositionCache()
        self.resolver = ContentResolver(
            self.store,
            self.cache,
            DailyTableAdapter(self.settings.DAILY_TABLE),
            MonthlyTableAdapter(
                self.settings.MONTHLY_TABLE, self.settings.MONTHLY_HEMISPHERE_STYLE
            ),
            default_hemisphere=self.settings.DEFAULT_HEMISPHERE,
            user_timezone=self.settings.USER_TIMEZONE,
            store_timeout_s=self.settings.STORE_TIMEOUT_S,
        )

    async def aclose(self) -> None:
        """Ferme les clients réseau (store, Redis)."""
        await self.store.close()
        if isinstance(self.cache, RedisContentCache):
            await self.cache.close()


container = Container()

"""Tests du conteneur et de la surface publique du moteur."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

import cuspcore.core.container as container_mod
from cuspcore.api import public
from cuspcore.app.metrics import render_latest
from cuspcore.core.container import Container
from cuspcore.core.settings import Settings
from cuspcore.domain.entities import ContentRow, MonthlyRow
from cuspcore.domain.errors import ContentUnavailableError, StoreQueryError
from cuspcore.infra.cache import CacheKey, InMemoryContentCache, RedisContentCache
from cuspcore.infra.content_store import InMemoryContentStore, PostgrestContentStore
from tests.fakes import LinearIllumination

DAY = "2025-09-01"


def _settings(**overrides) -> Settings:
    values = {"REDIS_URL": None, "SUPABASE_URL": None, "REQUIRE_REDIS": False}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def engine(monkeypatch) -> Container:
    """Conteneur en mémoire installé comme singleton du module."""
    c = Container(_settings())
    c.store.add(
        "horoscope_cache",
        sign="Aries–Taurus Cusp",
        hemisphere="Southern",
        date=DAY,
        daily_horoscope="Hold both flames.",
    )
    c.store.add(
        "monthly_forecasts",
        sign="aries-taurus",
        hemisphere="SH",
        date=DAY,
        monthly_forecast="A month of bridges.",
    )
    monkeypatch.setattr(container_mod, "container", c)
    return c


def test_default_container_is_in_memory() -> None:
    c = Container(_settings())
    assert isinstance(c.cache, InMemoryContentCache)
    assert isinstance(c.store, InMemoryContentStore)
    assert (c.storage_backend, c.store_backend) == ("memory", "memory")
    assert c.resolver.default_hemisphere == "Southern"


def test_require_redis_without_url_fails() -> None:
    with pytest.raises(RuntimeError):
        Container(_settings(REQUIRE_REDIS=True))


@pytest.mark.asyncio
async def test_remote_backends_are_selected_from_settings() -> None:
    c = Container(
        _settings(
            REDIS_URL="redis://localhost:6379/0",
            SUPABASE_URL="https://example.supabase.co",
            SUPABASE_ANON_KEY="anon",
            MONTHLY_HEMISPHERE_STYLE="full",
        )
    )
    assert isinstance(c.cache, RedisContentCache)
    assert isinstance(c.store, PostgrestContentStore)
    assert c.storage_backend == "redis"
    assert c.resolver.monthly.hemisphere_style == "full"
    await c.aclose()


@pytest.mark.asyncio
async def test_resolve_daily_content(engine) -> None:
    row = await public.resolve_daily_content("aries-taurus cusp", "SH", force_date=DAY)
    assert isinstance(row, ContentRow)
    assert row.guidance == "Hold both flames."

    assert await public.resolve_daily_content("Gemini", "Southern", force_date=DAY) is None
    assert await public.resolve_daily_content("", "Southern", force_date=DAY) is None


@pytest.mark.asyncio
async def test_resolve_monthly_content(engine) -> None:
    now = datetime(2025, 9, 20, tzinfo=timezone.utc)
    row = await public.resolve_monthly_content("Aries–Taurus Cusp", "Southern", now=now)
    assert isinstance(row, MonthlyRow)
    assert row.monthly_text == "A month of bridges."


@pytest.mark.asyncio
async def test_store_failure_is_distinct_from_missing_content(engine) -> None:
    engine.store.failures["Leo"] = StoreQueryError("horoscope_cache", "Leo", DAY, "timeout")
    engine.store.failures["leo"] = StoreQueryError("monthly_forecasts", "leo", DAY, "timeout")

    with pytest.raises(ContentUnavailableError) as exc_info:
        await public.resolve_daily_content("Leo", "Southern", force_date=DAY)
    assert exc_info.value.errors == ["timeout"]
    assert exc_info.value.kind == "daily"

    now = datetime(2025, 9, 20, tzinfo=timezone.utc)
    with pytest.raises(ContentUnavailableError):
        await public.resolve_monthly_content("Leo", "Southern", now=now)

    assert await public.resolve_daily_content("Virgo", "Southern", force_date=DAY) is None


def test_current_moon_phase(engine) -> None:
    now = datetime(2025, 9, 1, tzinfo=timezone.utc)
    engine.ephemeris = LinearIllumination(now, start_phase=0.0)
    state = public.current_moon_phase(now)
    assert state.phase_name == "New Moon"
    assert state.illumination_percent == 0
    assert state.next_phase_name == "First Quarter"


def test_planet_cache_lives_with_the_container(engine) -> None:
    public.normalize_planetary_positions([{"name": "Mars", "longitude": 130.0}])
    [mars] = public.normalize_planetary_positions([{"name": "Mars"}])
    assert mars.sign == "Leo"
    assert "Mars" in engine.positions


@pytest.mark.asyncio
async def test_purge_user_cache(engine) -> None:
    await public.resolve_daily_content(
        "Aries–Taurus Cusp", "Southern", user_id="u1", force_date=DAY
    )
    await engine.cache._write("monthly_SH_aries", "{}")
    removed = await public.purge_user_cache("u1")
    assert removed == 2  # noqa: PLR2004
    key = CacheKey("daily", "u1", "Aries–Taurus Cusp", "Southern", DAY)
    assert await engine.cache.get(key) is None


@pytest.mark.asyncio
async def test_metrics_exposition(engine) -> None:
    await public.resolve_daily_content("Leo", "Southern", force_date=DAY)
    payload, content_type = render_latest()
    assert b"cuspcore_resolutions_total" in payload
    assert b"cuspcore_store_queries_total" in payload
    assert content_type.startswith("text/plain")

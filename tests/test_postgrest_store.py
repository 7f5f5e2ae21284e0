"""Tests du store PostgREST avec un transport httpx simulé."""

from __future__ import annotations

import httpx
import pytest

from cuspcore.core.http_constants import HTTP_INTERNAL_SERVER_ERROR, HTTP_OK, HTTP_UNAUTHORIZED
from cuspcore.domain.errors import InvalidOptionsError, StoreQueryError
from cuspcore.infra.content_store import PostgrestContentStore
from cuspcore.infra.table_adapters import DailyTableAdapter, MonthlyTableAdapter

BASE_URL = "https://example.supabase.co"
ROW = {
    "sign": "Aries–Taurus Cusp",
    "hemisphere": "Southern",
    "date": "2025-09-01",
    "daily_horoscope": "Two fires, one hearth.",
}


def _store(handler) -> PostgrestContentStore:
    return PostgrestContentStore(
        BASE_URL, api_key="anon-key", timeout_s=5.0, transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_exact_filters_and_auth_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(HTTP_OK, json=[ROW])

    store = _store(handler)
    query = DailyTableAdapter().query("Aries–Taurus Cusp", "Southern", "2025-09-01")
    row = await store.fetch_one(query)
    await store.close()

    assert row == ROW
    request = seen[0]
    assert request.url.path == "/rest/v1/horoscope_cache"
    params = request.url.params
    assert params["sign"] == "eq.Aries–Taurus Cusp"
    assert params["hemisphere"] == "eq.Southern"
    assert params["date"] == "eq.2025-09-01"
    assert params["limit"] == "1"
    assert "order" not in params
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"


@pytest.mark.asyncio
async def test_monthly_query_orders_newest_first() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(HTTP_OK, json=[])

    store = _store(handler)
    query = MonthlyTableAdapter().query("aries-taurus", "Southern", "2025-09-01")
    row = await store.fetch_one(query)
    await store.close()

    assert row is None
    params = seen[0].url.params
    assert params["date"] == "lte.2025-09-01"
    assert params["order"] == "date.desc"
    assert params["hemisphere"] == "eq.SH"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [HTTP_UNAUTHORIZED, HTTP_INTERNAL_SERVER_ERROR])
async def test_http_errors_raise_store_query_error(status: int) -> None:
    store = _store(lambda request: httpx.Response(status, json={"message": "nope"}))
    with pytest.raises(StoreQueryError) as exc_info:
        await store.fetch_one(DailyTableAdapter().query("Leo", "Northern", "2025-09-01"))
    await store.close()
    assert exc_info.value.reason == f"http status {status}"
    assert exc_info.value.table == "horoscope_cache"


@pytest.mark.asyncio
async def test_malformed_payloads_raise_store_query_error() -> None:
    query = DailyTableAdapter().query("Leo", "Northern", "2025-09-01")
    not_json = _store(lambda request: httpx.Response(HTTP_OK, content=b"<html>"))
    not_list = _store(lambda request: httpx.Response(HTTP_OK, json={"sign": "Leo"}))
    with pytest.raises(StoreQueryError):
        await not_json.fetch_one(query)
    with pytest.raises(StoreQueryError):
        await not_list.fetch_one(query)
    await not_json.close()
    await not_list.close()


@pytest.mark.asyncio
async def test_transport_errors_raise_store_query_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = _store(handler)
    with pytest.raises(StoreQueryError):
        await store.fetch_one(DailyTableAdapter().query("Leo", "Northern", "2025-09-01"))
    await store.close()


@pytest.mark.asyncio
async def test_timeouts_raise_store_query_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    store = _store(handler)
    with pytest.raises(StoreQueryError) as exc_info:
        await store.fetch_one(DailyTableAdapter().query("Leo", "Northern", "2025-09-01"))
    await store.close()
    assert exc_info.value.reason == "timeout"


def test_non_positive_timeout_is_rejected() -> None:
    with pytest.raises(InvalidOptionsError):
        PostgrestContentStore(BASE_URL, timeout_s=0)

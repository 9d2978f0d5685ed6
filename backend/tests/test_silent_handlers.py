"""Tests for the silent notification handlers."""
import pytest
from unittest.mock import AsyncMock

from signalpush.services.envelope import NotificationEnvelope, SILENT_TYPES
from signalpush.services.market_cache import MarketCache
from signalpush.services.silent_handlers import MAX_PAIRS_PER_UPDATE, SilentHandlers


def envelope(silent_type, **payload):
    return NotificationEnvelope.silent_envelope(silent_type, payload)


@pytest.fixture
def cache():
    return MarketCache()


@pytest.fixture
def handlers(cache):
    signals = [{"id": "s1"}, {"id": "s2"}, {"id": "s3"}]
    return SilentHandlers(
        cache,
        quote_source=AsyncMock(return_value=2300.5),
        signal_source=AsyncMock(return_value=signals),
        log_cleaner=AsyncMock(return_value=4),
    )


class TestRegistry:

    def test_registry_covers_all_types(self, handlers):
        assert set(handlers.registry()) == SILENT_TYPES


class TestPriceUpdate:

    @pytest.mark.asyncio
    async def test_requested_pair(self, handlers, cache):
        result = await handlers.price_update(envelope("price-update", pairs=["XAU/USD"]))
        assert result["updatedPairs"][0]["pair"] == "XAU/USD"
        assert result["updatedPairs"][0]["updated"] is True
        assert cache.get_price("XAU/USD")["price"] == 2300.5

    @pytest.mark.asyncio
    async def test_default_pairs(self, handlers):
        result = await handlers.price_update(envelope("price-update"))
        assert [p["pair"] for p in result["updatedPairs"]] == ["XAU/USD", "XAG/USD"]

    @pytest.mark.asyncio
    async def test_pair_list_is_bounded(self, handlers):
        pairs = [f"P{i}/USD" for i in range(MAX_PAIRS_PER_UPDATE + 5)]
        result = await handlers.price_update(envelope("price-update", pairs=pairs))
        assert len(result["updatedPairs"]) == MAX_PAIRS_PER_UPDATE

    @pytest.mark.asyncio
    async def test_quote_failure_marks_pair(self, cache):
        handlers = SilentHandlers(cache, quote_source=AsyncMock(side_effect=RuntimeError("feed down")))
        result = await handlers.price_update(envelope("price-update", pairs=["XAU/USD"]))
        assert result["updatedPairs"][0]["updated"] is False
        assert "feed down" in result["updatedPairs"][0]["error"]

    @pytest.mark.asyncio
    async def test_without_quote_source_reports_cached_price(self, cache):
        cache.set_price("XAU/USD", 2290.0)
        handlers = SilentHandlers(cache)
        result = await handlers.price_update(envelope("price-update", pairs=["XAU/USD", "XAG/USD"]))

        gold, silver = result["updatedPairs"]
        assert gold == {**gold, "updated": False, "source": "cache", "price": 2290.0}
        assert silver["updated"] is False
        assert silver["price"] is None

    @pytest.mark.asyncio
    async def test_market_data_sync_without_quotes_is_not_synced(self, cache):
        result = await SilentHandlers(cache).market_data_sync(envelope("market-data-sync"))
        assert result["dataSynced"] is False
        assert result["pairsUpdated"] == []


class TestIdempotence:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("silent_type", sorted(SILENT_TYPES))
    async def test_twice_equals_once(self, handlers, cache, silent_type):
        """Running a handler twice leaves the cache where one run leaves it."""
        await handlers.registry()[silent_type](envelope(silent_type))
        once = cache.stats()
        await handlers.registry()[silent_type](envelope(silent_type))
        assert cache.stats() == once


class TestOtherHandlers:

    @pytest.mark.asyncio
    async def test_signal_refresh_reports_count(self, handlers):
        result = await handlers.signal_refresh(envelope("signal-refresh"))
        assert result["signalsRefreshed"] is True
        assert result["count"] == 3

    @pytest.mark.asyncio
    async def test_cache_invalidate_counts_items(self, handlers, cache):
        cache.set_price("XAU/USD", 1.0)
        cache.set_price("BTC/USD", 2.0)
        result = await handlers.cache_invalidate(envelope("cache-invalidate"))
        assert result["itemsRemoved"] == 2
        assert cache.stats()["prices"] == 0

    @pytest.mark.asyncio
    async def test_cache_invalidate_prefix(self, handlers, cache):
        cache.set_price("XAU/USD", 1.0)
        cache.set_price("BTC/USD", 2.0)
        result = await handlers.cache_invalidate(envelope("cache-invalidate", prefix="XAU"))
        assert result["itemsRemoved"] == 1
        assert cache.get_price("BTC/USD") is not None

    @pytest.mark.asyncio
    async def test_system_maintenance_runs_all_tasks(self, handlers):
        result = await handlers.system_maintenance(envelope("system-maintenance"))
        assert result["tasksExecuted"] == ["cleanup-logs", "optimize-database", "refresh-cache"]
        assert result["logsRemoved"] == 4
        handlers.log_cleaner.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_market_data_sync_defaults(self, handlers):
        result = await handlers.market_data_sync(envelope("market-data-sync"))
        assert result["dataSynced"] is True
        assert result["pairsUpdated"] == ["XAU/USD", "XAG/USD", "BTC/USD"]

    @pytest.mark.asyncio
    async def test_background_sync_default_actions(self, handlers):
        result = await handlers.background_sync(envelope("background-sync"))
        assert result["actions"] == ["market-data-refreshed", "signals-synced", "indicators-updated"]

    @pytest.mark.asyncio
    async def test_background_sync_single_action(self, handlers):
        result = await handlers.background_sync(envelope("background-sync", action="sync-signals"))
        assert result["actions"] == ["signals-synced"]

    @pytest.mark.asyncio
    async def test_background_sync_unknown_action_skipped(self, handlers):
        result = await handlers.background_sync(envelope("background-sync", action="defragment"))
        assert result["actions"] == []

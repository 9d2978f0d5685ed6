"""Scheduled ticks and push-triggered dispatches running at the same time."""
import asyncio

import pytest

from signalpush.services.dispatcher import NotificationDispatcher
from signalpush.services.market_cache import MarketCache
from signalpush.services.message_bus import MessageBus
from signalpush.services.silent_handlers import SilentHandlers
from signalpush.services.sync_scheduler import SyncConfig, SyncScheduler

QUOTE = 2300.5


async def quote(pair):
    # Yield so the other dispatch can run between pairs
    await asyncio.sleep(0)
    return QUOTE


@pytest.fixture
def cache():
    cache = MarketCache()
    cache.set_price("BTC/USD", 64000.0)
    return cache


@pytest.fixture
def dispatcher(cache, store):
    handlers = SilentHandlers(cache, quote_source=quote)
    return NotificationDispatcher(handlers.registry(), store=store, platform="web")


@pytest.fixture
def scheduler(dispatcher, store):
    scheduler = SyncScheduler(dispatcher, store, MessageBus())
    scheduler._config = SyncConfig(allowed_types=["price-update"])
    yield scheduler
    scheduler.shutdown()


class TestConcurrentDispatch:

    @pytest.mark.asyncio
    async def test_tick_overlapping_inbound_invalidate(self, scheduler, dispatcher, cache, store):
        tick_results, inbound = await asyncio.gather(
            scheduler._run_tick(),
            dispatcher.receive({"silent": "true", "type": "cache-invalidate"}),
        )

        [price_update] = tick_results
        assert price_update.success is True
        assert inbound.success is True

        logs = await store.list_silent_logs()
        assert sorted(log.type for log in logs) == ["cache-invalidate", "price-update"]
        assert all(log.success for log in logs)

        # Whatever the interleaving, the pre-existing pair is gone and every
        # remaining entry is a complete write from the tick
        assert cache.get_price("BTC/USD") is None
        remaining = [p for p in ("XAU/USD", "XAG/USD") if cache.get_price(p) is not None]
        assert cache.stats()["prices"] == len(remaining)
        assert all(cache.get_price(p)["price"] == QUOTE for p in remaining)
        assert scheduler.get_config().last_sync is not None

    @pytest.mark.asyncio
    async def test_many_inbound_dispatches_each_audited(self, dispatcher, store):
        messages = [
            {"silent": "true", "type": "price-update", "payload": '{"pairs": ["XAU/USD"]}'},
            {"silent": "true", "type": "signal-refresh"},
            {"silent": "true", "type": "cache-invalidate", "payload": '{"prefix": "XAG"}'},
            {"silent": "true", "type": "market-data-sync"},
            {"silent": "true", "type": "unknown-x"},
        ]

        results = await asyncio.gather(*(dispatcher.receive(m) for m in messages))

        assert [r.success for r in results] == [True, True, True, True, False]
        logs = await store.list_silent_logs()
        assert len(logs) == len(messages)

"""Silent notification handlers - one idempotent unit of background work per type.

Each handler takes the envelope and returns the result payload; raising marks
the invocation as failed. Handlers only assign state in the market cache, so a
retry or an overlapping run converges on the same state.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from .envelope import NotificationEnvelope, SilentType
from .market_cache import MarketCache

logger = logging.getLogger(__name__)

# Upper bound on pairs refreshed by one invocation
MAX_PAIRS_PER_UPDATE = 20

DEFAULT_PRICE_PAIRS = ["XAU/USD", "XAG/USD"]
DEFAULT_MARKET_DATA_PAIRS = ["XAU/USD", "XAG/USD", "BTC/USD"]
DEFAULT_SYNC_ACTIONS = ["refresh-market-data", "sync-signals", "update-indicators"]
MAINTENANCE_TASKS = ["cleanup-logs", "optimize-database", "refresh-cache"]

# Audit rows kept by the cleanup-logs maintenance task
AUDIT_RETENTION_DAYS = 30

QuoteSource = Callable[[str], Awaitable[Optional[float]]]
SignalSource = Callable[[], Awaitable[list[dict]]]
LogCleaner = Callable[[int], Awaitable[int]]

Handler = Callable[[NotificationEnvelope], Awaitable[dict]]


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _requested_pairs(envelope: NotificationEnvelope, default: list[str]) -> list[str]:
    pairs = envelope.structured_data.get("pairs") or default
    if isinstance(pairs, str):
        pairs = [p.strip() for p in pairs.split(",") if p.strip()]
    # Deduplicate while keeping order
    unique = list(dict.fromkeys(str(p) for p in pairs))
    if len(unique) > MAX_PAIRS_PER_UPDATE:
        logger.warning(f"Truncating pair list from {len(unique)} to {MAX_PAIRS_PER_UPDATE}")
    return unique[:MAX_PAIRS_PER_UPDATE]


class SilentHandlers:
    """The six named handlers, bound to the shared cache and data sources."""

    def __init__(
        self,
        cache: MarketCache,
        quote_source: Optional[QuoteSource] = None,
        signal_source: Optional[SignalSource] = None,
        log_cleaner: Optional[LogCleaner] = None,
    ):
        self.cache = cache
        self.quote_source = quote_source
        self.signal_source = signal_source
        self.log_cleaner = log_cleaner

    def registry(self) -> dict[str, Handler]:
        """Map handler type names to handler routines."""
        return {
            SilentType.BACKGROUND_SYNC.value: self.background_sync,
            SilentType.PRICE_UPDATE.value: self.price_update,
            SilentType.SIGNAL_REFRESH.value: self.signal_refresh,
            SilentType.CACHE_INVALIDATE.value: self.cache_invalidate,
            SilentType.SYSTEM_MAINTENANCE.value: self.system_maintenance,
            SilentType.MARKET_DATA_SYNC.value: self.market_data_sync,
        }

    async def _refresh_pair(self, pair: str) -> dict[str, Any]:
        """Fetch a fresh quote for a pair.

        "updated" is only set when a quote was obtained; otherwise the cached
        price (possibly None) is reported with source "cache".
        """
        price = None
        if self.quote_source is not None:
            try:
                price = await self.quote_source(pair)
            except Exception as e:
                logger.warning(f"Quote fetch failed for {pair}: {e}")
                return {"pair": pair, "updated": False, "error": str(e), "timestamp": _timestamp()}
        entry = self.cache.set_price(pair, price)
        return {
            "pair": pair,
            "updated": price is not None,
            "source": "quote" if price is not None else "cache",
            "price": entry["price"],
            "timestamp": _timestamp(),
        }

    async def _reload_signals(self) -> int:
        if self.signal_source is None:
            return self.cache.signal_count
        signals = await self.signal_source()
        return self.cache.replace_signals(signals)

    async def background_sync(self, envelope: NotificationEnvelope) -> dict:
        action = envelope.structured_data.get("action")
        actions = [action] if action else DEFAULT_SYNC_ACTIONS

        completed = []
        for name in actions:
            if name == "refresh-market-data":
                for pair in DEFAULT_PRICE_PAIRS:
                    await self._refresh_pair(pair)
                completed.append("market-data-refreshed")
            elif name == "sync-signals":
                await self._reload_signals()
                completed.append("signals-synced")
            elif name == "update-indicators":
                self.cache.stamp_indicators(DEFAULT_PRICE_PAIRS)
                completed.append("indicators-updated")
            else:
                logger.debug(f"Ignoring unknown background-sync action: {name}")

        return {"actions": completed}

    async def price_update(self, envelope: NotificationEnvelope) -> dict:
        pairs = _requested_pairs(envelope, DEFAULT_PRICE_PAIRS)
        updated_pairs = [await self._refresh_pair(pair) for pair in pairs]
        return {"updatedPairs": updated_pairs}

    async def signal_refresh(self, envelope: NotificationEnvelope) -> dict:
        count = await self._reload_signals()
        return {"signalsRefreshed": True, "count": count, "timestamp": _timestamp()}

    async def cache_invalidate(self, envelope: NotificationEnvelope) -> dict:
        prefix = envelope.structured_data.get("prefix")
        removed = self.cache.invalidate(prefix)
        return {"cacheCleared": True, "itemsRemoved": removed, "timestamp": _timestamp()}

    async def system_maintenance(self, envelope: NotificationEnvelope) -> dict:
        executed = []
        details = {}
        for task in MAINTENANCE_TASKS:
            if task == "cleanup-logs":
                if self.log_cleaner is None:
                    continue
                details["logsRemoved"] = await self.log_cleaner(AUDIT_RETENTION_DAYS)
            elif task == "optimize-database":
                details["stalePricesRemoved"] = self.cache.prune_stale()
            elif task == "refresh-cache":
                details["signalCount"] = await self._reload_signals()
            executed.append(task)

        return {
            "maintenanceCompleted": True,
            "tasksExecuted": executed,
            **details,
            "timestamp": _timestamp(),
        }

    async def market_data_sync(self, envelope: NotificationEnvelope) -> dict:
        pairs = _requested_pairs(envelope, DEFAULT_MARKET_DATA_PAIRS)
        results = [await self._refresh_pair(pair) for pair in pairs]
        return {
            "dataSynced": all(r["updated"] for r in results),
            "pairsUpdated": [r["pair"] for r in results if r["updated"]],
            "timestamp": _timestamp(),
        }

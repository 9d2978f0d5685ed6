"""In-process market cache shared by the silent handlers.

Holds the latest price per instrument pair, the active signal set and
indicator refresh stamps. Every write is a plain assignment keyed by pair or
signal id, so repeating a refresh converges on the same state and concurrent
handlers need no lock (no await happens between a read and its write).
"""
import logging
import time
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Maximum pairs kept in memory
MAX_CACHED_PAIRS = 100

# Maximum age for price entries before maintenance drops them (seconds)
MAX_PRICE_AGE = 3600


class MarketCache:
    """Bounded cache of prices, signals and indicator stamps."""

    def __init__(self, max_pairs: int = MAX_CACHED_PAIRS):
        self.max_pairs = max_pairs
        self._prices: dict[str, dict[str, Any]] = {}
        self._signals: dict[str, dict[str, Any]] = {}
        self._indicators: dict[str, float] = {}

    def set_price(self, pair: str, price: Optional[float] = None) -> dict[str, Any]:
        """Record a refresh of a pair; keeps the previous price if none given."""
        previous = self._prices.get(pair, {})
        entry = {
            "price": price if price is not None else previous.get("price"),
            "timestamp": time.time(),
        }
        if pair not in self._prices and len(self._prices) >= self.max_pairs:
            oldest = min(self._prices, key=lambda p: self._prices[p]["timestamp"])
            del self._prices[oldest]
        self._prices[pair] = entry
        return entry

    def get_price(self, pair: str) -> Optional[dict[str, Any]]:
        return self._prices.get(pair)

    def replace_signals(self, signals: list[dict[str, Any]]) -> int:
        """Replace the active signal set. Returns the resulting count."""
        self._signals = {str(s.get("id") or s.get("signal_id") or i): s for i, s in enumerate(signals)}
        return len(self._signals)

    @property
    def signal_count(self) -> int:
        return len(self._signals)

    def stamp_indicators(self, pairs: list[str]) -> None:
        now = time.time()
        for pair in pairs:
            self._indicators[pair] = now

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Drop price and indicator entries (optionally only pairs with a prefix).

        Returns the number of entries removed.
        """
        if prefix is None:
            removed = len(self._prices) + len(self._indicators)
            self._prices.clear()
            self._indicators.clear()
            return removed

        removed = 0
        for store in (self._prices, self._indicators):
            for key in [k for k in store if k.startswith(prefix)]:
                del store[key]
                removed += 1
        return removed

    def prune_stale(self, max_age: float = MAX_PRICE_AGE) -> int:
        """Remove price entries older than max_age seconds."""
        cutoff = time.time() - max_age
        stale = [pair for pair, entry in self._prices.items() if entry["timestamp"] < cutoff]
        for pair in stale:
            del self._prices[pair]
        if stale:
            logger.debug(f"Pruned {len(stale)} stale price entries")
        return len(stale)

    def stats(self) -> dict[str, int]:
        return {
            "prices": len(self._prices),
            "signals": len(self._signals),
            "indicators": len(self._indicators),
        }

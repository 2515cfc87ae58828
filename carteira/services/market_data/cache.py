# carteira/services/market_data/cache.py
"""
Process-wide current price cache (ticker -> price).

Safe for concurrent read/write. Last write wins: a background refresh may
overwrite a value while a calculation is reading it, which is accepted.
Absent entries are reported as None; the cache never stores a zero as a
stand-in for "unknown".
"""

import threading
from decimal import Decimal


class PriceCache:
    """Thread-safe ticker -> price map with case-normalized keys."""

    def __init__(self) -> None:
        self._prices: dict[str, Decimal] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _key(ticker: str) -> str:
        return ticker.strip().upper()

    def get(self, ticker: str) -> Decimal | None:
        with self._lock:
            return self._prices.get(self._key(ticker))

    def put(self, ticker: str, price: Decimal) -> None:
        with self._lock:
            self._prices[self._key(ticker)] = price

    def invalidate(self, ticker: str) -> bool:
        """Remove one entry. Returns False if it was not cached."""
        with self._lock:
            return self._prices.pop(self._key(ticker), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._prices.clear()

    def snapshot(self) -> dict[str, Decimal]:
        """Copy of all entries."""
        with self._lock:
            return dict(self._prices)

    def __contains__(self, ticker: str) -> bool:
        with self._lock:
            return self._key(ticker) in self._prices

    def __len__(self) -> int:
        with self._lock:
            return len(self._prices)

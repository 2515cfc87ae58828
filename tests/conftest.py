# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database fixtures (in-memory SQLite)
- Mock market data provider
- In-memory stores, exchange rates, calendar and index fakes
- Transaction / fixed-income factories
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from carteira.models import (
    Base,
    AssetType,
    Market,
    Transaction,
    TransactionType,
    FixedIncomeAsset,
    FixedIncomeIndex,
)
from carteira.services.exceptions import TickerNotFoundError
from carteira.services.market_data.base import (
    MarketDataProvider,
    AssetToFetch,
    AssetSearchResult,
)
from carteira.services.market_data.service import MarketDataService
from carteira.utils.date_utils import is_weekend, iter_days


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine)


# =============================================================================
# FACTORIES
# =============================================================================

def make_transaction(
        ticker: str = "PETR4",
        asset_type: AssetType = AssetType.STOCK,
        market: Market | None = Market.B3,
        transaction_type: TransactionType = TransactionType.BUY,
        quantity: str = "10",
        price: str = "100",
        other_costs: str | None = None,
        on: date = date(2024, 1, 1),
        id: int | None = None,
) -> Transaction:
    """Build a transient Transaction (not attached to any session)."""
    tx = Transaction(
        ticker=ticker,
        asset_type=asset_type,
        market=market,
        transaction_type=transaction_type,
        quantity=Decimal(quantity),
        price_per_unit=Decimal(price),
        other_costs=Decimal(other_costs) if other_costs is not None else None,
        transaction_date=on,
    )
    if id is not None:
        tx.id = id
    return tx


def make_fixed_income(
        name: str = "CDB Banco X",
        invested: str = "1000.00",
        index_type: FixedIncomeIndex = FixedIncomeIndex.PRE_FIXED,
        rate: str = "10",
        invested_on: date = date(2024, 1, 2),
        maturity: date = date(2027, 1, 2),
) -> FixedIncomeAsset:
    return FixedIncomeAsset(
        name=name,
        invested_amount=Decimal(invested),
        investment_date=invested_on,
        maturity_date=maturity,
        is_daily_liquid=False,
        index_type=index_type,
        contracted_rate=Decimal(rate),
    )


# =============================================================================
# MOCK MARKET DATA PROVIDER
# =============================================================================

class MockMarketDataProvider(MarketDataProvider):
    """
    Mock implementation of MarketDataProvider for testing.

    Prices are configured per ticker; errors can be injected per ticker.
    Every call to a public capability is recorded.
    """

    MAX_RETRY_ATTEMPTS = 1
    RETRY_MIN_WAIT = 0
    RETRY_MAX_WAIT = 0

    SUPPORTS_HISTORY = True
    SUPPORTS_SEARCH = True

    def __init__(
            self,
            name: str = "mock",
            supported_types: set[AssetType] | None = None,
            prices: dict[str, Decimal] | None = None,
    ) -> None:
        super().__init__()
        self._name = name
        self.SUPPORTED_TYPES = frozenset(
            supported_types or {AssetType.STOCK, AssetType.ETF, AssetType.CRYPTO}
        )
        self._prices: dict[str, Decimal] = dict(prices or {})
        self._historical: dict[tuple[str, date], Decimal] = {}
        self._errors: dict[str, Exception] = {}
        self._search_results: list[AssetSearchResult] = []
        self.fetch_calls: list[list[str]] = []
        self.historical_calls: list[tuple[str, date]] = []
        self.initialized = False

    @property
    def name(self) -> str:
        return self._name

    def set_price(self, ticker: str, price: str | Decimal) -> None:
        self._prices[ticker.upper()] = Decimal(price)

    def set_historical_price(self, ticker: str, on_date: date, price: str | Decimal) -> None:
        self._historical[(ticker.upper(), on_date)] = Decimal(price)

    def add_error(self, ticker: str, error: Exception) -> None:
        self._errors[ticker.upper()] = error

    def add_search_result(self, result: AssetSearchResult) -> None:
        self._search_results.append(result)

    @property
    def call_count(self) -> int:
        return len(self.fetch_calls)

    def initialize(self) -> None:
        self.initialized = True

    def fetch_prices(self, assets):
        self.fetch_calls.append([a.ticker for a in assets])
        return super().fetch_prices(assets)

    def _fetch_price(self, asset: AssetToFetch) -> Decimal | None:
        if asset.ticker in self._errors:
            raise self._errors[asset.ticker]
        return self._prices.get(asset.ticker)

    def _fetch_historical_price(self, asset: AssetToFetch, on_date: date) -> Decimal | None:
        self.historical_calls.append((asset.ticker, on_date))
        return self._historical.get((asset.ticker, on_date))

    def _search(self, term: str) -> list[AssetSearchResult]:
        term = term.upper()
        return [r for r in self._search_results if term in r.ticker or term in r.name.upper()]


def not_found(ticker: str, provider: str = "mock") -> TickerNotFoundError:
    return TickerNotFoundError(ticker=ticker, market=None, provider=provider)


@pytest.fixture
def mock_provider() -> MockMarketDataProvider:
    return MockMarketDataProvider()


@pytest.fixture
def refresh_executor() -> Iterator[ThreadPoolExecutor]:
    executor = ThreadPoolExecutor(max_workers=2)
    yield executor
    executor.shutdown(wait=True)


@pytest.fixture
def market_data_factory(refresh_executor):
    """Build MarketDataService instances that share the test executor."""

    def _build(providers, **kwargs) -> MarketDataService:
        kwargs.setdefault("executor", refresh_executor)
        return MarketDataService(providers, **kwargs)

    return _build


# =============================================================================
# IN-MEMORY STORES
# =============================================================================

class InMemoryTransactionStore:
    """TransactionStore backed by a list."""

    def __init__(self, transactions: list[Transaction] | None = None) -> None:
        self._rows: list[Transaction] = []
        self._next_id = 1
        for tx in transactions or []:
            self.save(tx)

    def find_all(self) -> list[Transaction]:
        return sorted(self._rows, key=lambda t: (t.transaction_date, t.id))

    def find_by_ticker(self, ticker: str) -> list[Transaction]:
        return [t for t in self.find_all() if t.ticker == ticker.upper()]

    def find_distinct_tickers(self) -> list[str]:
        return sorted({t.ticker for t in self._rows})

    def save(self, transaction: Transaction) -> Transaction:
        if transaction.id is None:
            transaction.id = self._next_id
        self._next_id = max(self._next_id, transaction.id) + 1
        self._rows.append(transaction)
        return transaction

    def delete_by_ticker(self, ticker: str) -> int:
        before = len(self._rows)
        self._rows = [t for t in self._rows if t.ticker != ticker.upper()]
        return before - len(self._rows)

    def delete_by_id(self, transaction_id: int) -> bool:
        before = len(self._rows)
        self._rows = [t for t in self._rows if t.id != transaction_id]
        return len(self._rows) < before


class InMemoryFixedIncomeStore:
    """FixedIncomeStore backed by a dict keyed by name."""

    def __init__(self, assets: list[FixedIncomeAsset] | None = None) -> None:
        self._rows: dict[str, FixedIncomeAsset] = {}
        for asset in assets or []:
            self.save(asset)

    def find_all(self) -> list[FixedIncomeAsset]:
        return list(self._rows.values())

    def find_by_name(self, name: str) -> FixedIncomeAsset | None:
        return self._rows.get(name)

    def save(self, asset: FixedIncomeAsset) -> FixedIncomeAsset:
        self._rows[asset.name] = asset
        return asset

    def delete_by_name(self, name: str) -> bool:
        return self._rows.pop(name, None) is not None


# =============================================================================
# EXCHANGE RATE / CALENDAR / INDEX FAKES
# =============================================================================

class FakeExchangeRates:
    """ExchangeRateSource with fixed answers."""

    def __init__(
            self,
            current: Decimal | None = None,
            historical: dict[date, Decimal] | None = None,
    ) -> None:
        self.current = current
        self.historical = dict(historical or {})
        self.current_calls = 0
        self.historical_calls: list[date] = []

    def current_rate(self) -> Decimal | None:
        self.current_calls += 1
        return self.current

    def fetch_historical_rate(self, on_date: date) -> Decimal | None:
        self.historical_calls.append(on_date)
        return self.historical.get(on_date)


class WeekdayCalendar:
    """BusinessCalendar where every weekday is a business day, plus listed holidays."""

    def __init__(self, holidays: set[date] | None = None) -> None:
        self._holidays = set(holidays or ())

    def is_business_day(self, d: date) -> bool:
        return not is_weekend(d) and d not in self._holidays

    def count_business_days(self, start_date: date, end_date: date) -> int:
        return sum(1 for d in iter_days(start_date, end_date) if self.is_business_day(d))


class FixedCountCalendar:
    """BusinessCalendar that reports a fixed business-day count for any range."""

    def __init__(self, business_days: int) -> None:
        self.business_days = business_days

    def is_business_day(self, d: date) -> bool:
        return True

    def count_business_days(self, start_date: date, end_date: date) -> int:
        return self.business_days if end_date > start_date else 0


class FakeIndexService:
    """Index source returning preset CDI / IPCA maps."""

    def __init__(
            self,
            cdi: dict[date, Decimal] | None = None,
            ipca: dict[date, Decimal] | None = None,
    ) -> None:
        self.cdi = dict(cdi or {})
        self.ipca = dict(ipca or {})

    def get_cdi_rates(self, start_date: date, end_date: date) -> dict[date, Decimal]:
        return {d: r for d, r in self.cdi.items() if start_date <= d <= end_date}

    def get_ipca_rates(self, start_date: date, end_date: date) -> dict[date, Decimal]:
        return {d: r for d, r in self.ipca.items() if start_date <= d <= end_date}


def weekdays(start_date: date, count: int) -> list[date]:
    """The first ``count`` weekdays on or after start_date."""
    days = []
    current = start_date
    while len(days) < count:
        if not is_weekend(current):
            days.append(current)
        current += timedelta(days=1)
    return days


# =============================================================================
# YAHOO RESPONSE BUILDERS
# =============================================================================

QUOTE_PAGE = """
<html><body>
  <section>
    <fin-streamer data-testid="qsp-price" data-value="37.45">{price}</fin-streamer>
  </section>
</body></html>
"""


def _chart_ts(d: date) -> int:
    return int(datetime(d.year, d.month, d.day, 13, 0, tzinfo=timezone.utc).timestamp())


def chart_payload(samples: list[tuple[date, float | None]], market_price: float | None = None) -> dict:
    """Minimal chart API response."""
    meta = {"symbol": "TEST"}
    if market_price is not None:
        meta["regularMarketPrice"] = market_price
    return {
        "chart": {
            "result": [{
                "meta": meta,
                "timestamp": [_chart_ts(d) for d, _ in samples],
                "indicators": {"quote": [{"close": [c for _, c in samples]}]},
            }],
            "error": None,
        }
    }

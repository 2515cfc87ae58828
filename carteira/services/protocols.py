# carteira/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- The SQLAlchemy repositories satisfy the store protocols without inheriting
- Test fakes work without explicit inheritance
- Collaborators outside the core (push channel, HTTP layer) only need
  to match these shapes
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from carteira.models import AssetType, Transaction, FixedIncomeAsset
    from carteira.services.market_data.base import AssetToFetch, PriceData


class TransactionStore(Protocol):
    """Persistence contract for transactions."""

    def find_all(self) -> list[Transaction]:
        ...

    def find_by_ticker(self, ticker: str) -> list[Transaction]:
        ...

    def find_distinct_tickers(self) -> list[str]:
        ...

    def save(self, transaction: Transaction) -> Transaction:
        ...

    def delete_by_ticker(self, ticker: str) -> int:
        ...

    def delete_by_id(self, transaction_id: int) -> bool:
        ...


class FixedIncomeStore(Protocol):
    """Persistence contract for fixed-income holdings."""

    def find_all(self) -> list[FixedIncomeAsset]:
        ...

    def find_by_name(self, name: str) -> FixedIncomeAsset | None:
        ...

    def save(self, asset: FixedIncomeAsset) -> FixedIncomeAsset:
        ...

    def delete_by_name(self, name: str) -> bool:
        ...


class NotificationSink(Protocol):
    """Receives price updates for push to subscribers. Fire-and-forget."""

    def broadcast_price(self, ticker: str, price: Decimal) -> None:
        ...


class PriceResolver(Protocol):
    """Interface the PortfolioCalculator needs from the market data orchestrator."""

    def get_price_with_fallback(self, asset: AssetToFetch) -> Decimal | None:
        ...

    def get_historical_price_with_fallback(self, asset: AssetToFetch, on_date: date) -> Decimal | None:
        ...

    def fetch_prices_with_fallback(
        self,
        asset_type: AssetType,
        assets: list[AssetToFetch],
    ) -> list[PriceData]:
        ...


class ExchangeRateSource(Protocol):
    """Interface the PortfolioCalculator needs from the currency converter."""

    def current_rate(self) -> Decimal | None:
        ...

    def fetch_historical_rate(self, on_date: date) -> Decimal | None:
        ...


class BusinessCalendar(Protocol):
    def is_business_day(self, d: date) -> bool:
        ...

    def count_business_days(self, start_date: date, end_date: date) -> int:
        ...

# carteira/services/portfolio/types.py
"""
Data types for portfolio valuation.

Value objects produced by the calculator and consumed by the dashboard
and views. All money amounts are Decimal in the home currency.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from carteira.models import AssetType, Market
from carteira.services.market_data.base import AssetToFetch


@dataclass(frozen=True)
class AssetKey:
    """
    Grouping key for transactions.

    PETR4 on B3 and a same-named US listing are two different positions.
    """

    ticker: str
    asset_type: AssetType
    market: Market | None

    def to_asset(self) -> AssetToFetch:
        return AssetToFetch(ticker=self.ticker, asset_type=self.asset_type, market=self.market)


@dataclass(frozen=True)
class AssetPosition:
    """
    Consolidated view of one holding at a point in time.

    For transactional assets, ticker is the symbol and quantity/average
    price are set. For fixed income, ticker and name are the holding's
    name and quantity/average price are None.

    Attributes:
        total_quantity: Units held (> 0 for any position that exists)
        average_price: Cost basis per unit, home currency
        current_price: Market price, home currency (average price when no
                       price could be resolved)
        total_invested: Cost basis, home currency
        current_value: Market value (net of tax for fixed income)
        profit_or_loss: current_value - total_invested
        profitability: Percent, e.g. Decimal("49.2500")
        price_available: False when the position is valued at cost because
                         no provider returned a price
    """

    ticker: str
    name: str
    asset_type: AssetType
    market: Market | None
    total_quantity: Decimal | None
    average_price: Decimal | None
    current_price: Decimal | None
    total_invested: Decimal
    current_value: Decimal
    profit_or_loss: Decimal
    profitability: Decimal
    price_available: bool = True


@dataclass(frozen=True)
class FixedIncomeValues:
    """Accrual result for one fixed-income holding (2-decimal amounts)."""

    gross_value: Decimal
    tax_amount: Decimal
    net_value: Decimal


@dataclass
class CalculationCaches:
    """
    Per-invocation lookup caches.

    One instance lives for one calculation (or one evolution series run)
    and is never shared across invocations. A stored None means "looked
    up, nothing found" and is distinct from a key that was never looked up.
    """

    prices: dict[tuple[AssetKey, date], Decimal | None] = field(default_factory=dict)
    exchange_rates: dict[date, Decimal | None] = field(default_factory=dict)


# =============================================================================
# VIEW TYPES
# =============================================================================

@dataclass(frozen=True)
class PortfolioSummary:
    total_heritage: Decimal
    total_invested: Decimal
    profit_or_loss: Decimal
    profitability: Decimal


@dataclass(frozen=True)
class PortfolioPercentages:
    """Share of total value by asset family, in percent."""

    stock: Decimal
    crypto: Decimal
    fixed_income: Decimal


@dataclass(frozen=True)
class AssetTableRow:
    position: AssetPosition
    portfolio_percentage: Decimal


@dataclass(frozen=True)
class AssetSubCategory:
    name: str
    total_value: Decimal
    rows: list[AssetTableRow]


@dataclass(frozen=True)
class AllocationNode:
    """Node of the allocation tree; leaves have no children."""

    key: str
    value: Decimal
    percentage: Decimal
    children: dict[str, "AllocationNode"] = field(default_factory=dict)


@dataclass(frozen=True)
class PortfolioDashboard:
    summary: PortfolioSummary
    percentages: PortfolioPercentages
    assets: dict[str, list[AssetSubCategory]]


@dataclass(frozen=True)
class EvolutionPoint:
    """One snapshot of the evolution series."""

    date: date
    heritage: Decimal
    invested: Decimal
    positions: list[AssetPosition] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Wire shape consumed by the dashboard chart."""
        return {
            "date": self.date.isoformat(),
            "patrimonio": str(self.heritage),
            "valorAplicado": str(self.invested),
        }

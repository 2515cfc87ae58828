# carteira/services/portfolio/calculator.py
"""
Portfolio consolidation: transactions -> valued positions.

Algorithm (run fresh for every request, with its own lookup caches):

1. Drop transactions without a ticker; group the rest by AssetKey
   (ticker, asset type, market)
2. For valuations "as of today", batch-preload current prices for every
   key not yet cached, one fallback chain per asset type
3. Walk each group in date order (BUYs before SELLs on the same date)
   keeping a moving-average cost basis:
       BUY : invested += qty * price + other_costs ; quantity += qty
       SELL: avg = invested / quantity (16 dp) ; invested -= qty * avg ;
             quantity -= qty
   A group whose final quantity is <= 0 yields no position
4. Resolve a native-currency price (current or historical) through the
   orchestrator. Without a price the position is kept, valued at cost
   with zero profitability
5. Convert to the home currency: prices of crypto and US assets, cost
   basis of US assets (and of crypto only when configured). A missing
   exchange rate skips the conversion with a warning
6. current value = price * quantity ; profit = value - invested ;
   profitability = profit / invested * 100
7. Append fixed-income positions

The same entry point reconstructs historical snapshots: pass the
transactions up to a date and that date as calculation_date.
"""

import logging
from collections import OrderedDict
from collections.abc import Callable, Iterable
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, TYPE_CHECKING

from carteira.config import settings
from carteira.models import AssetType, Market, TransactionType
from carteira.services.constants import (
    AVERAGE_COST_QUANTUM,
    PRICE_QUANTUM,
    RATIO_QUANTUM,
    ZERO,
    HUNDRED,
)
from carteira.services.portfolio.types import AssetKey, AssetPosition, CalculationCaches
from carteira.services.protocols import PriceResolver, ExchangeRateSource

if TYPE_CHECKING:
    from carteira.services.fixed_income import FixedIncomeService

logger = logging.getLogger(__name__)


class CostBasis:
    """Running quantity and invested amount for one asset group."""

    def __init__(self) -> None:
        self.quantity: Decimal = ZERO
        self.invested: Decimal = ZERO

    def apply(self, transaction: Any) -> None:
        quantity = Decimal(transaction.quantity)

        if transaction.transaction_type == TransactionType.BUY:
            other_costs = Decimal(transaction.other_costs) if transaction.other_costs is not None else ZERO
            self.invested += quantity * Decimal(transaction.price_per_unit) + other_costs
            self.quantity += quantity
            return

        if self.quantity > 0:
            average = (self.invested / self.quantity).quantize(AVERAGE_COST_QUANTUM, rounding=ROUND_HALF_UP)
            self.invested -= quantity * average
        self.quantity -= quantity


class PortfolioCalculator:
    """
    Consolidates transactions into positions valued in the home currency.

    Example:
        calculator = PortfolioCalculator(market_data, exchange_rates, fixed_income_service)
        positions = calculator.calculate_consolidated_portfolio(transactions)
    """

    def __init__(
            self,
            price_resolver: PriceResolver,
            exchange_rates: ExchangeRateSource,
            fixed_income_service: "FixedIncomeService | None" = None,
            today: Callable[[], date] = date.today,
            convert_crypto_invested_amount: bool | None = None,
    ) -> None:
        self._prices = price_resolver
        self._exchange_rates = exchange_rates
        self._fixed_income = fixed_income_service
        self._today = today
        self._convert_crypto_invested = (
            convert_crypto_invested_amount if convert_crypto_invested_amount is not None
            else settings.convert_crypto_invested_amount
        )

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def calculate_consolidated_portfolio(
            self,
            transactions: Iterable[Any],
            calculation_date: date | None = None,
            caches: CalculationCaches | None = None,
            include_fixed_income: bool = True,
    ) -> list[AssetPosition]:
        """
        Value every open position as of calculation_date (default: today).

        Args:
            transactions: Transaction-like objects (ticker, asset_type, market,
                          transaction_type, quantity, price_per_unit,
                          other_costs, transaction_date)
            calculation_date: Valuation date
            caches: Lookup caches to reuse within one series run; a fresh
                    set is created when omitted
            include_fixed_income: Append fixed-income positions

        Returns:
            Transactional positions followed by fixed-income positions
        """
        calculation_date = calculation_date or self._today()
        caches = caches if caches is not None else CalculationCaches()

        groups = self.group_transactions(transactions)
        if calculation_date == self._today():
            self._preload_current_prices(list(groups), calculation_date, caches)

        positions = []
        for key, group in groups.items():
            position = self._calculate_position(key, group, calculation_date, caches)
            if position is not None:
                positions.append(position)

        if include_fixed_income and self._fixed_income is not None:
            positions.extend(self._fixed_income.get_positions(as_of=calculation_date))

        logger.debug(f"Calculated {len(positions)} position(s) as of {calculation_date}")
        return positions

    @staticmethod
    def group_transactions(transactions: Iterable[Any]) -> OrderedDict[AssetKey, list[Any]]:
        """Group by AssetKey, skipping transactions without a ticker."""
        groups: OrderedDict[AssetKey, list[Any]] = OrderedDict()
        for tx in transactions:
            if not tx.ticker or not tx.ticker.strip():
                continue
            key = AssetKey(ticker=tx.ticker.strip().upper(), asset_type=tx.asset_type, market=tx.market)
            groups.setdefault(key, []).append(tx)
        return groups

    @staticmethod
    def compute_cost_basis(transactions: Iterable[Any]) -> CostBasis:
        """
        Moving-average cost basis of one group.

        Same-date BUYs are applied before same-date SELLs, so the result
        does not depend on the input order within a day.
        """
        basis = CostBasis()
        ordered = sorted(
            transactions,
            key=lambda tx: (tx.transaction_date, tx.transaction_type != TransactionType.BUY),
        )
        for tx in ordered:
            basis.apply(tx)
        return basis

    # =========================================================================
    # POSITION
    # =========================================================================

    def _calculate_position(
            self,
            key: AssetKey,
            transactions: list[Any],
            calculation_date: date,
            caches: CalculationCaches,
    ) -> AssetPosition | None:
        basis = self.compute_cost_basis(transactions)
        if basis.quantity <= 0:
            logger.debug(f"{key.ticker}: closed position (quantity {basis.quantity}), skipped")
            return None

        quantity = basis.quantity
        native_price = self._resolve_price(key, calculation_date, caches)

        needs_price_conversion = key.asset_type == AssetType.CRYPTO or key.market == Market.US
        needs_invested_conversion = key.market == Market.US or (
            key.asset_type == AssetType.CRYPTO and self._convert_crypto_invested
        )

        rate = None
        if needs_price_conversion or needs_invested_conversion:
            rate = self._resolve_rate(calculation_date, caches)
            if rate is None:
                logger.warning(
                    f"{key.ticker}: no exchange rate for {calculation_date}; "
                    f"using unconverted {settings.foreign_currency} values"
                )

        invested = basis.invested
        if needs_invested_conversion and rate is not None:
            invested = invested * rate

        average_price = (invested / quantity).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)

        if native_price is None:
            return AssetPosition(
                ticker=key.ticker,
                name=key.ticker,
                asset_type=key.asset_type,
                market=key.market,
                total_quantity=quantity,
                average_price=average_price,
                current_price=average_price,
                total_invested=invested,
                current_value=invested,
                profit_or_loss=ZERO,
                profitability=ZERO,
                price_available=False,
            )

        current_price = native_price * rate if needs_price_conversion and rate is not None else native_price
        current_value = current_price * quantity
        profit = current_value - invested

        return AssetPosition(
            ticker=key.ticker,
            name=key.ticker,
            asset_type=key.asset_type,
            market=key.market,
            total_quantity=quantity,
            average_price=average_price,
            current_price=current_price,
            total_invested=invested,
            current_value=current_value,
            profit_or_loss=profit,
            profitability=self.profitability(profit, invested),
        )

    @staticmethod
    def profitability(profit: Decimal, invested: Decimal) -> Decimal:
        """profit / invested (4 dp, half-up) * 100; zero when nothing is invested."""
        if invested == 0:
            return ZERO
        return (profit / invested).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP) * HUNDRED

    # =========================================================================
    # LOOKUPS (per-invocation caches)
    # =========================================================================

    def _resolve_price(self, key: AssetKey, on_date: date, caches: CalculationCaches) -> Decimal | None:
        cache_key = (key, on_date)
        if cache_key in caches.prices:
            return caches.prices[cache_key]

        if on_date == self._today():
            price = self._prices.get_price_with_fallback(key.to_asset())
        else:
            price = self._prices.get_historical_price_with_fallback(key.to_asset(), on_date)

        caches.prices[cache_key] = price
        if price is None:
            logger.warning(f"{key.ticker}: no price for {on_date}; valuing at cost")
        return price

    def _resolve_rate(self, on_date: date, caches: CalculationCaches) -> Decimal | None:
        if on_date in caches.exchange_rates:
            return caches.exchange_rates[on_date]

        if on_date == self._today():
            rate = self._exchange_rates.current_rate()
        else:
            rate = self._exchange_rates.fetch_historical_rate(on_date)

        caches.exchange_rates[on_date] = rate
        return rate

    def _preload_current_prices(
            self,
            keys: list[AssetKey],
            on_date: date,
            caches: CalculationCaches,
    ) -> None:
        """
        One batch fallback chain per asset type for keys not yet cached.

        Tickers held in two markets under the same asset type are left to
        the per-asset path, since batch results carry only the ticker.
        Keys the batch could not price are not cached and get retried
        individually.
        """
        by_type: dict[AssetType, dict[str, AssetKey | None]] = {}
        for key in keys:
            if (key, on_date) in caches.prices:
                continue
            tickers = by_type.setdefault(key.asset_type, {})
            tickers[key.ticker] = None if key.ticker in tickers else key

        for asset_type, tickers in by_type.items():
            unique = [k for k in tickers.values() if k is not None]
            if not unique:
                continue
            results = self._prices.fetch_prices_with_fallback(asset_type, [k.to_asset() for k in unique])
            for price_data in results:
                key = tickers.get(price_data.ticker)
                if key is not None:
                    caches.prices[(key, on_date)] = price_data.price

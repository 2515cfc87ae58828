# carteira/services/fixed_income.py
"""
Fixed-income accrual and positions.

Accrual rules (as of a valuation date, "as_of"):

PRE_FIXED
    Annual rate compounded over business days, 252-day convention:
        daily_factor = (1 + rate/100) ** (1/252)
        gross        = invested * daily_factor ** business_days(investment, as_of)

CDI
    For every calendar day in [investment, as_of) that has a published
    daily CDI rate:
        factor *= 1 + daily_cdi * (contracted_rate / 100)
    gross = invested * factor. No CDI data at all -> gross = invested.

IPCA
    Monthly IPCA for every month in [investment month, as_of month),
    times the real spread compounded over business days:
        gross = invested * prod(1 + ipca_m) * (1 + spread/100) ** (bd/252)
    No IPCA data at all -> gross = invested.

Tax
    Withholding only on positive gross profit, at the bracket rate for the
    calendar days held, rounded to 2 decimals half-up. net = gross - tax.
"""

import logging
from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP, localcontext

from carteira.models import AssetType, FixedIncomeAsset, FixedIncomeIndex
from carteira.schemas.fixed_income import FixedIncomeCreate
from carteira.services.constants import (
    BUSINESS_DAYS_PER_YEAR,
    MONEY_QUANTUM,
    RATIO_QUANTUM,
    ZERO,
    ONE,
    HUNDRED,
)
from carteira.services.exceptions import ValidationError, FixedIncomeNotFoundError
from carteira.services.index_service import FinancialIndexService
from carteira.services.portfolio.types import AssetPosition, FixedIncomeValues
from carteira.services.protocols import BusinessCalendar, FixedIncomeStore
from carteira.services.tax_service import get_fixed_income_tax_rate
from carteira.utils.date_utils import iter_days, first_of_month

logger = logging.getLogger(__name__)

# Working precision for compounding; results are rounded to cents afterwards
_COMPOUNDING_PRECISION = 34


class FixedIncomeCalculator:
    """
    Computes gross, tax and net value of one fixed-income holding.

    Example:
        calculator = FixedIncomeCalculator(calendar, index_service)
        values = calculator.calculate_values(asset, as_of=date(2025, 1, 2))
        values.net_value
    """

    def __init__(
            self,
            calendar: BusinessCalendar,
            index_service: FinancialIndexService,
            today: Callable[[], date] = date.today,
    ) -> None:
        self._calendar = calendar
        self._index_service = index_service
        self._today = today

    def calculate_values(self, asset: FixedIncomeAsset, as_of: date | None = None) -> FixedIncomeValues:
        as_of = as_of or self._today()
        invested = Decimal(asset.invested_amount)

        if as_of <= asset.investment_date:
            return FixedIncomeValues(gross_value=invested, tax_amount=ZERO, net_value=invested)

        # Tax is taken on the unrounded profit; only reported amounts are cents
        gross = self.calculate_gross_value(asset, as_of)
        profit = gross - invested

        tax = ZERO
        if profit > 0:
            rate = get_fixed_income_tax_rate(asset.investment_date, as_of)
            tax = (profit * rate).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)

        return FixedIncomeValues(
            gross_value=gross.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP),
            tax_amount=tax,
            net_value=(gross - tax).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP),
        )

    def calculate_gross_value(self, asset: FixedIncomeAsset, as_of: date) -> Decimal:
        """Unrounded gross value under the asset's index rule."""
        invested = Decimal(asset.invested_amount)
        rate = Decimal(asset.contracted_rate)

        with localcontext() as ctx:
            ctx.prec = _COMPOUNDING_PRECISION

            if asset.index_type == FixedIncomeIndex.PRE_FIXED:
                days = self._calendar.count_business_days(asset.investment_date, as_of)
                return invested * self._compound_annual(rate, days)

            if asset.index_type == FixedIncomeIndex.CDI:
                return invested * self._cdi_factor(asset, rate, as_of)

            if asset.index_type == FixedIncomeIndex.IPCA:
                return invested * self._ipca_factor(asset, rate, as_of)

        logger.warning(f"Unknown index type {asset.index_type} for {asset.name}; no accrual")
        return invested

    # =========================================================================
    # INDEX RULES
    # =========================================================================

    @staticmethod
    def _compound_annual(annual_rate_percent: Decimal, business_days: int) -> Decimal:
        daily_factor = (ONE + annual_rate_percent / HUNDRED) ** (ONE / Decimal(BUSINESS_DAYS_PER_YEAR))
        return daily_factor ** business_days

    def _cdi_factor(self, asset: FixedIncomeAsset, percent_of_cdi: Decimal, as_of: date) -> Decimal:
        rates = self._index_service.get_cdi_rates(asset.investment_date, as_of - timedelta(days=1))
        if not rates:
            logger.warning(f"No CDI rates for {asset.name}; valuing at invested amount")
            return ONE

        multiplier = percent_of_cdi / HUNDRED
        factor = ONE
        for day in iter_days(asset.investment_date, as_of):
            daily_rate = rates.get(day)
            if daily_rate is not None:
                factor *= ONE + daily_rate * multiplier
        return factor

    def _ipca_factor(self, asset: FixedIncomeAsset, spread_percent: Decimal, as_of: date) -> Decimal:
        start_month = first_of_month(asset.investment_date)
        end_month = first_of_month(as_of)
        rates = self._index_service.get_ipca_rates(start_month, as_of)
        if not rates:
            logger.warning(f"No IPCA data for {asset.name}; valuing at invested amount")
            return ONE

        factor = ONE
        for month, monthly_rate in sorted(rates.items()):
            if start_month <= month < end_month:
                factor *= ONE + monthly_rate

        days = self._calendar.count_business_days(asset.investment_date, as_of)
        return factor * self._compound_annual(spread_percent, days)


class FixedIncomeService:
    """Fixed-income holdings: add, delete and value as positions."""

    def __init__(self, store: FixedIncomeStore, calculator: FixedIncomeCalculator) -> None:
        self._store = store
        self._calculator = calculator

    def list_assets(self) -> list[FixedIncomeAsset]:
        return self._store.find_all()

    def add(self, data: FixedIncomeCreate) -> FixedIncomeAsset:
        """
        Persist a new holding.

        Raises:
            ValidationError: If a holding with the same name exists
        """
        if self._store.find_by_name(data.name) is not None:
            raise ValidationError(f"Fixed-income asset '{data.name}' already exists", field="name")

        asset = FixedIncomeAsset(
            name=data.name,
            invested_amount=data.invested_amount,
            investment_date=data.investment_date,
            maturity_date=data.maturity_date,
            is_daily_liquid=data.is_daily_liquid,
            index_type=data.index_type,
            contracted_rate=data.contracted_rate,
        )
        saved = self._store.save(asset)
        logger.info(f"Fixed-income asset added: {saved.name} ({saved.index_type.value} {saved.contracted_rate})")
        return saved

    def delete(self, name: str) -> None:
        """
        Raises:
            FixedIncomeNotFoundError: If no holding has that name
        """
        if not self._store.delete_by_name(name):
            raise FixedIncomeNotFoundError(name)
        logger.info(f"Fixed-income asset deleted: {name}")

    def get_positions(self, as_of: date | None = None) -> list[AssetPosition]:
        """
        One position per holding invested on or before as_of.

        Current value is the net (after-tax) value.
        """
        positions = []
        for asset in self._store.find_all():
            if as_of is not None and asset.investment_date > as_of:
                continue
            positions.append(self.to_position(asset, as_of))
        return positions

    def to_position(self, asset: FixedIncomeAsset, as_of: date | None = None) -> AssetPosition:
        values = self._calculator.calculate_values(asset, as_of)
        invested = Decimal(asset.invested_amount)
        profit = values.net_value - invested

        profitability = ZERO
        if invested > 0:
            ratio = (profit / invested).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP)
            profitability = ratio * HUNDRED

        return AssetPosition(
            ticker=asset.name,
            name=asset.name,
            asset_type=AssetType.FIXED_INCOME,
            market=None,
            total_quantity=None,
            average_price=None,
            current_price=None,
            total_invested=invested,
            current_value=values.net_value,
            profit_or_loss=profit,
            profitability=profitability,
        )

# tests/services/test_fixed_income.py
"""
Tests for fixed-income accrual and the fixed-income service.

This module tests:
- PRE_FIXED, CDI and IPCA accrual
- Withholding tax on profit only
- Holding management (add / delete) and position building
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from carteira.models import AssetType, FixedIncomeIndex
from carteira.schemas.fixed_income import FixedIncomeCreate
from carteira.services.exceptions import ValidationError, FixedIncomeNotFoundError
from carteira.services.fixed_income import FixedIncomeCalculator, FixedIncomeService
from tests.conftest import (
    FakeIndexService,
    FixedCountCalendar,
    InMemoryFixedIncomeStore,
    WeekdayCalendar,
    make_fixed_income,
)


def _calculator(business_days: int = 252, cdi=None, ipca=None) -> FixedIncomeCalculator:
    return FixedIncomeCalculator(
        calendar=FixedCountCalendar(business_days),
        index_service=FakeIndexService(cdi=cdi, ipca=ipca),
        today=lambda: date(2025, 1, 2),
    )


# =============================================================================
# PRE-FIXED
# =============================================================================

class TestPreFixed:

    def test_one_business_year(self):
        values = _calculator(252).calculate_values(make_fixed_income(), as_of=date(2025, 1, 2))

        assert values.gross_value == Decimal("1100.00")
        # 366 calendar days -> 17.5%
        assert values.tax_amount == Decimal("17.50")
        assert values.net_value == Decimal("1082.50")

    def test_short_holding_bracket(self):
        values = _calculator(252).calculate_values(make_fixed_income(), as_of=date(2024, 3, 1))
        assert values.tax_amount == Decimal("22.50")

    def test_defaults_to_today(self):
        values = _calculator(252).calculate_values(make_fixed_income())
        assert values.gross_value == Decimal("1100.00")

    def test_no_business_days_no_growth(self):
        values = _calculator(0).calculate_values(make_fixed_income(), as_of=date(2024, 1, 3))
        assert values.gross_value == Decimal("1000.00")
        assert values.tax_amount == Decimal("0")

    def test_real_calendar_counts_weekdays(self):
        calculator = FixedIncomeCalculator(
            calendar=WeekdayCalendar(),
            index_service=FakeIndexService(),
        )
        one_week = calculator.calculate_values(make_fixed_income(), as_of=date(2024, 1, 9))
        two_weeks = calculator.calculate_values(make_fixed_income(), as_of=date(2024, 1, 16))

        assert Decimal("1000") < one_week.gross_value < two_weeks.gross_value

    @pytest.mark.parametrize("as_of", [date(2024, 1, 2), date(2023, 12, 1)])
    def test_on_or_before_investment_date(self, as_of):
        values = _calculator(252).calculate_values(make_fixed_income(), as_of=as_of)
        assert values.gross_value == values.net_value == Decimal("1000.00")
        assert values.tax_amount == Decimal("0")

    @pytest.mark.parametrize("business_days", [1, 21, 126, 252, 504])
    def test_net_never_exceeds_gross(self, business_days):
        values = _calculator(business_days).calculate_values(make_fixed_income(), as_of=date(2025, 1, 2))
        assert values.net_value <= values.gross_value
        assert values.net_value == values.gross_value - values.tax_amount

    def test_tax_uses_unrounded_profit(self):
        calculator = _calculator()
        with patch.object(calculator, "calculate_gross_value", return_value=Decimal("1000.024")):
            values = calculator.calculate_values(make_fixed_income(), as_of=date(2024, 3, 1))

        # 0.024 * 22.5% = 0.0054; rounding gross first would leave no tax
        assert values.gross_value == Decimal("1000.02")
        assert values.tax_amount == Decimal("0.01")
        assert values.net_value == Decimal("1000.01")


# =============================================================================
# CDI
# =============================================================================

class TestCdi:

    CDI = {
        date(2024, 1, 2): Decimal("0.0004"),
        date(2024, 1, 3): Decimal("0.0004"),
        date(2024, 1, 4): Decimal("0.0004"),
        date(2024, 1, 5): Decimal("0.0004"),
    }

    def test_hundred_percent_of_cdi(self):
        asset = make_fixed_income(index_type=FixedIncomeIndex.CDI, rate="100")

        values = _calculator(cdi=self.CDI).calculate_values(asset, as_of=date(2024, 1, 5))

        # three daily rates: the as-of day itself is not accrued
        assert values.gross_value == Decimal("1001.20")
        assert values.tax_amount == Decimal("0.27")
        assert values.net_value == Decimal("1000.93")

    def test_percentage_of_cdi(self):
        asset = make_fixed_income(index_type=FixedIncomeIndex.CDI, rate="110")
        values = _calculator(cdi=self.CDI).calculate_values(asset, as_of=date(2024, 1, 5))
        assert values.gross_value == Decimal("1001.32")

    def test_no_cdi_data_values_at_invested(self):
        asset = make_fixed_income(index_type=FixedIncomeIndex.CDI, rate="100")
        values = _calculator(cdi={}).calculate_values(asset, as_of=date(2024, 6, 1))
        assert values.gross_value == Decimal("1000.00")
        assert values.tax_amount == Decimal("0")


# =============================================================================
# IPCA
# =============================================================================

class TestIpca:

    IPCA = {
        date(2024, 1, 1): Decimal("0.0042"),
        date(2024, 2, 1): Decimal("0.0083"),
        date(2024, 3, 1): Decimal("0.0016"),
    }

    def test_months_before_as_of_month(self):
        asset = make_fixed_income(index_type=FixedIncomeIndex.IPCA, rate="0", invested_on=date(2024, 1, 15))

        values = _calculator(business_days=37, ipca=self.IPCA).calculate_values(asset, as_of=date(2024, 3, 10))

        # January and February only
        assert values.gross_value == Decimal("1012.53")

    def test_spread_adds_on_top(self):
        asset = make_fixed_income(index_type=FixedIncomeIndex.IPCA, rate="6", invested_on=date(2024, 1, 15))
        plain = make_fixed_income(index_type=FixedIncomeIndex.IPCA, rate="0", invested_on=date(2024, 1, 15))
        calculator = _calculator(business_days=37, ipca=self.IPCA)

        with_spread = calculator.calculate_values(asset, as_of=date(2024, 3, 10))
        without = calculator.calculate_values(plain, as_of=date(2024, 3, 10))

        assert with_spread.gross_value > without.gross_value

    def test_no_ipca_data_values_at_invested(self):
        asset = make_fixed_income(index_type=FixedIncomeIndex.IPCA, rate="6")
        values = _calculator(ipca={}).calculate_values(asset, as_of=date(2024, 6, 1))
        assert values.gross_value == Decimal("1000.00")


# =============================================================================
# SERVICE
# =============================================================================

def _create(name: str = "CDB Banco X", **overrides) -> FixedIncomeCreate:
    data = {
        "name": name,
        "invested_amount": "1000.00",
        "investment_date": date(2024, 1, 2),
        "maturity_date": date(2027, 1, 2),
        "index_type": FixedIncomeIndex.PRE_FIXED,
        "contracted_rate": "10",
    }
    data.update(overrides)
    return FixedIncomeCreate(**data)


@pytest.fixture
def fixed_income_service():
    return FixedIncomeService(InMemoryFixedIncomeStore(), _calculator(252))


class TestFixedIncomeService:

    def test_add_and_list(self, fixed_income_service):
        saved = fixed_income_service.add(_create())

        assert saved.name == "CDB Banco X"
        assert saved.invested_amount == Decimal("1000.00")
        assert [a.name for a in fixed_income_service.list_assets()] == ["CDB Banco X"]

    def test_duplicate_name_rejected(self, fixed_income_service):
        fixed_income_service.add(_create())

        with pytest.raises(ValidationError) as exc_info:
            fixed_income_service.add(_create(contracted_rate="12"))
        assert exc_info.value.field == "name"

    def test_delete(self, fixed_income_service):
        fixed_income_service.add(_create())
        fixed_income_service.delete("CDB Banco X")
        assert fixed_income_service.list_assets() == []

    def test_delete_missing(self, fixed_income_service):
        with pytest.raises(FixedIncomeNotFoundError):
            fixed_income_service.delete("LCI Nope")

    def test_position_uses_net_value(self, fixed_income_service):
        fixed_income_service.add(_create())

        [position] = fixed_income_service.get_positions(as_of=date(2025, 1, 2))

        assert position.ticker == position.name == "CDB Banco X"
        assert position.asset_type == AssetType.FIXED_INCOME
        assert position.market is None
        assert position.total_quantity is None
        assert position.average_price is None
        assert position.total_invested == Decimal("1000.00")
        assert position.current_value == Decimal("1082.50")
        assert position.profit_or_loss == Decimal("82.50")
        assert position.profitability == Decimal("8.25")

    def test_future_investments_excluded(self, fixed_income_service):
        fixed_income_service.add(_create())
        fixed_income_service.add(_create(name="LCA Banco Y", investment_date=date(2024, 6, 3)))

        positions = fixed_income_service.get_positions(as_of=date(2024, 3, 1))

        assert [p.name for p in positions] == ["CDB Banco X"]

# tests/schemas/test_transactions.py
"""
Tests for the input schemas.

This module tests:
- Ticker normalization and format validation
- Positive quantities and prices
- Market rules per asset type
- Future-date rejection
- Fixed-income cross-field validation
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from carteira.models import AssetType, Market, TransactionType, FixedIncomeIndex
from carteira.schemas import TransactionCreate, FixedIncomeCreate


def _tx_payload(**overrides) -> dict:
    payload = {
        "ticker": "petr4",
        "asset_type": AssetType.STOCK,
        "market": Market.B3,
        "transaction_type": TransactionType.BUY,
        "quantity": "10",
        "price_per_unit": "37.45",
        "transaction_date": date(2024, 1, 2),
    }
    payload.update(overrides)
    return payload


# =============================================================================
# TRANSACTION CREATE
# =============================================================================

class TestTransactionCreate:

    def test_valid_transaction(self):
        tx = TransactionCreate(**_tx_payload(other_costs="4.90"))
        assert tx.ticker == "PETR4"
        assert tx.quantity == Decimal("10")
        assert tx.other_costs == Decimal("4.90")

    def test_ticker_whitespace_trimmed(self):
        tx = TransactionCreate(**_tx_payload(ticker="  aapl  ", market=Market.US))
        assert tx.ticker == "AAPL"

    @pytest.mark.parametrize("ticker", ["BRK.B", "BTC-USD", "ITSA4"])
    def test_ticker_with_dots_and_dashes(self, ticker):
        assert TransactionCreate(**_tx_payload(ticker=ticker)).ticker == ticker

    @pytest.mark.parametrize("ticker", ["PETR 4", "$AAPL", "-ABC"])
    def test_invalid_ticker_rejected(self, ticker):
        with pytest.raises(ValidationError):
            TransactionCreate(**_tx_payload(ticker=ticker))

    @pytest.mark.parametrize("field", ["quantity", "price_per_unit"])
    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_non_positive_amounts_rejected(self, field, value):
        with pytest.raises(ValidationError):
            TransactionCreate(**_tx_payload(**{field: value}))

    def test_negative_other_costs_rejected(self):
        with pytest.raises(ValidationError):
            TransactionCreate(**_tx_payload(other_costs="-0.01"))

    def test_future_date_rejected(self):
        with pytest.raises(ValidationError, match="future"):
            TransactionCreate(**_tx_payload(transaction_date=date.today() + timedelta(days=1)))

    def test_today_accepted(self):
        assert TransactionCreate(**_tx_payload(transaction_date=date.today())).transaction_date == date.today()


class TestMarketRules:

    def test_stock_requires_market(self):
        with pytest.raises(ValidationError, match="market is required"):
            TransactionCreate(**_tx_payload(market=None))

    def test_crypto_market_dropped(self):
        tx = TransactionCreate(**_tx_payload(ticker="BTC", asset_type=AssetType.CRYPTO, market=Market.US))
        assert tx.market is None

    def test_fixed_income_not_a_transaction(self):
        with pytest.raises(ValidationError, match="Fixed-income"):
            TransactionCreate(**_tx_payload(asset_type=AssetType.FIXED_INCOME))


# =============================================================================
# FIXED INCOME CREATE
# =============================================================================

class TestFixedIncomeCreate:

    def _payload(self, **overrides) -> dict:
        payload = {
            "name": "CDB Banco X 2027",
            "invested_amount": "1000.00",
            "investment_date": date(2024, 1, 2),
            "maturity_date": date(2027, 1, 2),
            "index_type": FixedIncomeIndex.CDI,
            "contracted_rate": "110",
        }
        payload.update(overrides)
        return payload

    def test_valid(self):
        asset = FixedIncomeCreate(**self._payload())
        assert asset.invested_amount == Decimal("1000.00")
        assert asset.is_daily_liquid is False

    def test_maturity_before_investment_rejected(self):
        with pytest.raises(ValidationError, match="maturity_date"):
            FixedIncomeCreate(**self._payload(maturity_date=date(2023, 12, 31)))

    def test_zero_invested_rejected(self):
        with pytest.raises(ValidationError):
            FixedIncomeCreate(**self._payload(invested_amount="0"))

    def test_three_decimal_amount_rejected(self):
        with pytest.raises(ValidationError):
            FixedIncomeCreate(**self._payload(invested_amount="10.001"))

    def test_future_investment_rejected(self):
        future = date.today() + timedelta(days=3)
        with pytest.raises(ValidationError):
            FixedIncomeCreate(**self._payload(investment_date=future, maturity_date=future))

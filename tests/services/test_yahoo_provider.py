# tests/services/test_yahoo_provider.py
"""
Tests for the yfinance-backed YahooFinanceProvider.

Note: These tests mock the yfinance library to avoid actual API calls.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pandas as pd
import pytest

from carteira.models import AssetType, Market
from carteira.services.market_data import AssetToFetch, PriceData, YahooFinanceProvider

PETR4 = AssetToFetch("PETR4", AssetType.STOCK, Market.B3)
IVV = AssetToFetch("IVV", AssetType.ETF, Market.US)
BTC = AssetToFetch("BTC", AssetType.CRYPTO)


def _history_frame(rows: list[tuple[str, float]]) -> pd.DataFrame:
    index = pd.DatetimeIndex([pd.Timestamp(d) for d, _ in rows])
    return pd.DataFrame({"Close": [c for _, c in rows]}, index=index)


@pytest.fixture
def provider() -> YahooFinanceProvider:
    p = YahooFinanceProvider()
    p.RETRY_MIN_WAIT = 0
    p.RETRY_MAX_WAIT = 0
    return p


# =============================================================================
# PROVIDER INITIALIZATION
# =============================================================================

class TestYahooProviderInit:

    def test_provider_name(self, provider):
        assert provider.name == "yahoo"

    def test_supports_stocks_and_etfs_only(self, provider):
        assert provider.supports(AssetType.STOCK)
        assert provider.supports(AssetType.ETF)
        assert not provider.supports(AssetType.CRYPTO)
        assert not provider.supports(AssetType.FIXED_INCOME)

    def test_build_symbol(self, provider):
        assert provider._build_yahoo_symbol(PETR4) == "PETR4.SA"
        assert provider._build_yahoo_symbol(IVV) == "IVV"


# =============================================================================
# CURRENT PRICE
# =============================================================================

class TestCurrentPrice:

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_last_close(self, mock_ticker, provider):
        mock_ticker.return_value.history.return_value = _history_frame([
            ("2024-01-04", 36.90),
            ("2024-01-05", 37.45),
        ])

        assert provider.fetch_prices([PETR4]) == [PriceData("PETR4", Decimal("37.45000000"))]
        mock_ticker.assert_called_once_with("PETR4.SA")

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_trailing_nan_skipped(self, mock_ticker, provider):
        mock_ticker.return_value.history.return_value = _history_frame([
            ("2024-01-04", 470.1),
            ("2024-01-05", float("nan")),
        ])
        assert provider.fetch_prices([IVV])[0].price == Decimal("470.1")

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_empty_history_is_no_price(self, mock_ticker, provider):
        mock_ticker.return_value.history.return_value = pd.DataFrame()
        assert provider.fetch_prices([IVV]) == []

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_crypto_not_requested(self, mock_ticker, provider):
        assert provider.fetch_prices([BTC]) == []
        mock_ticker.assert_not_called()


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================

class TestErrorHandling:

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_delisted_not_retried(self, mock_ticker, provider):
        mock_ticker.return_value.history.side_effect = Exception("PETR4.SA: No data found, symbol may be delisted")

        assert provider.fetch_prices([PETR4]) == []
        assert mock_ticker.return_value.history.call_count == 1

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_network_error_retried(self, mock_ticker, provider):
        mock_ticker.return_value.history.side_effect = [
            Exception("Connection reset by peer"),
            _history_frame([("2024-01-05", 470.1)]),
        ]

        assert provider.fetch_prices([IVV])[0].price == Decimal("470.1")
        assert mock_ticker.return_value.history.call_count == 2

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_rate_limit_exhausts_attempts(self, mock_ticker, provider):
        mock_ticker.return_value.history.side_effect = Exception("Too Many Requests. Rate limited.")

        assert provider.fetch_prices([IVV]) == []
        assert mock_ticker.return_value.history.call_count == provider.MAX_RETRY_ATTEMPTS


# =============================================================================
# HISTORICAL PRICE
# =============================================================================

class TestHistoricalPrice:

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_close_on_or_before_date(self, mock_ticker, provider):
        mock_ticker.return_value.history.return_value = _history_frame([
            ("2024-01-04", 36.90),
            ("2024-01-05", 37.45),
            ("2024-01-08", 38.00),
        ])

        price = provider.fetch_historical_price(PETR4, date(2024, 1, 7))

        assert price == Decimal("37.45")
        kwargs = mock_ticker.return_value.history.call_args.kwargs
        assert kwargs["start"] == "2023-12-28"
        assert kwargs["end"] == "2024-01-08"

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_no_rows_is_none(self, mock_ticker, provider):
        mock_ticker.return_value.history.return_value = pd.DataFrame()
        assert provider.fetch_historical_price(PETR4, date(2024, 1, 7)) is None

    @patch("carteira.services.market_data.yahoo.yf.Ticker")
    def test_only_later_rows_is_none(self, mock_ticker, provider):
        mock_ticker.return_value.history.return_value = _history_frame([("2024-01-08", 38.0)])
        assert provider.fetch_historical_price(PETR4, date(2024, 1, 7)) is None

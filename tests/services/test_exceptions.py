# tests/services/test_exceptions.py
"""
Tests for the service exception hierarchy.
"""

import pytest

from carteira.services.exceptions import (
    RETRYABLE_ERRORS,
    ExchangeRateError,
    ExchangeRateProviderError,
    FixedIncomeNotFoundError,
    MarketDataError,
    NotFoundError,
    ProviderUnavailableError,
    RateLimitError,
    ServiceError,
    TickerNotFoundError,
    TransactionNotFoundError,
    ValidationError,
)


class TestHierarchy:

    @pytest.mark.parametrize("error", [
        ValidationError("bad", field="quantity"),
        TransactionNotFoundError(7),
        FixedIncomeNotFoundError("CDB XP"),
        ProviderUnavailableError("yahoo", "timeout"),
        RateLimitError("coingecko"),
        TickerNotFoundError("XYZ", None, "yahoo"),
        ExchangeRateProviderError("yahoo-fx", "HTTP 500"),
    ])
    def test_all_are_service_errors(self, error):
        assert isinstance(error, ServiceError)
        assert error.message == str(error)

    def test_not_found_carries_key(self):
        error = FixedIncomeNotFoundError("CDB XP")
        assert isinstance(error, NotFoundError)
        assert error.key == "CDB XP"
        assert "Fixed-income asset" in str(error)

    def test_validation_field(self):
        assert ValidationError("duplicate", field="name").field == "name"

    def test_exchange_rate_provider_error(self):
        error = ExchangeRateProviderError("yahoo-fx", "HTTP 500")
        assert isinstance(error, ExchangeRateError)
        assert (error.provider, error.reason) == ("yahoo-fx", "HTTP 500")


class TestMarketDataErrors:

    def test_provider_attribute(self):
        for error in (
                ProviderUnavailableError("yahoo", "timeout"),
                RateLimitError("yahoo", retry_after=30),
                TickerNotFoundError("PETR4", "BR", "yahoo"),
        ):
            assert isinstance(error, MarketDataError)
            assert error.provider == "yahoo"

    def test_rate_limit_hint_in_message(self):
        assert "30s" in str(RateLimitError("cmc", retry_after=30))
        assert "retry after" not in str(RateLimitError("cmc"))

    def test_ticker_not_found_mentions_market(self):
        error = TickerNotFoundError("AAPL", "US", "scraper")
        assert (error.ticker, error.market) == ("AAPL", "US")
        assert "AAPL (US)" in str(error)

    def test_only_transient_errors_are_retryable(self):
        assert ProviderUnavailableError in RETRYABLE_ERRORS
        assert RateLimitError in RETRYABLE_ERRORS
        assert TickerNotFoundError not in RETRYABLE_ERRORS

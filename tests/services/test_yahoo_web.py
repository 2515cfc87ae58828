# tests/services/test_yahoo_web.py
"""
Tests for the Yahoo page and chart parsing helpers.
"""

from datetime import date
from decimal import Decimal

import pytest

from carteira.services.yahoo_web import (
    parse_price_text,
    parse_quote_page_price,
    parse_chart_closes,
    chart_market_price,
    close_on_or_before,
)

from tests.conftest import chart_payload, QUOTE_PAGE


# =============================================================================
# NUMBER PARSING
# =============================================================================

class TestParsePriceText:

    @pytest.mark.parametrize("text,expected", [
        ("37.45", "37.45"),
        ("1,234.56", "1234.56"),
        ("1.234,56", "1234.56"),
        ("37,45", "37.45"),
        ("1,234,567", "1234567"),
        ("1.234.567", "1234567"),
        ("$65,000.10", "65000.10"),
        ("R$ 5,1234", "5.1234"),
    ])
    def test_separator_conventions(self, text, expected):
        assert parse_price_text(text) == Decimal(expected)

    @pytest.mark.parametrize("text", ["", "N/A", "--"])
    def test_no_number_raises(self, text):
        with pytest.raises(ValueError):
            parse_price_text(text)


# =============================================================================
# QUOTE PAGE
# =============================================================================

class TestParseQuotePage:

    def test_reads_price_element(self):
        assert parse_quote_page_price(QUOTE_PAGE.format(price="37.45")) == Decimal("37.45")

    def test_thousands_separator(self):
        assert parse_quote_page_price(QUOTE_PAGE.format(price="5,210.33")) == Decimal("5210.33")

    def test_missing_element_raises(self):
        with pytest.raises(ValueError, match="not found"):
            parse_quote_page_price("<html><body><p>Consent required</p></body></html>")


# =============================================================================
# CHART API
# =============================================================================

class TestChartParsing:

    def test_closes_in_order_skipping_nulls(self):
        payload = chart_payload([
            (date(2024, 1, 2), 4.85),
            (date(2024, 1, 3), None),
            (date(2024, 1, 4), 4.91),
        ])
        assert parse_chart_closes(payload) == [
            (date(2024, 1, 2), Decimal("4.85")),
            (date(2024, 1, 4), Decimal("4.91")),
        ]

    def test_no_result_raises(self):
        with pytest.raises(ValueError):
            parse_chart_closes({"chart": {"result": None, "error": {"code": "Not Found"}}})

    @pytest.mark.parametrize("payload", [None, [], "chart", {"chart": ["result"]}])
    def test_non_object_payload_raises_value_error(self, payload):
        with pytest.raises(ValueError, match="not a chart response"):
            parse_chart_closes(payload)

    @pytest.mark.parametrize("payload", [None, [], 5])
    def test_market_price_non_object_raises_value_error(self, payload):
        with pytest.raises(ValueError):
            chart_market_price(payload)

    def test_market_price(self):
        assert chart_market_price(chart_payload([], market_price=5.1234)) == Decimal("5.1234")
        assert chart_market_price(chart_payload([])) is None
        assert chart_market_price({}) is None


class TestCloseOnOrBefore:

    SAMPLES = [
        (date(2024, 1, 4), Decimal("4.91")),
        (date(2024, 1, 5), Decimal("4.89")),  # Friday
        (date(2024, 1, 8), Decimal("4.90")),
    ]

    def test_exact_date(self):
        assert close_on_or_before(self.SAMPLES, date(2024, 1, 8)) == Decimal("4.90")

    def test_weekend_uses_friday(self):
        assert close_on_or_before(self.SAMPLES, date(2024, 1, 7)) == Decimal("4.89")

    def test_before_first_sample(self):
        assert close_on_or_before(self.SAMPLES, date(2024, 1, 1)) is None

# carteira/services/constants.py
"""
Centralized constants for the portfolio services.

Usage:
    from carteira.services.constants import (
        BUSINESS_DAYS_PER_YEAR,
        MONEY_QUANTUM,
    )
"""

from decimal import Decimal


# =============================================================================
# FINANCIAL CALENDAR
# =============================================================================

# Brazilian fixed-income convention: annual rates compound over 252 business days
BUSINESS_DAYS_PER_YEAR: int = 252


# =============================================================================
# DECIMAL PRECISION
# =============================================================================

# Money amounts (tax, fixed-income values)
MONEY_QUANTUM: Decimal = Decimal("0.01")

# Average cost price reported on positions
PRICE_QUANTUM: Decimal = Decimal("0.00000001")

# Running average used while walking SELL transactions
AVERAGE_COST_QUANTUM: Decimal = Decimal("0.0000000000000001")

# Ratio quantum for profitability and allocation percentages (x100 afterwards)
RATIO_QUANTUM: Decimal = Decimal("0.0001")

# Daily index rates (CDI / IPCA percent values divided by 100)
INDEX_RATE_QUANTUM: Decimal = Decimal("0.00000001")

ZERO: Decimal = Decimal("0")
ONE: Decimal = Decimal("1")
HUNDRED: Decimal = Decimal("100")


# =============================================================================
# WITHHOLDING TAX BRACKETS (fixed income)
# =============================================================================

# (inclusive upper bound in calendar days, rate); last bracket has no bound
INCOME_TAX_BRACKETS: tuple[tuple[int, Decimal], ...] = (
    (180, Decimal("0.225")),
    (360, Decimal("0.200")),
    (720, Decimal("0.175")),
)
INCOME_TAX_FLOOR_RATE: Decimal = Decimal("0.150")


# =============================================================================
# EXTERNAL SOURCES
# =============================================================================

YAHOO_QUOTE_URL = "https://finance.yahoo.com/quote/{symbol}/"
YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
YAHOO_SEARCH_URL = "https://query1.finance.yahoo.com/v1/finance/search"
YAHOO_PRICE_SELECTOR = '[data-testid="qsp-price"]'
YAHOO_HISTORY_RANGE = "5y"

# Yahoo suffix for B3 tickers (PETR4 -> PETR4.SA)
B3_YAHOO_SUFFIX = ".SA"

COINMARKETCAP_MAP_URL = "https://pro-api.coinmarketcap.com/v1/cryptocurrency/map"
COINMARKETCAP_CURRENCY_URL = "https://coinmarketcap.com/currencies/{slug}/"

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"

BRASILAPI_HOLIDAYS_URL = "https://brasilapi.com.br/api/feriados/v1/{year}"

BCB_SERIES_URL = "https://api.bcb.gov.br/dados/serie/bcdata.sgs.{code}/dados"
CDI_SERIES_CODE: int = 12
IPCA_SERIES_CODE: int = 433

# Search result cap per provider
SEARCH_LIMIT: int = 10

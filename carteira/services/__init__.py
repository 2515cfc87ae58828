# carteira/services/__init__.py
"""
Service layer for business logic.

Services have no knowledge of any outer surface (HTTP, push channel).
They raise domain exceptions and receive their stores and collaborators
through the constructor, so tests can pass fakes.

Usage:
    from carteira.services import PortfolioService
    from carteira.services import TransactionService
    from carteira.services import MarketDataService
    from carteira.services import (
        ValidationError,
        TransactionNotFoundError,
    )

Architecture:
    services/
    ├── __init__.py                # This file - main exports
    ├── exceptions.py              # Domain exceptions
    ├── constants.py               # Scales, tax brackets, endpoints
    ├── protocols.py               # Collaborator interfaces (Protocol classes)
    ├── http.py                    # Shared httpx client factory
    ├── calendar_service.py        # Business days and holidays
    ├── index_service.py           # CDI / IPCA series
    ├── exchange_rate_service.py   # USD/BRL rates
    ├── tax_service.py             # Fixed-income withholding brackets
    ├── yahoo_web.py               # Yahoo page / chart parsing helpers
    ├── fixed_income.py            # Fixed-income accrual and positions
    ├── transaction_service.py     # Buy/sell recording
    ├── market_data/               # Providers, orchestrator, cache, scheduler
    └── portfolio/                 # Calculator, dashboard aggregation, views
"""

from carteira.services.calendar_service import BusinessDayService
from carteira.services.exchange_rate_service import ExchangeRateService
from carteira.services.fixed_income import FixedIncomeCalculator, FixedIncomeService
from carteira.services.index_service import FinancialIndexService
from carteira.services.market_data import MarketDataService
from carteira.services.portfolio import PortfolioCalculator, PortfolioService
from carteira.services.transaction_service import TransactionService

from carteira.services.exceptions import (
    ServiceError,
    ValidationError,
    NotFoundError,
    TransactionNotFoundError,
    FixedIncomeNotFoundError,
    MarketDataError,
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
    RETRYABLE_ERRORS,
    ExchangeRateError,
    ExchangeRateProviderError,
)

__all__ = [
    # Services
    "BusinessDayService",
    "ExchangeRateService",
    "FinancialIndexService",
    "FixedIncomeCalculator",
    "FixedIncomeService",
    "MarketDataService",
    "PortfolioCalculator",
    "PortfolioService",
    "TransactionService",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "TransactionNotFoundError",
    "FixedIncomeNotFoundError",
    "MarketDataError",
    "ProviderUnavailableError",
    "RateLimitError",
    "TickerNotFoundError",
    "RETRYABLE_ERRORS",
    "ExchangeRateError",
    "ExchangeRateProviderError",
]

# carteira/bootstrap.py
"""
Application wiring.

Builds every service once, with explicit collaborators, and owns their
lifecycle. The provider chain is declared here in priority order:

    1. YahooScraperProvider   (stocks, ETFs, crypto; quote page + chart API)
    2. CoinMarketCapProvider  (crypto; currency pages)
    3. YahooFinanceProvider   (stocks, ETFs; yfinance)
    4. CoinGeckoProvider      (crypto; /simple/price)

Usage:
    from carteira.bootstrap import build_application

    app = build_application()
    app.start()
    try:
        app.portfolio.get_dashboard()
    finally:
        app.stop()
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import httpx
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from carteira.config import Settings, settings as default_settings
from carteira.database import create_db_engine, create_session_factory, init_db
from carteira.repositories import TransactionRepository, FixedIncomeRepository
from carteira.services.calendar_service import BusinessDayService
from carteira.services.exchange_rate_service import ExchangeRateService
from carteira.services.fixed_income import FixedIncomeCalculator, FixedIncomeService
from carteira.services.http import build_http_client
from carteira.services.index_service import FinancialIndexService
from carteira.services.market_data import (
    MarketDataProvider,
    MarketDataService,
    YahooScraperProvider,
    CoinMarketCapProvider,
    YahooFinanceProvider,
    CoinGeckoProvider,
)
from carteira.services.portfolio import PortfolioCalculator, PortfolioService
from carteira.services.protocols import NotificationSink
from carteira.services.transaction_service import TransactionService
from carteira.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class Application:
    """Wired services plus the resources they share."""

    settings: Settings
    engine: Engine
    session_factory: sessionmaker[Session]
    http_client: httpx.Client
    scrape_executor: ThreadPoolExecutor
    transactions_repo: TransactionRepository
    fixed_income_repo: FixedIncomeRepository
    calendar: BusinessDayService
    indexes: FinancialIndexService
    exchange_rates: ExchangeRateService
    market_data: MarketDataService
    fixed_income: FixedIncomeService
    calculator: PortfolioCalculator
    portfolio: PortfolioService
    transactions: TransactionService

    def start(self, start_scheduler: bool = True) -> None:
        """
        Startup sequence.

        Holiday and provider-map failures are logged by the services
        themselves and never stop startup.
        """
        setup_logging(level=self.settings.log_level, log_format=self.settings.log_format)
        init_db(self.engine)

        years = self.settings.holiday_years
        loaded = self.calendar.load_holidays(years)
        logger.info(f"Holiday calendar: {loaded}/{len(years)} year(s) loaded")

        self.market_data.initialize_providers()
        if start_scheduler:
            self.market_data.start_scheduler(
                initial_delay=self.settings.price_refresh_initial_delay_seconds,
                interval=self.settings.price_refresh_interval_seconds,
            )
        logger.info(f"{self.settings.app_name} started ({self.settings.environment})")

    def stop(self) -> None:
        """Stop background work, then release pools and connections."""
        self.market_data.shutdown(timeout=self.settings.scheduler_shutdown_timeout_seconds)
        self.scrape_executor.shutdown(wait=True, cancel_futures=True)
        self.exchange_rates.close()
        self.http_client.close()
        self.engine.dispose()
        logger.info(f"{self.settings.app_name} stopped")


def build_providers(
        client: httpx.Client,
        executor: ThreadPoolExecutor,
        config: Settings,
) -> list[MarketDataProvider]:
    """Provider chain in fallback priority order."""
    return [
        YahooScraperProvider(client=client, executor=executor),
        CoinMarketCapProvider(client=client, executor=executor, api_key=config.coinmarketcap_api_key),
        YahooFinanceProvider(),
        CoinGeckoProvider(client=client, vs_currency=config.foreign_currency),
    ]


def build_application(
        config: Settings | None = None,
        notification_sink: NotificationSink | None = None,
) -> Application:
    """
    Wire all services. Performs no I/O; call Application.start() for that.

    Args:
        config: Settings to use (default: the module-level settings)
        notification_sink: Receives price updates (e.g. a push channel)
    """
    config = config or default_settings

    engine = create_db_engine(config.database_url)
    session_factory = create_session_factory(engine)
    transactions_repo = TransactionRepository(session_factory)
    fixed_income_repo = FixedIncomeRepository(session_factory)

    http_client = build_http_client(
        timeout=config.provider_timeout_seconds,
        user_agent=config.http_user_agent,
    )
    scrape_executor = ThreadPoolExecutor(
        max_workers=config.scrape_max_workers,
        thread_name_prefix="scrape",
    )

    calendar = BusinessDayService(client=http_client)
    indexes = FinancialIndexService(client=http_client)
    exchange_rates = ExchangeRateService(
        client=build_http_client(timeout=config.provider_timeout_seconds, user_agent=config.http_user_agent),
        base_currency=config.foreign_currency,
        quote_currency=config.home_currency,
    )

    market_data = MarketDataService(
        build_providers(http_client, scrape_executor, config),
        transaction_store=transactions_repo,
        notification_sink=notification_sink,
    )

    fixed_income = FixedIncomeService(fixed_income_repo, FixedIncomeCalculator(calendar, indexes))
    calculator = PortfolioCalculator(
        market_data,
        exchange_rates,
        fixed_income_service=fixed_income,
        convert_crypto_invested_amount=config.convert_crypto_invested_amount,
    )

    return Application(
        settings=config,
        engine=engine,
        session_factory=session_factory,
        http_client=http_client,
        scrape_executor=scrape_executor,
        transactions_repo=transactions_repo,
        fixed_income_repo=fixed_income_repo,
        calendar=calendar,
        indexes=indexes,
        exchange_rates=exchange_rates,
        market_data=market_data,
        fixed_income=fixed_income,
        calculator=calculator,
        portfolio=PortfolioService(transactions_repo, calculator),
        transactions=TransactionService(transactions_repo, market_data),
    )

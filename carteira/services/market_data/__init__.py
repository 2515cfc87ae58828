# carteira/services/market_data/__init__.py
"""
Market data providers and the orchestrator that chains them.

Usage:
    from carteira.services.market_data import (
        MarketDataService,
        AssetToFetch,
        YahooScraperProvider,
    )
"""

from carteira.services.market_data.base import (
    MarketDataProvider,
    AssetToFetch,
    PriceData,
    AssetSearchResult,
)
from carteira.services.market_data.cache import PriceCache
from carteira.services.market_data.coingecko import CoinGeckoProvider
from carteira.services.market_data.coinmarketcap import CoinMarketCapProvider
from carteira.services.market_data.scheduler import PriceRefreshScheduler
from carteira.services.market_data.service import MarketDataService, PRICE_NOT_FOUND
from carteira.services.market_data.yahoo import YahooFinanceProvider
from carteira.services.market_data.yahoo_scraper import YahooScraperProvider

__all__ = [
    # Base
    "MarketDataProvider",
    "AssetToFetch",
    "PriceData",
    "AssetSearchResult",
    # Providers
    "YahooScraperProvider",
    "CoinMarketCapProvider",
    "YahooFinanceProvider",
    "CoinGeckoProvider",
    # Orchestration
    "MarketDataService",
    "PriceCache",
    "PriceRefreshScheduler",
    "PRICE_NOT_FOUND",
]

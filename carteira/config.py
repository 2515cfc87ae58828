# carteira/config.py
"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables with validation:
- ENVIRONMENT: Runtime mode (development, test, production)
- DATABASE_URL: SQLAlchemy connection string (SQLite file by default)
- HOME_CURRENCY / FOREIGN_CURRENCY: Currency pair used for conversion
- PROVIDER_*: Timeouts and worker pool sizes for market data providers
- PRICE_REFRESH_*: Background price refresh schedule

Environment-specific behavior:
- test: Uses an in-memory SQLite database unless DATABASE_URL is set
- development / production: Uses DATABASE_URL or the local SQLite file

Usage:
    from carteira.config import settings

    timeout = settings.provider_timeout_seconds
"""
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"
_DEFAULT_DATABASE_URL = f"sqlite:///{_PROJECT_ROOT / 'carteira.db'}"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables:
        - ENVIRONMENT: Runtime environment (development, test, production)
        - DATABASE_URL: Connection string (default: local SQLite file)
        - LOG_LEVEL: Logging level (default: "INFO")
        - LOG_FORMAT: "text" or "json" (default: "text")
        - COINMARKETCAP_API_KEY: Key for the CoinMarketCap ID map (optional)
    """

    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Runtime environment (development, test, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format"
    )

    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy connection string"
    )
    debug: bool = False

    app_name: str = "Carteira"

    # =========================================================================
    # CURRENCIES
    # =========================================================================
    home_currency: str = Field(
        default="BRL",
        description="Currency all positions are reported in"
    )
    foreign_currency: str = Field(
        default="USD",
        description="Quote currency of US-listed stocks and crypto prices"
    )
    convert_crypto_invested_amount: bool = Field(
        default=False,
        description="Convert crypto cost basis from the foreign currency to the home currency"
    )

    # =========================================================================
    # MARKET DATA PROVIDERS
    # =========================================================================
    coinmarketcap_api_key: str | None = Field(
        default=None,
        description="CoinMarketCap Pro API key used to load the ticker -> slug map"
    )
    provider_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-call timeout for external market data requests"
    )
    scrape_max_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Worker pool size for page scraping"
    )
    http_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        description="User-Agent header sent to scraped sites"
    )

    # =========================================================================
    # BACKGROUND REFRESH
    # =========================================================================
    price_refresh_initial_delay_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Delay before the first scheduled price refresh"
    )
    price_refresh_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Interval between scheduled price refreshes"
    )
    scheduler_shutdown_timeout_seconds: float = Field(
        default=5.0,
        ge=0,
        description="How long to wait for the scheduler thread on shutdown"
    )
    refresh_max_workers: int = Field(
        default=2,
        ge=1,
        le=16,
        description="Worker pool size for background refresh jobs"
    )

    # =========================================================================
    # CALENDAR / VIEWS
    # =========================================================================
    holiday_start_year: int = Field(default=2024, ge=2000, le=2100)
    holiday_end_year: int = Field(default=2030, ge=2000, le=2100)
    evolution_months: int = Field(
        default=12,
        ge=1,
        le=120,
        description="Number of monthly snapshots in the evolution series"
    )

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """
        Validate cross-field configuration.

        Rules:
        - test: defaults to an in-memory SQLite database
        - otherwise: defaults to the local SQLite file
        - holiday window must not be inverted
        """
        if self.holiday_start_year > self.holiday_end_year:
            raise ValueError(
                f"HOLIDAY_START_YEAR ({self.holiday_start_year}) must not be after "
                f"HOLIDAY_END_YEAR ({self.holiday_end_year})"
            )

        if self.database_url is None:
            url = "sqlite:///:memory:" if self.environment == "test" else _DEFAULT_DATABASE_URL
            object.__setattr__(self, "database_url", url)

        return self

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.database_url is not None and self.database_url.lower().startswith("sqlite://")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def holiday_years(self) -> range:
        """Years whose holidays are loaded at startup (inclusive window)."""
        return range(self.holiday_start_year, self.holiday_end_year + 1)


# Create single instance
settings = Settings()

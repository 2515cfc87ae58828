# carteira/services/exceptions.py
"""
Domain exceptions raised by the services.

Across the provider / orchestrator boundary a missing price is "no result",
never an exception: providers raise MarketDataError subclasses internally,
the retry wrapper re-attempts RETRYABLE_ERRORS, and the per-item wrapper
logs whatever is left and moves on.

    ServiceError
      ValidationError
      NotFoundError
        TransactionNotFoundError
        FixedIncomeNotFoundError
      MarketDataError
        ProviderUnavailableError
        RateLimitError
        TickerNotFoundError
      ExchangeRateError
        ExchangeRateProviderError
"""


class ServiceError(Exception):
    """Root of every error a service raises on purpose."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """
    A stateful domain rule rejected the input (duplicate fixed-income
    name, non-positive quantity on update, ...). Shape and range checks
    live in the Pydantic schemas.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(ServiceError):
    resource = "Resource"

    def __init__(self, key: int | str) -> None:
        super().__init__(f"{self.resource} {key!r} not found")
        self.key = key


class TransactionNotFoundError(NotFoundError):
    resource = "Transaction"


class FixedIncomeNotFoundError(NotFoundError):
    resource = "Fixed-income asset"


class MarketDataError(ServiceError):
    """A quote source failed. ``provider`` names the source."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderUnavailableError(MarketDataError):
    """Transport failure, timeout or 5xx."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider} unavailable: {reason}", provider=provider)
        self.reason = reason


class RateLimitError(MarketDataError):
    """HTTP 429. ``retry_after`` is the server hint in seconds, if sent."""

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        hint = f", retry after {retry_after}s" if retry_after else ""
        super().__init__(f"{provider} rate limited{hint}", provider=provider)
        self.retry_after = retry_after


class TickerNotFoundError(MarketDataError):
    """The source does not know the symbol. Never retried."""

    def __init__(self, ticker: str, market: str | None, provider: str) -> None:
        label = f"{ticker} ({market})" if market else ticker
        super().__init__(f"{provider} has no quote for {label}", provider=provider)
        self.ticker = ticker
        self.market = market


# Failures worth another attempt with backoff
RETRYABLE_ERRORS: tuple[type[MarketDataError], ...] = (ProviderUnavailableError, RateLimitError)


class ExchangeRateError(ServiceError):
    pass


class ExchangeRateProviderError(ExchangeRateError):
    """
    The rate source failed. Raised inside ExchangeRateService only; its
    public lookups catch it and return None.
    """

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider} rate lookup failed: {reason}")
        self.provider = provider
        self.reason = reason


__all__ = [
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

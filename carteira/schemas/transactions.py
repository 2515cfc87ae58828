# carteira/schemas/transactions.py
"""
Input schema for recording a buy or sell.

Financial fields use Decimal for precision. The ticker is normalized to
uppercase. Market is required for stocks and ETFs and dropped for crypto.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from carteira.models import AssetType, Market, TransactionType
from carteira.schemas.validators import validate_ticker, validate_not_future


class TransactionCreate(BaseModel):
    """Schema for creating a transaction."""

    model_config = ConfigDict(str_strip_whitespace=True)

    ticker: str = Field(
        ...,
        min_length=1,
        max_length=20,
        description="Asset symbol (normalized to uppercase)",
        examples=["PETR4", "AAPL", "BTC"]
    )

    asset_type: AssetType = Field(..., description="STOCK, ETF or CRYPTO")

    market: Market | None = Field(
        default=None,
        description="B3 or US; must be omitted (or is ignored) for crypto"
    )

    transaction_type: TransactionType = Field(..., description="BUY or SELL")

    quantity: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Units traded (must be positive)",
        examples=["10", "0.005"]
    )

    price_per_unit: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Price per unit in the asset's quote currency",
        examples=["37.45", "65000"]
    )

    other_costs: Decimal | None = Field(
        default=None,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Brokerage and fees, added to the cost basis of a BUY",
        examples=["4.90"]
    )

    transaction_date: date = Field(..., description="Trade date (not in the future)")

    # =========================================================================
    # FIELD VALIDATORS
    # =========================================================================

    @field_validator('ticker')
    @classmethod
    def validate_and_normalize_ticker(cls, v: str) -> str:
        return validate_ticker(v)

    @field_validator('transaction_date')
    @classmethod
    def validate_date_not_in_future(cls, v: date) -> date:
        """Prevent recording transactions that haven't happened yet."""
        return validate_not_future(v, "Transaction date")

    @model_validator(mode="after")
    def validate_market_for_asset_type(self) -> "TransactionCreate":
        if self.asset_type == AssetType.FIXED_INCOME:
            raise ValueError("Fixed-income holdings are recorded as fixed-income assets, not transactions")
        if self.asset_type == AssetType.CRYPTO:
            self.market = None
        elif self.market is None:
            raise ValueError(f"market is required for {self.asset_type.value}")
        return self

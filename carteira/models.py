# carteira/models.py
import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Enum, Numeric, Boolean, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class AssetType(str, enum.Enum):
    STOCK = "STOCK"
    ETF = "ETF"
    CRYPTO = "CRYPTO"
    FIXED_INCOME = "FIXED_INCOME"


class Market(str, enum.Enum):
    """Listing market. Crypto has none."""
    B3 = "B3"  # domestic (BRL)
    US = "US"  # foreign (USD)


class TransactionType(str, enum.Enum):
    BUY = "BUY"
    SELL = "SELL"


class FixedIncomeIndex(str, enum.Enum):
    PRE_FIXED = "PRE_FIXED"
    CDI = "CDI"
    IPCA = "IPCA"


class Transaction(Base):
    """
    One buy or sell event. Immutable after creation.

    Ticker + asset_type + market identifies the position the transaction
    belongs to: PETR4 on B3 and a US-listed ticker of the same name are
    different holdings.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_ticker_date", "ticker", "transaction_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ticker: Mapped[str] = mapped_column(String(32), index=True)
    asset_type: Mapped[AssetType] = mapped_column(Enum(AssetType))
    market: Mapped[Market | None] = mapped_column(Enum(Market), nullable=True)
    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType))

    # Numeric(18, 8) covers fractional crypto quantities
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    other_costs: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)

    transaction_date: Mapped[date] = mapped_column(Date, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_type.value} {self.quantity} {self.ticker} "
            f"@ {self.price_per_unit} on {self.transaction_date}>"
        )


class FixedIncomeAsset(Base):
    """
    A fixed-income holding, identified by its unique name.

    contracted_rate meaning depends on index_type:
    - PRE_FIXED: annual rate in percent (10 = 10% a.a.)
    - CDI: percentage of the CDI (110 = 110% of CDI)
    - IPCA: real annual spread over IPCA in percent (6 = IPCA + 6%)
    """
    __tablename__ = "fixed_income_assets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    invested_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    investment_date: Mapped[date] = mapped_column(Date)
    maturity_date: Mapped[date] = mapped_column(Date)
    is_daily_liquid: Mapped[bool] = mapped_column(Boolean, default=False)
    index_type: Mapped[FixedIncomeIndex] = mapped_column(Enum(FixedIncomeIndex))
    contracted_rate: Mapped[Decimal] = mapped_column(Numeric(18, 4))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return f"<FixedIncomeAsset {self.name} {self.index_type.value} {self.contracted_rate}>"

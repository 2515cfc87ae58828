# carteira/services/transaction_service.py
"""
Recording and removing buy/sell transactions.

After a successful add, a background price refresh is scheduled for the
ticker so the dashboard has a price by the time it is next read.
"""

import logging
from concurrent.futures import Future
from decimal import Decimal

from carteira.models import Transaction, TransactionType
from carteira.schemas.transactions import TransactionCreate
from carteira.services.constants import ZERO
from carteira.services.exceptions import ValidationError, TransactionNotFoundError
from carteira.services.market_data.service import MarketDataService
from carteira.services.portfolio.calculator import PortfolioCalculator
from carteira.services.protocols import TransactionStore

logger = logging.getLogger(__name__)


class TransactionService:
    """
    Example:
        service = TransactionService(transaction_repo, market_data)
        tx = service.add_transaction(TransactionCreate(...))
    """

    def __init__(
            self,
            store: TransactionStore,
            market_data: MarketDataService | None = None,
    ) -> None:
        self._store = store
        self._market_data = market_data

    def list_transactions(self) -> list[Transaction]:
        return self._store.find_all()

    def list_tickers(self) -> list[str]:
        return self._store.find_distinct_tickers()

    def held_quantity(self, data: TransactionCreate) -> Decimal:
        """Quantity currently held for the (ticker, asset type, market) of data."""
        same_asset = [
            tx for tx in self._store.find_by_ticker(data.ticker)
            if tx.asset_type == data.asset_type and tx.market == data.market
        ]
        if not same_asset:
            return ZERO
        return PortfolioCalculator.compute_cost_basis(same_asset).quantity

    def add_transaction(self, data: TransactionCreate) -> Transaction:
        """
        Persist a transaction and schedule a price refresh for its ticker.

        Raises:
            ValidationError: If a SELL exceeds the quantity currently held
        """
        if data.transaction_type == TransactionType.SELL:
            held = self.held_quantity(data)
            if data.quantity > held:
                raise ValidationError(
                    f"Cannot sell {data.quantity} {data.ticker}: only {held} held",
                    field="quantity",
                )

        transaction = Transaction(
            ticker=data.ticker,
            asset_type=data.asset_type,
            market=data.market,
            transaction_type=data.transaction_type,
            quantity=data.quantity,
            price_per_unit=data.price_per_unit,
            other_costs=data.other_costs,
            transaction_date=data.transaction_date,
        )
        saved = self._store.save(transaction)
        logger.info(
            f"Transaction {saved.id} recorded: {saved.transaction_type.value} "
            f"{saved.quantity} {saved.ticker} @ {saved.price_per_unit}"
        )

        self._schedule_refresh(saved)
        return saved

    def delete_transaction(self, transaction_id: int) -> None:
        """
        Raises:
            TransactionNotFoundError: If no transaction has that id
        """
        if not self._store.delete_by_id(transaction_id):
            raise TransactionNotFoundError(transaction_id)
        logger.info(f"Transaction {transaction_id} deleted")

    def delete_transactions_by_ticker(self, ticker: str) -> int:
        """Delete every transaction of a ticker and drop its cached price."""
        deleted = self._store.delete_by_ticker(ticker)
        if self._market_data is not None:
            self._market_data.invalidate_cache(ticker)
        logger.info(f"Deleted {deleted} transaction(s) for {ticker.upper()}")
        return deleted

    def _schedule_refresh(self, transaction: Transaction) -> Future | None:
        if self._market_data is None:
            return None
        return self._market_data.update_prices_for_tickers(
            [transaction.ticker],
            transaction.asset_type,
            transaction.market,
        )

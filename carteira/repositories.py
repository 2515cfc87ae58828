# carteira/repositories.py
"""
SQLAlchemy-backed stores for transactions and fixed-income holdings.

Both classes satisfy the TransactionStore / FixedIncomeStore protocols in
carteira.services.protocols. Every method opens its own session, so the
stores are safe to share between the request path and background refresh
threads. Returned entities are detached (expire_on_commit=False) and can
be read after the session closes.
"""

import logging

from sqlalchemy import select, delete
from sqlalchemy.orm import Session, sessionmaker

from carteira.database import session_scope
from carteira.models import Transaction, FixedIncomeAsset

logger = logging.getLogger(__name__)


class TransactionRepository:
    """Persistence for Transaction rows."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def find_all(self) -> list[Transaction]:
        with session_scope(self._session_factory) as session:
            stmt = select(Transaction).order_by(Transaction.transaction_date, Transaction.id)
            return list(session.scalars(stmt))

    def find_by_ticker(self, ticker: str) -> list[Transaction]:
        with session_scope(self._session_factory) as session:
            stmt = (
                select(Transaction)
                .where(Transaction.ticker == ticker.strip().upper())
                .order_by(Transaction.transaction_date, Transaction.id)
            )
            return list(session.scalars(stmt))

    def find_distinct_tickers(self) -> list[str]:
        with session_scope(self._session_factory) as session:
            stmt = select(Transaction.ticker).distinct().order_by(Transaction.ticker)
            return list(session.scalars(stmt))

    def save(self, transaction: Transaction) -> Transaction:
        with session_scope(self._session_factory) as session:
            session.add(transaction)
            session.flush()
            logger.debug(f"Saved transaction {transaction.id} ({transaction.ticker})")
            return transaction

    def delete_by_ticker(self, ticker: str) -> int:
        """Delete every transaction for a ticker. Returns the number of rows removed."""
        with session_scope(self._session_factory) as session:
            result = session.execute(
                delete(Transaction).where(Transaction.ticker == ticker.strip().upper())
            )
            return result.rowcount or 0

    def delete_by_id(self, transaction_id: int) -> bool:
        """Returns False when no row had that id."""
        with session_scope(self._session_factory) as session:
            result = session.execute(delete(Transaction).where(Transaction.id == transaction_id))
            return bool(result.rowcount)


class FixedIncomeRepository:
    """Persistence for FixedIncomeAsset rows."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def find_all(self) -> list[FixedIncomeAsset]:
        with session_scope(self._session_factory) as session:
            stmt = select(FixedIncomeAsset).order_by(FixedIncomeAsset.investment_date, FixedIncomeAsset.id)
            return list(session.scalars(stmt))

    def find_by_name(self, name: str) -> FixedIncomeAsset | None:
        with session_scope(self._session_factory) as session:
            stmt = select(FixedIncomeAsset).where(FixedIncomeAsset.name == name)
            return session.scalars(stmt).first()

    def save(self, asset: FixedIncomeAsset) -> FixedIncomeAsset:
        with session_scope(self._session_factory) as session:
            session.add(asset)
            session.flush()
            logger.debug(f"Saved fixed-income asset {asset.name}")
            return asset

    def delete_by_name(self, name: str) -> bool:
        with session_scope(self._session_factory) as session:
            result = session.execute(delete(FixedIncomeAsset).where(FixedIncomeAsset.name == name))
            return bool(result.rowcount)

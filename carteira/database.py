# carteira/database.py
"""
Database connection and session management.

The repositories receive a session factory and open one short-lived
session per call, so this module only builds the engine and factory.

- SQLite: StaticPool for in-memory databases, check_same_thread=False
  because background refresh jobs read transactions from worker threads
- Other URLs: default SQLAlchemy pooling with pre-ping
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from carteira.config import settings
from carteira.models import Base

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str | None = None) -> Engine:
    """
    Create SQLAlchemy engine for the given URL (defaults to settings).

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    url = database_url or settings.database_url

    if url.lower().startswith("sqlite://"):
        logger.info(f"Configuring SQLite database: {url}")
        if ":memory:" in url:
            return create_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=settings.debug,
            )
        return create_engine(url, connect_args={"check_same_thread": False}, echo=settings.debug)

    logger.info("Configuring pooled database engine")
    return create_engine(url, pool_pre_ping=True, echo=settings.debug)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables that don't exist yet."""
    Base.metadata.create_all(engine)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits on success, rolls back on any exception and re-raises it.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

# carteira/utils/__init__.py
"""
Cross-cutting utilities.

- logging: Logging configuration with correlation ID support
- context: Correlation ID storage for background jobs
- date_utils: Day iteration and snapshot date helpers

Usage:
    from carteira.utils import setup_logging, get_logger
    from carteira.utils import correlation_scope
"""

from carteira.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    correlation_scope,
)
from carteira.utils.logging import setup_logging, get_logger

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "correlation_scope",
]

# carteira/utils/context.py
"""
Execution context for the portfolio engine.

Holds a correlation ID so that log lines emitted by one unit of work
(a background refresh job, an evolution series run) can be traced
across services and worker threads.

Uses Python's contextvars: each thread starts with an empty context,
so jobs submitted to a pool must set their own ID.

Usage:
    from carteira.utils.context import correlation_scope

    with correlation_scope("refresh"):
        ...  # every log line carries "refresh-<hex>"
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current correlation ID, or None if not set."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


def new_correlation_id(prefix: str) -> str:
    """Build a short correlation ID such as ``refresh-1a2b3c4d``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@contextmanager
def correlation_scope(prefix: str) -> Iterator[str]:
    """
    Set a fresh correlation ID for the duration of the block.

    The previous ID (if any) is restored on exit.
    """
    token = _correlation_id_var.set(new_correlation_id(prefix))
    try:
        yield _correlation_id_var.get()
    finally:
        _correlation_id_var.reset(token)

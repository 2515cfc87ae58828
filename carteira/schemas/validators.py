# carteira/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

- Ticker validation and normalization
- Date-not-in-future check
"""

import re
from datetime import date

# =============================================================================
# CONSTANTS
# =============================================================================

# 1-20 chars: letters, digits, dots and dashes (PETR4, BRK.B, BTC, ITSA4.SA)
TICKER_PATTERN = re.compile(r'^[A-Z0-9][A-Z0-9.\-]{0,19}$')
TICKER_MAX_LENGTH = 20


def validate_ticker(value: str) -> str:
    """
    Validate and normalize a ticker symbol.

    Returns:
        Normalized ticker (uppercase, trimmed)

    Raises:
        ValueError: If ticker format is invalid
    """
    if not value or not value.strip():
        raise ValueError("Ticker cannot be empty")

    normalized = value.strip().upper()

    if len(normalized) > TICKER_MAX_LENGTH:
        raise ValueError(f"Ticker cannot exceed {TICKER_MAX_LENGTH} characters")

    if not TICKER_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid ticker format: '{normalized}'. "
            "Ticker must be alphanumeric and may include dots (.) or dashes (-)"
        )

    return normalized


def validate_not_future(value: date, label: str = "Date") -> date:
    """Reject dates after today."""
    today = date.today()
    if value > today:
        raise ValueError(f"{label} cannot be in the future (sent: {value}, today: {today})")
    return value

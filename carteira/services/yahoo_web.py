# carteira/services/yahoo_web.py
"""
Parsing helpers for Yahoo Finance web responses.

Shared by the stock scraper provider and the exchange rate service:
- quote page HTML  -> current price (BeautifulSoup, CSS selector)
- chart API JSON   -> daily (date, close) samples
- localized number text ("1.234,56" / "1,234.56") -> Decimal
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from bs4 import BeautifulSoup

from carteira.services.constants import YAHOO_PRICE_SELECTOR


def parse_price_text(text: str) -> Decimal:
    """
    Parse a price as displayed on a web page.

    Handles both "1,234.56" and "1.234,56". When both separators are
    present the last one is the decimal separator; a separator repeated
    more than once is a thousands separator.

    Raises:
        ValueError: If no number can be read
    """
    cleaned = "".join(ch for ch in text if ch.isdigit() or ch in ",.-")
    if not cleaned or not any(ch.isdigit() for ch in cleaned):
        raise ValueError(f"no number in {text!r}")

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", "") if cleaned.count(",") > 1 else cleaned.replace(",", ".")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")

    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"unparseable number {text!r}")


def parse_quote_page_price(html: str) -> Decimal:
    """
    Extract the regular market price from a Yahoo quote page.

    Raises:
        ValueError: If the price element is missing or unparseable
    """
    soup = BeautifulSoup(html, "html.parser")
    element = soup.select_one(YAHOO_PRICE_SELECTOR)
    if element is None:
        raise ValueError("price element not found on quote page")
    return parse_price_text(element.get_text(strip=True))


def parse_chart_closes(payload: Any) -> list[tuple[date, Decimal]]:
    """
    Convert a chart API response to (UTC date, close) samples, oldest first.

    Candles with a null close (halted days) are skipped.

    Raises:
        ValueError: If the payload is not a chart object or has no result
    """
    chart = payload.get("chart") if isinstance(payload, dict) else None
    if not isinstance(chart, dict):
        raise ValueError(f"not a chart response: {type(payload).__name__}")
    results = chart.get("result") or []
    if not results:
        error = chart.get("error")
        raise ValueError(f"chart has no result: {error}")

    result = results[0]
    timestamps = result.get("timestamp") or []
    quotes = (result.get("indicators") or {}).get("quote") or [{}]
    closes = quotes[0].get("close") or []

    samples = []
    for ts, close in zip(timestamps, closes):
        if close is None:
            continue
        sample_date = datetime.fromtimestamp(ts, tz=timezone.utc).date()
        samples.append((sample_date, Decimal(str(close))))
    return samples


def chart_market_price(payload: Any) -> Decimal | None:
    """``meta.regularMarketPrice`` from a chart response, if present."""
    if not isinstance(payload, dict):
        raise ValueError(f"not a chart response: {type(payload).__name__}")
    results = (payload.get("chart") or {}).get("result") or []
    if not results:
        return None
    price = (results[0].get("meta") or {}).get("regularMarketPrice")
    return Decimal(str(price)) if price is not None else None


def close_on_or_before(samples: list[tuple[date, Decimal]], on_date: date) -> Decimal | None:
    """
    Scan from the most recent sample back and return the first close whose
    date is <= on_date (covers weekends and holidays).
    """
    for sample_date, close in reversed(samples):
        if sample_date <= on_date:
            return close
    return None

# carteira/services/http.py
"""
Shared httpx client construction.

Every external call in the engine goes through a client built here so
that all of them carry the same bounded timeout and browser-like headers
(the scraped sites reject the default httpx User-Agent).
"""

from typing import Any

import httpx

from carteira.config import settings


def build_http_client(
        timeout: float | None = None,
        user_agent: str | None = None,
        headers: dict[str, str] | None = None,
) -> httpx.Client:
    """
    Create a synchronous httpx client.

    Args:
        timeout: Per-request timeout in seconds (default: settings.provider_timeout_seconds)
        user_agent: User-Agent header (default: settings.http_user_agent)
        headers: Extra default headers

    Returns:
        httpx.Client that follows redirects
    """
    default_headers = {
        "User-Agent": user_agent or settings.http_user_agent,
        "Accept-Language": "en-US,en;q=0.9",
    }
    if headers:
        default_headers.update(headers)

    return httpx.Client(
        timeout=timeout if timeout is not None else settings.provider_timeout_seconds,
        headers=default_headers,
        follow_redirects=True,
    )


def json_body(response: httpx.Response, expected: type = dict) -> Any:
    """
    Decode a JSON response and check its top-level shape.

    Raises:
        ValueError: If the body is not JSON or not an instance of ``expected``
    """
    payload = response.json()
    if not isinstance(payload, expected):
        raise ValueError(f"expected JSON {expected.__name__}, got {type(payload).__name__}")
    return payload

"""HTTP utilities for talking to the record store with retry logic."""

from __future__ import annotations

import asyncio
from typing import Any, Final

import httpx

from annodoc.config import (
    ANNODOC_STORE_BACKOFF_S,
    ANNODOC_STORE_MAX_RETRIES,
    ANNODOC_STORE_TIMEOUT_S,
    ANNODOC_USER_AGENT,
)
from annodoc.exceptions import NotFoundError, PersistenceError

RETRY_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})


def create_client(
    base_url: str, headers: dict[str, str] | None = None
) -> httpx.AsyncClient:
    """Create a pooled client with the store's timeout and user agent."""
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(ANNODOC_STORE_TIMEOUT_S),
        headers={"User-Agent": ANNODOC_USER_AGENT, **(headers or {})},
    )


async def request_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: dict[str, str] | None = None,
    json: Any = None,
    headers: dict[str, str] | None = None,
    not_found_message: str | None = None,
) -> httpx.Response:
    """Send a request, retrying transient failures with exponential backoff.

    Args:
        client: Client used for the request (connection pooling).
        method: HTTP method.
        url: URL or path relative to the client's base URL.
        params: Query parameters.
        json: JSON body.
        headers: Extra headers for this request.
        not_found_message: Message for the NotFoundError raised on 404.

    Returns:
        The successful response.

    Raises:
        NotFoundError: If the store answers 404.
        PersistenceError: If the request still fails after all retries.
    """
    last_exc: Exception | None = None

    for attempt in range(ANNODOC_STORE_MAX_RETRIES + 1):
        try:
            response = await client.request(
                method, url, params=params, json=json, headers=headers
            )

            if response.status_code == 404:
                raise NotFoundError(not_found_message or f"Resource not found at {url}")

            if response.status_code in RETRY_STATUS_CODES:
                last_exc = PersistenceError(f"HTTP {response.status_code} from {method} {url}")
            else:
                response.raise_for_status()
                return response
        except (httpx.RequestError, httpx.HTTPStatusError) as exc:
            last_exc = exc
            if isinstance(exc, httpx.HTTPStatusError):
                # 4xx other than 404 will not succeed on retry.
                break

        if attempt < ANNODOC_STORE_MAX_RETRIES:
            backoff = ANNODOC_STORE_BACKOFF_S * (2**attempt)
            await asyncio.sleep(backoff)

    raise PersistenceError(f"{method} {url} failed: {last_exc}")

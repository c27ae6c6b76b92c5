"""Shared httpx error translation for API clients."""

from collections.abc import Awaitable

import httpx

from ..core.exceptions import APIError, AuthenticationError, NetworkError, RateLimitError


async def send(request: Awaitable[httpx.Response], service: str) -> httpx.Response:
    """Await an httpx request, turning transport failures into NetworkError."""
    try:
        return await request
    except httpx.TimeoutException as e:
        raise NetworkError(f"{service} request timed out: {e}") from e
    except httpx.RequestError as e:
        raise NetworkError(f"{service} request failed: {e}") from e


def raise_for_api_status(response: httpx.Response, service: str) -> None:
    """Raise the matching client error for a non-2xx response."""
    status = response.status_code
    if status < 400:
        return
    if status in (401, 403):
        raise AuthenticationError(f"{service} rejected the credentials (HTTP {status})")
    if status == 429:
        retry_after = response.headers.get("Retry-After")
        raise RateLimitError(
            f"{service} rate limit exceeded",
            retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
        )
    raise APIError(
        f"{service} API error: HTTP {status}",
        status_code=status,
        response_body=response.text[:1000],
    )

"""Shared HTTP helpers used by the registry clients."""

import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from .errors import VersionSourceError

logger = logging.getLogger(__name__)


def extract_hostname(url: str) -> str:
    """Extract the lower-cased hostname of a URL for registry matching."""
    if "://" not in url:
        url = f"//{url}"
    return (urlsplit(url).hostname or "").lower()


async def fetch_json(
    url: str,
    *,
    package_name: str,
    headers: dict[str, str] | None = None,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """GET a JSON document.

    Raises:
        VersionSourceError: On timeouts, transport errors, non-200 responses
            and undecodable bodies
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url, headers=headers)
    except httpx.TimeoutException as e:
        raise VersionSourceError(f"timeout fetching package info for {package_name}") from e
    except httpx.HTTPError as e:
        raise VersionSourceError(f"failed to fetch package info for {package_name}: {e}") from e

    if response.status_code != 200:
        raise VersionSourceError(f"registry returned status {response.status_code} for {package_name}")

    try:
        return response.json()
    except ValueError as e:
        raise VersionSourceError(f"failed to parse registry response for {package_name}: {e}") from e

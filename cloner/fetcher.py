"""Fetch single resources over HTTP with error isolation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from .config import CloneOptions
from .resources import FetchError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FetchedContent:
    """Body of a successful fetch."""

    url: str
    final_url: str
    content: bytes
    content_type: Optional[str] = None


FetchOutcome = Union[FetchedContent, FetchError]


def build_http_client(options: CloneOptions) -> httpx.AsyncClient:
    """Create the shared async client used for one crawl."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(options.timeout),
        limits=httpx.Limits(max_connections=max(1, options.concurrency)),
        headers={"User-Agent": options.user_agent, "Accept": "*/*"},
    )


async def fetch_resource(client: httpx.AsyncClient, url: str) -> FetchOutcome:
    """Fetch ``url`` once. Every failure is returned as a :class:`FetchError`."""
    try:
        response = await client.get(url)
    except httpx.TimeoutException as exc:
        LOGGER.warning("Timed out fetching %s", url)
        return FetchError(url=url, cause=f"Timeout: {exc}" if str(exc) else "Timeout")
    except httpx.HTTPError as exc:
        LOGGER.warning("Failed to fetch %s: %s", url, exc)
        return FetchError(url=url, cause=f"Request failed: {exc}")
    except (httpx.InvalidURL, ValueError) as exc:
        LOGGER.warning("Invalid URL %s: %s", url, exc)
        return FetchError(url=url, cause=f"Invalid URL: {exc}")

    if not response.is_success:
        LOGGER.warning("HTTP %d for %s", response.status_code, url)
        return FetchError(
            url=url,
            cause=f"HTTP {response.status_code}",
            status_code=response.status_code,
        )

    return FetchedContent(
        url=url,
        final_url=str(response.url),
        content=response.content,
        content_type=response.headers.get("content-type"),
    )

"""Exception hierarchy for the clone engine.

Only fatal conditions are exceptions. A resource that fails to download is
recorded as a :class:`cloner.resources.FetchError` value instead.
"""

from __future__ import annotations

from typing import Optional


class CrawlError(Exception):
    """Raised when a crawl job cannot produce a result."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class InvalidUrlError(CrawlError):
    """The root URL is not an absolute http(s) URL."""


class RootFetchError(CrawlError):
    """The root document could not be fetched."""

    def __init__(
        self,
        message: str,
        url: str = "",
        *,
        cause: str = "",
        status_code: Optional[int] = None,
    ):
        self.cause = cause
        self.status_code = status_code
        super().__init__(message, url=url)


class RegistryError(Exception):
    """Internal contract violation inside the resource registry."""


class UnknownResourceError(RegistryError, KeyError):
    """An outcome was recorded for a URL that was never claimed."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(url)

    def __str__(self) -> str:
        return f"Resource was never claimed: {self.url}"


class ResourceAlreadyRecordedError(RegistryError):
    """An outcome was recorded twice for the same URL."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Resource outcome already recorded: {url}")

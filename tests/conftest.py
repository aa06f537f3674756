"""Shared fixtures: an in-memory website served through httpx.MockTransport."""

from __future__ import annotations

from collections import Counter
from typing import Dict, Optional, Tuple, Union

import httpx
import pytest

Body = Union[str, bytes]


class MockSite:
    """Maps absolute URLs to canned responses and counts requests."""

    def __init__(self) -> None:
        self.routes: Dict[str, Tuple[int, bytes, Dict[str, str]]] = {}
        self.errors: Dict[str, Exception] = {}
        self.requests: Counter = Counter()

    def add(
        self,
        url: str,
        body: Body = b"",
        *,
        status: int = 200,
        content_type: Optional[str] = None,
    ) -> "MockSite":
        data = body.encode("utf-8") if isinstance(body, str) else body
        headers = {"content-type": content_type} if content_type else {}
        self.routes[url] = (status, data, headers)
        return self

    def fail(self, url: str, exc: Exception) -> "MockSite":
        self.errors[url] = exc
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests[url] += 1
        if url in self.errors:
            raise self.errors[url]
        status, data, headers = self.routes.get(url, (404, b"not found", {}))
        return httpx.Response(status, content=data, headers=headers)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler), follow_redirects=True
        )


@pytest.fixture
def site() -> MockSite:
    return MockSite()

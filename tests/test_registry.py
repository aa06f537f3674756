"""Tests for cloner.registry module."""

from __future__ import annotations

import asyncio
import threading

import pytest

from cloner.errors import (
    RegistryError,
    ResourceAlreadyRecordedError,
    UnknownResourceError,
)
from cloner.registry import Claim, ResourceRegistry
from cloner.resources import FetchError, ResourceCategory, ResourceRef


def _ref(url: str, category=ResourceCategory.stylesheet, generation=1) -> ResourceRef:
    return ResourceRef(url, category, generation)


class TestClaim:
    def test_first_claim_creates_entry(self):
        registry = ResourceRegistry()
        claim = registry.claim(_ref("https://a.com/s.css"))
        assert claim == Claim("assets/css/s.css", True)
        assert "https://a.com/s.css" in registry
        assert len(registry) == 1

    def test_second_claim_returns_same_path(self):
        registry = ResourceRegistry()
        first = registry.claim(_ref("https://a.com/s.css"))
        second = registry.claim(_ref("https://a.com/s.css"))
        assert second.offline_path == first.offline_path
        assert second.created is False
        assert len(registry) == 1

    def test_reclaim_with_other_category_keeps_first_path(self):
        registry = ResourceRegistry()
        registry.claim(_ref("https://a.com/logo.png", ResourceCategory.image))
        again = registry.claim(_ref("https://a.com/logo.png", ResourceCategory.other))
        assert again.offline_path == "assets/images/logo.png"

    def test_colliding_basenames_get_distinct_paths(self):
        registry = ResourceRegistry()
        a = registry.claim(_ref("https://a.com/one/style.css"))
        b = registry.claim(_ref("https://a.com/two/style.css"))
        assert a.offline_path == "assets/css/style.css"
        assert b.offline_path == "assets/css/style-1.css"

    def test_resolver_is_not_called_for_known_urls(self):
        calls = []

        def resolver(url, category, existing):
            calls.append(url)
            return f"assets/{len(calls)}"

        registry = ResourceRegistry(resolver=resolver)
        registry.claim(_ref("https://a.com/x"))
        registry.claim(_ref("https://a.com/x"))
        assert calls == ["https://a.com/x"]

    def test_concurrent_thread_claims_have_one_winner(self):
        registry = ResourceRegistry()
        results = []
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            results.append(registry.claim(_ref("https://a.com/f.woff2", ResourceCategory.font)))

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len({claim.offline_path for claim in results}) == 1
        assert sum(1 for claim in results if claim.created) == 1
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_concurrent_task_claims_have_one_winner(self):
        registry = ResourceRegistry()

        async def claim():
            await asyncio.sleep(0)
            return registry.claim(_ref("https://a.com/f.woff2", ResourceCategory.font))

        results = await asyncio.gather(*(claim() for _ in range(10)))
        assert {c.offline_path for c in results} == {"assets/fonts/f.woff2"}
        assert [c.created for c in results].count(True) == 1


class TestRecord:
    def test_record_bytes(self):
        registry = ResourceRegistry()
        registry.claim(_ref("https://a.com/s.css"))
        registry.record("https://a.com/s.css", b"body{}")
        (entry,) = registry.snapshot()
        assert entry.content == b"body{}"
        assert entry.fetch_error is None
        assert entry.ok

    def test_record_error(self):
        registry = ResourceRegistry()
        registry.claim(_ref("https://a.com/s.css"))
        error = FetchError("https://a.com/s.css", "HTTP 404", 404)
        registry.record("https://a.com/s.css", error)
        (entry,) = registry.snapshot()
        assert entry.content is None
        assert entry.fetch_error == error
        assert not entry.ok

    def test_record_before_claim_raises(self):
        registry = ResourceRegistry()
        with pytest.raises(UnknownResourceError) as excinfo:
            registry.record("https://a.com/missing.css", b"")
        assert excinfo.value.url == "https://a.com/missing.css"
        assert isinstance(excinfo.value, RegistryError)

    def test_record_twice_raises(self):
        registry = ResourceRegistry()
        registry.claim(_ref("https://a.com/s.css"))
        registry.record("https://a.com/s.css", b"a")
        with pytest.raises(ResourceAlreadyRecordedError):
            registry.record("https://a.com/s.css", b"b")


class TestSnapshot:
    def test_discovery_order(self):
        registry = ResourceRegistry()
        urls = [
            ("https://a.com/s.css", ResourceCategory.stylesheet),
            ("https://a.com/app.js", ResourceCategory.script),
            ("https://a.com/logo.png", ResourceCategory.image),
            ("https://a.com/f.woff2", ResourceCategory.font),
        ]
        for url, category in urls:
            registry.claim(_ref(url, category))
        # Record out of order; snapshot order must not change.
        for url, _ in reversed(urls):
            registry.record(url, b"x")
        assert [r.source_url for r in registry.snapshot()] == [u for u, _ in urls]

    def test_pending_excludes_recorded(self):
        registry = ResourceRegistry()
        registry.claim(_ref("https://a.com/a.css"))
        registry.claim(_ref("https://a.com/b.css"))
        registry.record("https://a.com/a.css", b"")
        assert [ref.source_url for ref in registry.pending()] == ["https://a.com/b.css"]

    def test_offline_path_lookup(self):
        registry = ResourceRegistry()
        registry.claim(_ref("https://a.com/a.css"))
        assert registry.offline_path("https://a.com/a.css") == "assets/css/a.css"
        assert registry.offline_path("https://a.com/nope.css") is None

    def test_paths_unique(self):
        registry = ResourceRegistry()
        for i in range(5):
            registry.claim(_ref(f"https://a.com/{i}/style.css"))
        paths = [r.offline_path for r in registry.snapshot()]
        assert len(paths) == len(set(paths))

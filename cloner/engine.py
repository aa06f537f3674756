"""Crawl engine: discover, download and rewrite the resources of one page."""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import urldefrag, urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup, UnicodeDammit

from .config import CloneOptions
from .errors import CrawlError, InvalidUrlError, RootFetchError
from .fetcher import FetchedContent, build_http_client, fetch_resource
from .fonts import extract_font_urls
from .registry import ResourceRegistry
from .resources import (
    CrawlResult,
    CrawlStats,
    FetchError,
    RegisteredResource,
    ResourceCategory,
    ResourceRef,
)
from .rewriter import PARSER, effective_base_url, rel_tokens, rewrite_document, rewrite_stylesheet

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[float], Union[None, Awaitable[None]]]

ICON_RELS = {"icon", "apple-touch-icon"}
CANCELLED_CAUSE = "cancelled"


class CrawlPhase(str, Enum):
    INIT = "init"
    DISCOVERING_ROOT = "discovering_root"
    EXPANDING_STYLESHEETS = "expanding_stylesheets"
    DOWNLOADING_RESOURCES = "downloading_resources"
    REWRITING = "rewriting"
    DONE = "done"
    FAILED = "failed"


class _ProgressSink:
    """Serializes progress callbacks from concurrent fetch workers."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self._callback = callback
        self._lock = asyncio.Lock()

    async def report(self, fraction: float) -> None:
        if self._callback is None:
            return
        async with self._lock:
            try:
                outcome = self._callback(min(1.0, max(0.0, fraction)))
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as exc:
                LOGGER.warning("Progress callback failed: %s", exc)


def validate_root_url(url: str) -> str:
    """Return ``url`` without its fragment or raise :class:`InvalidUrlError`."""
    candidate = str(url or "").strip()
    try:
        parts = urlsplit(candidate)
    except ValueError as exc:
        raise InvalidUrlError(f"Malformed URL: {candidate!r} ({exc})", url=candidate) from exc
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise InvalidUrlError(
            f"URL must be absolute http(s): {candidate!r}", url=candidate
        )
    return urldefrag(candidate)[0]


def _absolute_http_url(base: str, value: Optional[str]) -> Optional[str]:
    if not value or not value.strip():
        return None
    try:
        absolute, _ = urldefrag(urljoin(base, value.strip()))
        scheme = urlsplit(absolute).scheme
    except ValueError:
        LOGGER.warning("Skipping malformed reference %r", value)
        return None
    if scheme not in ("http", "https"):
        return None
    return absolute


def discover_references(
    soup: BeautifulSoup, base_url: str, options: CloneOptions
) -> List[ResourceRef]:
    """First-generation refs in discovery order: stylesheets, scripts, images."""
    refs: List[ResourceRef] = []

    def add(value: Optional[str], category: ResourceCategory) -> None:
        absolute = _absolute_http_url(base_url, value)
        if absolute is not None:
            refs.append(ResourceRef(absolute, category, generation=1))

    for link in soup.find_all("link", href=True):
        if "stylesheet" in rel_tokens(link):
            add(link.get("href"), ResourceCategory.stylesheet)

    if options.include_js:
        for script in soup.find_all("script", src=True):
            add(script.get("src"), ResourceCategory.script)

    if options.include_images:
        for img in soup.find_all("img", src=True):
            add(img.get("src"), ResourceCategory.image)
        for link in soup.find_all("link", href=True):
            if rel_tokens(link) & ICON_RELS:
                add(link.get("href"), ResourceCategory.image)

    return refs


def decode_document(content: bytes) -> str:
    return UnicodeDammit(content, is_html=True).unicode_markup or ""


def decode_stylesheet(content: bytes) -> str:
    return UnicodeDammit(content, ["utf-8"]).unicode_markup or ""


class CrawlEngine:
    """Drives one crawl through its phases.

    The engine is single-use: construct it per job and call :meth:`run` once.
    """

    def __init__(
        self,
        root_url: str,
        options: Optional[CloneOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        cancel_event: Optional[asyncio.Event] = None,
        registry: Optional[ResourceRegistry] = None,
    ):
        self.root_url = root_url
        self.options = options or CloneOptions()
        self.registry = registry or ResourceRegistry()
        self.phase = CrawlPhase.INIT
        self._on_progress = on_progress
        self._client = client
        self._cancel_event = cancel_event or asyncio.Event()
        self._attempted = 0
        # source URL -> URL the body was served from after redirects
        self._served_from: Dict[str, str] = {}

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop dispatching new fetches; in-flight fetches drain."""
        self._cancel_event.set()

    def _enter(self, phase: CrawlPhase) -> None:
        LOGGER.debug("Crawl %s: %s -> %s", self.root_url, self.phase.value, phase.value)
        self.phase = phase

    async def run(self) -> CrawlResult:
        try:
            root_url = validate_root_url(self.root_url)
        except InvalidUrlError:
            self._enter(CrawlPhase.FAILED)
            raise
        self.root_url = root_url

        for name in ("follow_subdomains", "max_depth"):
            LOGGER.debug(
                "Option %s=%s has no effect on single-page crawls",
                name,
                getattr(self.options, name),
            )

        if self._client is not None:
            return await self._run(self._client)
        async with build_http_client(self.options) as client:
            return await self._run(client)

    async def _run(self, client: httpx.AsyncClient) -> CrawlResult:
        self._enter(CrawlPhase.DISCOVERING_ROOT)
        try:
            root, html = await self._discover_root(client)
        except CrawlError:
            self._enter(CrawlPhase.FAILED)
            raise

        if self.options.include_fonts:
            self._enter(CrawlPhase.EXPANDING_STYLESHEETS)
            await self._expand_stylesheets(client)

        self._enter(CrawlPhase.DOWNLOADING_RESOURCES)
        await self._download_pending(client)

        cancelled = self.cancelled
        for ref in self.registry.pending():
            self.registry.record(
                ref.source_url, FetchError(url=ref.source_url, cause=CANCELLED_CAUSE)
            )

        self._enter(CrawlPhase.REWRITING)
        snapshot = self.registry.snapshot()
        rewritten = rewrite_document(html, snapshot, root.final_url)
        resources = tuple(self._rewrite_stylesheets(snapshot))

        succeeded = sum(1 for res in resources if res.ok)
        stats = CrawlStats(
            attempted=self._attempted,
            succeeded=succeeded,
            failed=len(resources) - succeeded,
        )
        self._enter(CrawlPhase.DONE)
        LOGGER.info(
            "Crawl of %s finished: %d resources (%d succeeded, %d failed)%s",
            self.root_url,
            len(resources),
            stats.succeeded,
            stats.failed,
            " [cancelled]" if cancelled else "",
        )
        return CrawlResult(
            root_url=self.root_url,
            final_url=root.final_url,
            rewritten_document=rewritten,
            resources=resources,
            stats=stats,
            cancelled=cancelled,
        )

    async def _discover_root(self, client: httpx.AsyncClient):
        outcome = await fetch_resource(client, self.root_url)
        if isinstance(outcome, FetchError):
            raise RootFetchError(
                f"Failed to fetch root document {self.root_url}: {outcome.cause}",
                url=self.root_url,
                cause=outcome.cause,
                status_code=outcome.status_code,
            )

        html = decode_document(outcome.content)
        soup = BeautifulSoup(html, PARSER)
        base = effective_base_url(soup, outcome.final_url)
        refs = discover_references(soup, base, self.options)
        created = sum(1 for ref in refs if self.registry.claim(ref).created)
        LOGGER.info("Discovered %d resources in %s", created, self.root_url)
        return outcome, html

    async def _expand_stylesheets(self, client: httpx.AsyncClient) -> None:
        sheets = [
            ref
            for ref in self.registry.pending()
            if ref.category is ResourceCategory.stylesheet
        ]
        semaphore = asyncio.Semaphore(max(1, self.options.concurrency))

        async def load(ref: ResourceRef) -> Optional[Tuple[str, str]]:
            async with semaphore:
                if self.cancelled:
                    return None
                outcome = await self._fetch_and_record(client, ref)
            if isinstance(outcome, FetchError):
                return None
            return outcome.final_url or ref.source_url, decode_stylesheet(outcome.content)

        loaded = await asyncio.gather(*(load(ref) for ref in sheets))

        # Claims happen in stylesheet order so font discovery stays deterministic.
        for sheet in loaded:
            if sheet is None:
                continue
            served_from, css_text = sheet
            for font_url in extract_font_urls(css_text, served_from):
                self.registry.claim(
                    ResourceRef(font_url, ResourceCategory.font, generation=2)
                )

    async def _download_pending(self, client: httpx.AsyncClient) -> None:
        queue = self.registry.pending()
        total = len(queue)
        if not total:
            return
        LOGGER.info("Downloading %d resources (concurrency=%d)", total, self.options.concurrency)

        sink = _ProgressSink(self._on_progress)
        semaphore = asyncio.Semaphore(max(1, self.options.concurrency))
        completed = 0

        async def worker(ref: ResourceRef) -> None:
            nonlocal completed
            async with semaphore:
                if self.cancelled:
                    return
                await self._fetch_and_record(client, ref)
            completed += 1
            await sink.report(completed / total)

        await asyncio.gather(*(worker(ref) for ref in queue))

    async def _fetch_and_record(
        self, client: httpx.AsyncClient, ref: ResourceRef
    ) -> Union[FetchedContent, FetchError]:
        self._attempted += 1
        outcome = await fetch_resource(client, ref.source_url)
        if isinstance(outcome, FetchError):
            self.registry.record(ref.source_url, outcome)
        else:
            self._served_from[ref.source_url] = outcome.final_url or ref.source_url
            self.registry.record(ref.source_url, outcome.content)
        return outcome

    def _rewrite_stylesheets(self, snapshot: Sequence[RegisteredResource]):
        for resource in snapshot:
            if resource.category is ResourceCategory.stylesheet and resource.ok:
                css_text = decode_stylesheet(resource.content or b"")
                rewritten = rewrite_stylesheet(
                    css_text,
                    self._served_from.get(resource.source_url, resource.source_url),
                    resource.offline_path,
                    snapshot,
                )
                if rewritten != css_text:
                    resource = dataclasses.replace(resource, content=rewritten.encode("utf-8"))
            yield resource


async def crawl_async(
    root_url: str,
    options: Optional[CloneOptions] = None,
    on_progress: Optional[ProgressCallback] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> CrawlResult:
    """
    Clone a single page and the resources it references.

    Args:
        root_url: Absolute http(s) URL of the page to clone.
        options: Optional CloneOptions; defaults include every category.
        on_progress: Called with a fraction in [0, 1] while resources download.
            May be a plain function or a coroutine function.
        client: Optional httpx.AsyncClient to reuse (tests inject one).
        cancel_event: Setting this event stops dispatching new fetches.

    Returns:
        CrawlResult with the rewritten document and every registered resource.

    Raises:
        InvalidUrlError: If root_url is not an absolute http(s) URL.
        RootFetchError: If the root document cannot be fetched.
    """
    engine = CrawlEngine(
        root_url,
        options,
        on_progress,
        client=client,
        cancel_event=cancel_event,
    )
    return await engine.run()


def crawl(
    root_url: str,
    options: Optional[CloneOptions] = None,
    on_progress: Optional[Callable[[float], Any]] = None,
) -> CrawlResult:
    """Synchronous wrapper for crawl_async."""
    return asyncio.run(crawl_async(root_url, options, on_progress))

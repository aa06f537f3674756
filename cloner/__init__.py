"""Offline website cloner.

This module provides a clean API for cloning a single web page together with
the resources it references. It supports:

- Stylesheets, scripts, images and icons linked from the page
- Fonts referenced from stylesheets via ``url()``
- Bounded concurrent downloads with progress reporting and cancellation
- Packaging the rewritten page and its assets into a zip archive

Example usage:

    from cloner import clone_site, clone_site_async, crawl_async

    # Crawl only; nothing is written to disk
    result = await crawl_async("https://example.com")
    print(result.stats)

    # Crawl and package
    outcome = await clone_site_async("https://example.com", output_dir="clones")
    print(outcome.archive_path)

    # Without images or scripts
    from cloner import CloneOptions
    outcome = clone_site(
        "https://example.com",
        options=CloneOptions(include_images=False, include_js=False),
    )
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .archive import ArchiveEntry, package, package_result
from .config import CloneOptions, OptionOverrides, build_clone_options, default_output_dir
from .engine import CrawlEngine, CrawlPhase, ProgressCallback, crawl, crawl_async
from .errors import (
    CrawlError,
    InvalidUrlError,
    RootFetchError,
    UnknownResourceError,
)
from .fonts import extract_font_urls
from .jobs import CloneJob, JobStatus, JobStore, run_clone_job
from .paths import resolve_offline_path
from .registry import ResourceRegistry
from .resources import (
    CrawlResult,
    CrawlStats,
    FetchError,
    RegisteredResource,
    ResourceCategory,
    ResourceRef,
)
from .rewriter import rewrite_document, rewrite_stylesheet

__all__ = [
    # Data types
    "ResourceCategory",
    "ResourceRef",
    "RegisteredResource",
    "FetchError",
    "CrawlStats",
    "CrawlResult",
    "CloneOutcome",
    # Errors
    "CrawlError",
    "InvalidUrlError",
    "RootFetchError",
    "UnknownResourceError",
    # Building blocks
    "resolve_offline_path",
    "ResourceRegistry",
    "extract_font_urls",
    "rewrite_document",
    "rewrite_stylesheet",
    # Crawl
    "CrawlEngine",
    "CrawlPhase",
    "crawl",
    "crawl_async",
    # Packaging
    "ArchiveEntry",
    "package",
    "package_result",
    # Clone (crawl + package)
    "clone_site",
    "clone_site_async",
    # Jobs
    "CloneJob",
    "JobStatus",
    "JobStore",
    "run_clone_job",
    # Config
    "CloneOptions",
    "OptionOverrides",
    "build_clone_options",
    # MCP Server
    "mcp",
]


def get_mcp_server():
    """Get the MCP server instance (lazy import to avoid dependency if not needed)."""
    from .mcp_server import mcp

    return mcp


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


@dataclass(slots=True)
class CloneOutcome:
    """A finished crawl and the archive it was packaged into."""

    result: CrawlResult
    archive_path: Path


async def clone_site_async(
    url: str,
    *,
    output_dir: Optional[Union[str, Path]] = None,
    options: Optional[CloneOptions] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> CloneOutcome:
    """
    Clone a page and package it into a zip archive.

    Args:
        url: The page to clone.
        output_dir: Directory for the archive (default: ``SITECLONE_OUTPUT_DIR``
            or the current directory).
        options: Optional CloneOptions (default: built from the environment).
        on_progress: Optional progress callback receiving a fraction in [0, 1].
        cancel_event: Optional event that stops the crawl when set.

    Returns:
        CloneOutcome with the crawl result and the archive path.

    Raises:
        CrawlError: If the URL is invalid or the root document is unreachable.
    """
    result = await crawl_async(
        url,
        options or build_clone_options(),
        on_progress,
        cancel_event=cancel_event,
    )
    archive_path = package_result(result, output_dir or default_output_dir())
    return CloneOutcome(result=result, archive_path=archive_path)


def clone_site(
    url: str,
    *,
    output_dir: Optional[Union[str, Path]] = None,
    options: Optional[CloneOptions] = None,
) -> CloneOutcome:
    """Synchronous wrapper for clone_site_async."""
    return asyncio.run(clone_site_async(url, output_dir=output_dir, options=options))

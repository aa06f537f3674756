"""MCP Server for the website cloner.

Provides tools for:
- Cloning a page into an offline zip archive in one call
- Submitting clone jobs and polling their progress

Supports both STDIO and HTTP transports.

Usage:
    # STDIO (for Claude Desktop, etc.)
    python -m cloner.mcp_server

    # HTTP (for remote access)
    python -m cloner.mcp_server --transport http --port 8000

Environment Variables:
    SITECLONE_OUTPUT_DIR: Directory for archives (default: current directory)
    SITECLONE_CONCURRENCY: Simultaneous downloads per clone (default: 8)
    SITECLONE_TIMEOUT: Per-request timeout in seconds (default: 15)
    SITECLONE_USER_AGENT: User-Agent header sent with every request
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set

from dotenv import load_dotenv
from fastmcp import FastMCP

from .config import OptionOverrides, build_clone_options, default_output_dir
from .errors import CrawlError
from .jobs import JobStore, run_clone_job

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

# Load .env before reading environment variables
load_dotenv()

JOBS = JobStore()
_BACKGROUND: Set[asyncio.Task] = set()

mcp = FastMCP(
    name="Website Cloner",
    instructions="""
    A website cloner that saves a page and its assets for offline use.

    Tools:
       - clone_site: Clone a page and wait for the zip archive
       - submit_clone_job: Start a clone in the background and get a job id
       - get_clone_job: Poll a job's progress, stats and archive path
       - cancel_clone_job: Stop a running job (a partial archive is kept)

    Only the given page and the stylesheets, scripts, images and fonts it
    references are downloaded; links to other pages are not followed.
    """,
)


def _build_options(
    include_images: bool,
    include_fonts: bool,
    include_js: bool,
    follow_subdomains: bool = False,
    max_depth: Optional[int] = None,
):
    return build_clone_options(
        OptionOverrides(
            include_images=include_images,
            include_fonts=include_fonts,
            include_js=include_js,
            follow_subdomains=follow_subdomains,
            max_depth=max_depth,
        )
    )


def _forget_task(task: asyncio.Task) -> None:
    _BACKGROUND.discard(task)
    if not task.cancelled() and task.exception() is not None:
        LOGGER.error("Background clone task failed: %s", task.exception())


def _error(message: str, **extra: Any) -> str:
    payload: Dict[str, Any] = {"error": message}
    payload.update(extra)
    return json.dumps(payload, ensure_ascii=False)


# =============================================================================
# CLONE TOOLS
# =============================================================================


@mcp.tool
async def clone_site(
    url: str,
    include_images: bool = True,
    include_fonts: bool = True,
    include_js: bool = True,
    output_dir: Optional[str] = None,
):
    """
    Clone a web page with its assets and return the archive location.

    Args:
        url: The page to clone (absolute http or https URL)
        include_images: Download images and icons (default: true)
        include_fonts: Download fonts referenced by stylesheets (default: true)
        include_js: Download scripts (default: true)
        output_dir: Directory for the zip archive (default: SITECLONE_OUTPUT_DIR)

    Returns:
        JSON with archive_path, total_files, stats and the failed resources.

    Examples:
        clone_site(url="https://example.com")
        clone_site(url="https://example.com", include_images=False)
    """
    from . import clone_site_async

    LOGGER.info("Cloning %s", url)
    options = _build_options(include_images, include_fonts, include_js)
    try:
        outcome = await clone_site_async(
            url, output_dir=output_dir or default_output_dir(), options=options
        )
    except CrawlError as exc:
        LOGGER.error("Clone of %s failed: %s", url, exc)
        return _error(str(exc), url=url)

    result = outcome.result
    return json.dumps(
        {
            "url": result.root_url,
            "archive_path": str(outcome.archive_path),
            "total_files": result.total_files,
            "stats": result.stats.to_dict(),
            "failed": [
                {"url": res.source_url, "error": res.fetch_error.cause if res.fetch_error else None}
                for res in result.failures
            ],
        },
        indent=2,
        ensure_ascii=False,
    )


@mcp.tool
async def submit_clone_job(
    url: str,
    include_images: bool = True,
    include_fonts: bool = True,
    include_js: bool = True,
    follow_subdomains: bool = False,
    max_depth: int = 3,
    output_dir: Optional[str] = None,
):
    """
    Start a clone job in the background.

    Args:
        url: The page to clone
        include_images: Download images and icons (default: true)
        include_fonts: Download fonts referenced by stylesheets (default: true)
        include_js: Download scripts (default: true)
        follow_subdomains: Accepted for compatibility; pages are not followed
        max_depth: Accepted for compatibility; pages are not followed
        output_dir: Directory for the zip archive (default: SITECLONE_OUTPUT_DIR)

    Returns:
        JSON describing the new job, including its id for polling.
    """
    options = _build_options(
        include_images, include_fonts, include_js, follow_subdomains, max_depth
    )
    job = JOBS.create(url, options)
    task = asyncio.create_task(
        run_clone_job(JOBS, job.id, output_dir or default_output_dir())
    )
    _BACKGROUND.add(task)
    task.add_done_callback(_forget_task)
    LOGGER.info("Submitted clone job %s for %s", job.id, url)
    return json.dumps(job.to_dict(), indent=2, ensure_ascii=False)


@mcp.tool
async def get_clone_job(job_id: str):
    """
    Get the status of a clone job.

    Args:
        job_id: Id returned by submit_clone_job

    Returns:
        JSON with status, progress (0-100), current_status, stats and
        archive_path once completed.
    """
    job = JOBS.get(job_id)
    if job is None:
        return _error("Clone job not found", job_id=job_id)
    return json.dumps(job.to_dict(), indent=2, ensure_ascii=False)


@mcp.tool
async def cancel_clone_job(job_id: str):
    """
    Cancel a running clone job. Downloads already in flight finish and a
    partial archive is still written.

    Args:
        job_id: Id returned by submit_clone_job
    """
    if not JOBS.cancel(job_id):
        return _error("Clone job not found or already finished", job_id=job_id)
    return json.dumps({"job_id": job_id, "cancel_requested": True})


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the website cloner MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
    SITECLONE_OUTPUT_DIR   Directory for archives (default: .)
    SITECLONE_CONCURRENCY  Simultaneous downloads per clone (default: 8)
    SITECLONE_TIMEOUT      Per-request timeout in seconds (default: 15)

Examples:
    # STDIO transport (default, for Claude Desktop)
    python -m cloner.mcp_server

    # HTTP transport (for remote access)
    python -m cloner.mcp_server --transport http --port 8000
""",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()

    LOGGER.info("Output directory: %s", default_output_dir())

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

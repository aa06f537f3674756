"""Package a finished crawl into a zip archive."""

from __future__ import annotations

import logging
import time
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Sequence, Union
from urllib.parse import urlsplit

from .resources import CrawlResult, CrawlStats, RegisteredResource

LOGGER = logging.getLogger(__name__)

MANIFEST_NAME = "README.md"


class ArchiveEntry(NamedTuple):
    path: str
    content: bytes


def site_name(url: str) -> str:
    """Archive folder name for ``url``: the hostname with dots as dashes."""
    host = (urlsplit(url).hostname or "site").lower()
    return host.replace(".", "-")


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def build_manifest(
    site_url: str,
    root_document_name: str,
    *,
    stats: Optional[CrawlStats] = None,
    failures: Sequence[RegisteredResource] = (),
) -> str:
    """README placed at the top of every archive."""
    name = site_name(site_url)
    lines = [
        f"# {name} - Cloned Website",
        "",
        f"This website was cloned from: {site_url}",
        f"Clone date: {_timestamp()}",
        "",
        "## Structure:",
        f"- {root_document_name} - Main website file",
        "- assets/ - All website resources",
        "  - css/ - Stylesheets",
        "  - js/ - JavaScript files",
        "  - images/ - Images",
        "  - fonts/ - Font files",
        "",
    ]
    if stats is not None:
        lines += [
            "## Stats:",
            f"- Attempted: {stats.attempted}",
            f"- Succeeded: {stats.succeeded}",
            f"- Failed: {stats.failed}",
            "",
        ]
    if failures:
        lines.append("## Missing resources:")
        for resource in failures:
            cause = resource.fetch_error.cause if resource.fetch_error else "unknown"
            lines.append(f"- {resource.source_url} ({cause})")
        lines.append("")
    lines += [
        "## Usage:",
        f"Open {root_document_name} in your web browser to view the cloned website.",
        "",
        "Note: Some functionality may be limited in offline mode.",
        "",
    ]
    return "\n".join(lines)


def package(
    root_document_name: str,
    rewritten_document: str,
    resources: Iterable[ArchiveEntry],
    *,
    output_path: Union[str, Path],
    site_url: str,
    stats: Optional[CrawlStats] = None,
    failures: Sequence[RegisteredResource] = (),
) -> Path:
    """Write the document, its resources and a README into one zip file."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    prefix = site_name(site_url)
    written = 0

    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(f"{prefix}/{root_document_name}", rewritten_document)
        for entry in resources:
            archive.writestr(f"{prefix}/{entry.path}", entry.content)
            written += 1
        archive.writestr(
            f"{prefix}/{MANIFEST_NAME}",
            build_manifest(
                site_url, root_document_name, stats=stats, failures=failures
            ),
        )

    LOGGER.info(
        "ZIP created: %s (%d resources, %d bytes)", path, written, path.stat().st_size
    )
    return path


def result_entries(result: CrawlResult) -> List[ArchiveEntry]:
    """Archive entries for every successfully fetched resource."""
    return [
        ArchiveEntry(resource.offline_path, resource.content)
        for resource in result.resources
        if resource.ok and resource.content is not None
    ]


def package_result(result: CrawlResult, output_dir: Union[str, Path]) -> Path:
    """Package ``result`` as ``<site>-<unix-ms>.zip`` inside ``output_dir``."""
    filename = f"{site_name(result.root_url)}-{int(time.time() * 1000)}.zip"
    return package(
        result.root_document_name,
        result.rewritten_document,
        result_entries(result),
        output_path=Path(output_dir) / filename,
        site_url=result.root_url,
        stats=result.stats,
        failures=result.failures,
    )

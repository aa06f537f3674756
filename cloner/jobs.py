"""In-memory tracking of clone jobs.

A job wraps one crawl plus packaging and exposes coarse progress for polling
clients:

    store = JobStore()
    job = store.create("https://example.com")
    await run_clone_job(store, job.id, output_dir="./clones")
    print(store.get(job.id).archive_path)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from .archive import package_result
from .config import CloneOptions
from .engine import crawl_async
from .errors import CrawlError

LOGGER = logging.getLogger(__name__)

# Progress bands: crawl downloads map onto 15-85, packaging sits at 90.
_CRAWL_START = 15
_CRAWL_SPAN = 70

DEFAULT_MAX_FINISHED = 100


class JobStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"


@dataclass
class CloneJob:
    """State of one clone job as seen by polling clients."""

    id: str
    url: str
    options: CloneOptions = field(default_factory=CloneOptions)
    status: JobStatus = JobStatus.pending
    progress: int = 0
    current_status: str = "Initializing..."
    files_processed: int = 0
    archive_path: Optional[str] = None
    archive_size: Optional[str] = None
    stats: Dict[str, int] = field(default_factory=dict)
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.completed, JobStatus.failed, JobStatus.cancelled)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "status": self.status.value,
            "progress": self.progress,
            "current_status": self.current_status,
            "files_processed": self.files_processed,
            "archive_path": self.archive_path,
            "archive_size": self.archive_size,
            "stats": dict(self.stats),
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


def _format_size(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def _status_text(fraction: float) -> str:
    if fraction < 0.3:
        return "Downloading HTML content..."
    if fraction < 0.7:
        return "Downloading assets..."
    return "Processing resources..."


class JobStore:
    """Jobs keyed by id. Jobs are never persisted.

    At most ``max_finished`` finished jobs are retained; older ones are
    dropped when new jobs are created.
    """

    def __init__(self, max_finished: int = DEFAULT_MAX_FINISHED) -> None:
        self.max_finished = max(0, max_finished)
        self._jobs: Dict[str, CloneJob] = {}
        self._cancel_events: Dict[str, asyncio.Event] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def create(self, url: str, options: Optional[CloneOptions] = None) -> CloneJob:
        self.prune()
        job = CloneJob(id=uuid.uuid4().hex, url=url, options=options or CloneOptions())
        self._jobs[job.id] = job
        self._cancel_events[job.id] = asyncio.Event()
        return job

    def get(self, job_id: str) -> Optional[CloneJob]:
        return self._jobs.get(job_id)

    def update(self, job_id: str, **changes: Any) -> Optional[CloneJob]:
        job = self._jobs.get(job_id)
        if job is None:
            return None
        updated = replace(job, **changes)
        self._jobs[job_id] = updated
        return updated

    def delete(self, job_id: str) -> bool:
        self._cancel_events.pop(job_id, None)
        return self._jobs.pop(job_id, None) is not None

    def prune(self) -> int:
        """Drop the oldest finished jobs beyond ``max_finished``."""
        finished = sorted(
            (job for job in self._jobs.values() if job.finished),
            key=lambda job: job.completed_at or job.created_at,
        )
        excess = finished[: max(0, len(finished) - self.max_finished)]
        for job in excess:
            self.delete(job.id)
        if excess:
            LOGGER.debug("Pruned %d finished jobs", len(excess))
        return len(excess)

    def cancel_event(self, job_id: str) -> Optional[asyncio.Event]:
        return self._cancel_events.get(job_id)

    def cancel(self, job_id: str) -> bool:
        """Request cancellation. Returns False for unknown or finished jobs."""
        job = self._jobs.get(job_id)
        event = self._cancel_events.get(job_id)
        if job is None or event is None or job.finished:
            return False
        event.set()
        LOGGER.info("Cancellation requested for job %s", job_id)
        return True


async def run_clone_job(
    store: JobStore,
    job_id: str,
    output_dir: Union[str, Path],
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[CloneJob]:
    """Run a stored job to completion, updating it as it progresses.

    Fatal crawl errors mark the job failed; they are not re-raised.
    """
    job = store.get(job_id)
    if job is None:
        LOGGER.error("Job not found: %s", job_id)
        return None

    store.update(
        job_id,
        status=JobStatus.processing,
        progress=5,
        current_status="Starting website analysis...",
    )
    store.update(
        job_id, progress=_CRAWL_START, current_status="Analyzing website structure..."
    )

    def on_progress(fraction: float) -> None:
        store.update(
            job_id,
            progress=int(_CRAWL_START + fraction * _CRAWL_SPAN),
            current_status=_status_text(fraction),
        )

    try:
        result = await crawl_async(
            job.url,
            job.options,
            on_progress,
            client=client,
            cancel_event=store.cancel_event(job_id),
        )
        store.update(
            job_id,
            progress=90,
            current_status="Creating ZIP archive...",
            files_processed=result.stats.succeeded + 1,
            stats=result.stats.to_dict(),
        )
        archive_path = package_result(result, output_dir)
    except CrawlError as exc:
        LOGGER.error("Clone job %s failed: %s", job_id, exc)
        return store.update(
            job_id,
            status=JobStatus.failed,
            current_status="Clone failed",
            error_message=str(exc),
            completed_at=datetime.now(timezone.utc),
        )
    except OSError as exc:
        LOGGER.error("Clone job %s could not write its archive: %s", job_id, exc)
        return store.update(
            job_id,
            status=JobStatus.failed,
            current_status="Clone failed",
            error_message=f"Archive error: {exc}",
            completed_at=datetime.now(timezone.utc),
        )
    except Exception as exc:
        LOGGER.exception("Clone job %s crashed", job_id)
        return store.update(
            job_id,
            status=JobStatus.failed,
            current_status="Clone failed",
            error_message=f"Unexpected error: {exc}",
            completed_at=datetime.now(timezone.utc),
        )

    status = JobStatus.cancelled if result.cancelled else JobStatus.completed
    return store.update(
        job_id,
        status=status,
        progress=100,
        current_status=(
            "Clone cancelled; partial archive created"
            if result.cancelled
            else "Clone completed successfully!"
        ),
        archive_path=str(archive_path),
        archive_size=_format_size(archive_path.stat().st_size),
        completed_at=datetime.now(timezone.utc),
    )

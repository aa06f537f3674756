"""Data structures representing discovered and fetched resources."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class ResourceCategory(str, Enum):
    """Kind of asset a reference points at."""

    html = "html"
    stylesheet = "stylesheet"
    script = "script"
    image = "image"
    font = "font"
    other = "other"


@dataclass(frozen=True, slots=True)
class ResourceRef:
    """A discovered pointer to a remote asset.

    ``generation`` is 0 for the root document, 1 for references found in the
    root document and 2 for references found while expanding stylesheets.
    """

    source_url: str
    category: ResourceCategory
    generation: int = 1


@dataclass(frozen=True, slots=True)
class FetchError:
    """Outcome of a failed fetch. Returned as a value, never raised."""

    url: str
    cause: str
    status_code: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.url}: {self.cause}"


@dataclass(frozen=True, slots=True)
class RegisteredResource:
    """A claimed resource together with its fetch outcome."""

    source_url: str
    offline_path: str
    category: ResourceCategory
    generation: int = 1
    content: Optional[bytes] = None
    fetch_error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.content is not None and self.fetch_error is None


@dataclass(slots=True)
class CrawlStats:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


@dataclass(slots=True)
class CrawlResult:
    """Terminal output of one crawl.

    ``resources`` is in discovery order and never contains the root document,
    which is carried separately as ``rewritten_document``.
    """

    root_url: str
    rewritten_document: str
    final_url: str = ""
    resources: Tuple[RegisteredResource, ...] = ()
    stats: CrawlStats = field(default_factory=CrawlStats)
    cancelled: bool = False
    root_document_name: str = "index.html"

    @property
    def total_files(self) -> int:
        """Number of files in the clone, root document included."""
        return len(self.resources) + 1

    @property
    def failures(self) -> Tuple[RegisteredResource, ...]:
        return tuple(res for res in self.resources if not res.ok)

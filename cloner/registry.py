"""Registry of claimed resources and their offline paths."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Container, Dict, List, NamedTuple, Optional, Set, Tuple, Union

from .errors import ResourceAlreadyRecordedError, UnknownResourceError
from .paths import resolve_offline_path
from .resources import FetchError, RegisteredResource, ResourceCategory, ResourceRef

LOGGER = logging.getLogger(__name__)

PathResolver = Callable[[str, ResourceCategory, Container[str]], str]


class Claim(NamedTuple):
    """Result of :meth:`ResourceRegistry.claim`."""

    offline_path: str
    created: bool


@dataclass
class _Entry:
    ref: ResourceRef
    offline_path: str
    content: Optional[bytes] = None
    fetch_error: Optional[FetchError] = None
    recorded: bool = False


class ResourceRegistry:
    """Single source of truth for the URL to offline path mapping.

    All mutations happen under one lock, so concurrent claims for the same
    URL commit exactly one entry and every caller observes the same path.
    Entries keep their claim order, which is the discovery order.
    """

    def __init__(self, resolver: PathResolver = resolve_offline_path):
        self._resolver = resolver
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}
        self._paths: Set[str] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._entries

    def claim(self, ref: ResourceRef) -> Claim:
        with self._lock:
            existing = self._entries.get(ref.source_url)
            if existing is not None:
                return Claim(existing.offline_path, False)
            path = self._resolver(ref.source_url, ref.category, self._paths)
            self._entries[ref.source_url] = _Entry(ref=ref, offline_path=path)
            self._paths.add(path)
        LOGGER.debug("Claimed %s -> %s", ref.source_url, path)
        return Claim(path, True)

    def record(self, source_url: str, outcome: Union[bytes, FetchError]) -> None:
        """Attach a fetch outcome to a claimed entry."""
        with self._lock:
            entry = self._entries.get(source_url)
            if entry is None:
                raise UnknownResourceError(source_url)
            if entry.recorded:
                raise ResourceAlreadyRecordedError(source_url)
            if isinstance(outcome, FetchError):
                entry.fetch_error = outcome
            else:
                entry.content = bytes(outcome)
            entry.recorded = True

    def offline_path(self, source_url: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(source_url)
            return entry.offline_path if entry else None

    def pending(self) -> List[ResourceRef]:
        """Claimed refs without a recorded outcome, in discovery order."""
        with self._lock:
            return [e.ref for e in self._entries.values() if not e.recorded]

    def snapshot(self) -> Tuple[RegisteredResource, ...]:
        with self._lock:
            return tuple(
                RegisteredResource(
                    source_url=url,
                    offline_path=entry.offline_path,
                    category=entry.ref.category,
                    generation=entry.ref.generation,
                    content=entry.content,
                    fetch_error=entry.fetch_error,
                )
                for url, entry in self._entries.items()
            )

"""Factory functions for clone options."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8
DEFAULT_TIMEOUT = 15.0
DEFAULT_USER_AGENT = "siteclone/0.1 (+offline website copy)"
DEFAULT_MAX_DEPTH = 3


@dataclass(frozen=True)
class CloneOptions:
    """Options honored by one crawl.

    ``follow_subdomains`` and ``max_depth`` are accepted for compatibility with
    job submissions but do not widen the crawl: only the root document and the
    resources it references are fetched.
    """

    include_images: bool = True
    include_fonts: bool = True
    include_js: bool = True
    follow_subdomains: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class OptionOverrides:
    """Optional per-run overrides."""

    include_images: Optional[bool] = None
    include_fonts: Optional[bool] = None
    include_js: Optional[bool] = None
    follow_subdomains: Optional[bool] = None
    max_depth: Optional[int] = None
    concurrency: Optional[int] = None
    timeout: Optional[float] = None
    user_agent: Optional[str] = None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        LOGGER.warning("Invalid %s '%s'; falling back to %d.", name, raw, default)
        return default
    if value < 1:
        LOGGER.warning("%s must be positive; falling back to %d.", name, default)
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("Invalid %s '%s'; falling back to %s.", name, raw, default)
        return default
    if value <= 0:
        LOGGER.warning("%s must be positive; falling back to %s.", name, default)
        return default
    return value


def _apply_overrides(options: CloneOptions, overrides: OptionOverrides) -> CloneOptions:
    changes = {
        name: value
        for name, value in vars(overrides).items()
        if value is not None
    }
    if changes.get("concurrency") is not None and changes["concurrency"] < 1:
        LOGGER.warning("Ignoring concurrency %s; must be at least 1.", changes["concurrency"])
        del changes["concurrency"]
    if changes.get("timeout") is not None and changes["timeout"] <= 0:
        LOGGER.warning("Ignoring timeout %s; must be positive.", changes["timeout"])
        del changes["timeout"]
    return replace(options, **changes)


def build_clone_options(overrides: Optional[OptionOverrides] = None) -> CloneOptions:
    """Options from environment defaults, then explicit overrides.

    Environment variables are read at call time so late ``.env`` loading and
    test monkeypatching both take effect.
    """
    options = CloneOptions(
        concurrency=_env_int("SITECLONE_CONCURRENCY", DEFAULT_CONCURRENCY),
        timeout=_env_float("SITECLONE_TIMEOUT", DEFAULT_TIMEOUT),
        user_agent=os.getenv("SITECLONE_USER_AGENT") or DEFAULT_USER_AGENT,
    )
    if overrides:
        options = _apply_overrides(options, overrides)
    return options


def default_output_dir() -> str:
    return os.getenv("SITECLONE_OUTPUT_DIR") or "."

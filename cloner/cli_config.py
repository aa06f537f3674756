"""Locate and load the .env file used by the command-line entry points."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "siteclone"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"
EXAMPLE_ENV_FILE = Path(__file__).parent.parent / ".env.example"


def _bootstrap_user_config(
    config_dir: Path,
    config_env_file: Path,
    copy_file: Callable[[Path, Path], str],
) -> Optional[Path]:
    """Seed the user config from .env.example; None when that is not possible."""
    if not EXAMPLE_ENV_FILE.is_file():
        return None
    try:
        config_dir.mkdir(parents=True, exist_ok=True)
        copy_file(EXAMPLE_ENV_FILE, config_env_file)
    except OSError as exc:
        LOGGER.debug("Could not create %s: %s", config_env_file, exc)
        return None
    LOGGER.info(
        "Created %s from .env.example; edit it to set SITECLONE_* defaults",
        config_env_file,
    )
    return config_env_file


def load_config(
    *,
    config_dir: Path,
    config_env_file: Path,
    cwd: Path,
    load_env: Callable[[Path], bool],
    copy_file: Callable[[Path, Path], str],
) -> Optional[Path]:
    """Load the first .env found and return its path.

    Search order is ``<cwd>/.env`` then ``~/.config/siteclone/.env``. When
    neither exists the user config is seeded from the bundled .env.example.
    """
    for candidate in (cwd / ".env", config_env_file):
        if candidate.is_file():
            load_env(candidate)
            LOGGER.debug("Loaded configuration from %s", candidate)
            return candidate

    created = _bootstrap_user_config(config_dir, config_env_file, copy_file)
    if created is not None:
        load_env(created)
    return created

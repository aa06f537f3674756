"""Map remote resource URLs to offline archive paths."""

from __future__ import annotations

import posixpath
import re
from typing import Container, Dict
from urllib.parse import unquote, urlsplit

from .resources import ResourceCategory

_FOLDERS: Dict[ResourceCategory, str] = {
    ResourceCategory.html: "",
    ResourceCategory.stylesheet: "assets/css",
    ResourceCategory.script: "assets/js",
    ResourceCategory.image: "assets/images",
    ResourceCategory.font: "assets/fonts",
    ResourceCategory.other: "assets",
}

_DEFAULT_FILENAMES: Dict[ResourceCategory, str] = {
    ResourceCategory.html: "index.html",
    ResourceCategory.stylesheet: "style.css",
    ResourceCategory.script: "script.js",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_MAX_FILENAME = 200


def category_folder(category: ResourceCategory) -> str:
    return _FOLDERS.get(ResourceCategory(category), "assets")


def filename_for_url(url: str, category: ResourceCategory) -> str:
    """Derive a safe filename from the last path segment of ``url``."""
    path = urlsplit(url).path
    segment = unquote(path.rsplit("/", 1)[-1]) if path else ""
    name = _UNSAFE_CHARS.sub("_", segment).strip()
    if name in ("", ".", ".."):
        return _DEFAULT_FILENAMES.get(ResourceCategory(category), "asset")
    if name.startswith("."):
        name = "_" + name[1:]
    if len(name) > _MAX_FILENAME:
        stem, ext = posixpath.splitext(name)
        name = stem[: _MAX_FILENAME - len(ext)] + ext
    return name


def resolve_offline_path(
    url: str,
    category: ResourceCategory,
    existing_paths: Container[str],
) -> str:
    """Return the offline path for ``url``.

    ``existing_paths`` holds the paths already assigned to other URLs. When the
    derived ``folder/filename`` is taken, ``-1``, ``-2``, ... is inserted before
    the extension until the path is free, so ``style.css`` served from two
    directories becomes ``style.css`` and ``style-1.css``.
    """
    folder = category_folder(category)
    filename = filename_for_url(url, category)
    candidate = posixpath.join(folder, filename) if folder else filename
    if candidate not in existing_paths:
        return candidate

    stem, ext = posixpath.splitext(filename)
    counter = 1
    while True:
        numbered = f"{stem}-{counter}{ext}"
        candidate = posixpath.join(folder, numbered) if folder else numbered
        if candidate not in existing_paths:
            return candidate
        counter += 1

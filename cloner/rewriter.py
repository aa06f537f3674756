"""Rewrite resource references to their offline paths.

The rewriter only reads a registry snapshot; it never assigns paths. A
reference is rewritten according to three rules:

- a value that resolves to a successfully fetched resource becomes that
  resource's offline path;
- otherwise a value that is already an offline path is left alone, which
  keeps the rewrite idempotent;
- any other http(s) reference becomes its absolute URL, so failed or skipped
  resources keep loading from the original site.

``srcset`` candidates follow the same rules candidate by candidate.
"""

from __future__ import annotations

import posixpath
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import urldefrag, urljoin, urlsplit

from bs4 import BeautifulSoup

from .resources import RegisteredResource

PARSER = "html.parser"

CSS_URL_RE = re.compile(r"""url\(\s*(['"]?)([^'"()]*?)\1\s*\)""", re.IGNORECASE)
SRCSET_SPLIT_RE = re.compile(r"\s*,\s*")
WS_RE = re.compile(r"\s+")

# tag name, attribute, optional rel tokens the tag must carry
REWRITE_TARGETS: List[Tuple[str, str, Optional[Set[str]]]] = [
    ("link", "href", {"stylesheet", "icon", "apple-touch-icon"}),
    ("script", "src", None),
    ("img", "src", None),
]

_STRIP_ON_REWRITE = ("integrity", "crossorigin")


class _Lookup:
    """Read-only view of a snapshot keyed for reference matching."""

    def __init__(self, snapshot: Iterable[RegisteredResource]):
        self.paths: Dict[str, str] = {}
        self.offline_paths: Set[str] = set()
        for resource in snapshot:
            self.offline_paths.add(resource.offline_path)
            if resource.ok:
                self.paths[resource.source_url] = resource.offline_path

    def resolve(self, value: str, base_url: str) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(offline_path, absolute_url)`` for a reference value."""
        try:
            absolute, _ = urldefrag(urljoin(base_url, value))
            scheme = urlsplit(absolute).scheme
        except ValueError:
            return None, None
        if scheme not in ("http", "https"):
            return None, None
        return self.paths.get(absolute), absolute

    def target(self, value: str, base_url: str) -> Tuple[str, bool]:
        """Return the rewritten value and whether it was mapped to a fetched resource."""
        offline_path, absolute = self.resolve(value, base_url)
        if offline_path is not None:
            return offline_path, True
        if value in self.offline_paths or absolute is None:
            return value, False
        return absolute, False


def effective_base_url(soup: BeautifulSoup, fallback: str) -> str:
    tag = soup.find("base", href=True)
    if tag is not None and tag.get("href"):
        try:
            return urljoin(fallback, tag["href"])
        except ValueError:
            return fallback
    return fallback


def rel_tokens(tag) -> Set[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return {token.lower() for token in rel}


def rewrite_srcset(srcset: str, lookup: _Lookup, base_url: str) -> str:
    candidates = []
    for candidate in SRCSET_SPLIT_RE.split(srcset.strip()):
        parts = WS_RE.split(candidate.strip()) if candidate else []
        if not parts or not parts[0]:
            continue
        url, descriptor = parts[0], " ".join(parts[1:])
        url, _ = lookup.target(url, base_url)
        candidates.append(f"{url} {descriptor}".strip())
    return ", ".join(candidates)


def rewrite_document(
    document_html: str,
    snapshot: Iterable[RegisteredResource],
    base_url: str,
) -> str:
    """Point stylesheet, script and image references at offline paths."""
    lookup = _Lookup(snapshot)
    soup = BeautifulSoup(document_html, PARSER)
    base = effective_base_url(soup, base_url)

    for tag_name, attr, rels in REWRITE_TARGETS:
        for tag in soup.find_all(tag_name):
            value = tag.get(attr)
            if not value or not value.strip():
                continue
            if rels is not None and not (rel_tokens(tag) & rels):
                continue
            tag[attr], mapped = lookup.target(value.strip(), base)
            if mapped:
                for name in _STRIP_ON_REWRITE:
                    if name in tag.attrs:
                        del tag.attrs[name]

    for tag in soup.select("img[srcset], source[srcset]"):
        # Inline data URIs contain commas and cannot be split into candidates.
        if tag["srcset"].lstrip().startswith("data:"):
            continue
        tag["srcset"] = rewrite_srcset(tag["srcset"], lookup, base)

    for base_tag in soup.find_all("base"):
        base_tag.decompose()

    return str(soup)


def rewrite_stylesheet(
    css_text: str,
    stylesheet_url: str,
    stylesheet_path: str,
    snapshot: Iterable[RegisteredResource],
) -> str:
    """Rewrite ``url()`` references inside one stylesheet.

    Offline targets are expressed relative to the stylesheet's own folder, e.g.
    ``../fonts/f.woff2`` for a sheet stored under ``assets/css``.
    ``stylesheet_url`` is the URL the sheet was served from after redirects.
    """
    lookup = _Lookup(snapshot)
    sheet_dir = posixpath.dirname(stylesheet_path)

    def relative(path: str) -> str:
        return posixpath.relpath(path, sheet_dir) if sheet_dir else path

    relative_paths = {relative(path) for path in lookup.offline_paths}

    def replace(match: re.Match) -> str:
        quote, value = match.group(1), match.group(2).strip()
        if not value or value.startswith("#"):
            return match.group(0)
        offline_path, absolute = lookup.resolve(value, stylesheet_url)
        if offline_path is not None:
            return f"url({quote}{relative(offline_path)}{quote})"
        if absolute is not None and value not in relative_paths:
            return f"url({quote}{absolute}{quote})"
        return match.group(0)

    return CSS_URL_RE.sub(replace, css_text)

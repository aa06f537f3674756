"""Extract font references from stylesheet text."""

from __future__ import annotations

import logging
import re
from typing import Iterator
from urllib.parse import urldefrag, urljoin, urlsplit

LOGGER = logging.getLogger(__name__)

FONT_EXTENSIONS = ("woff2", "woff", "ttf", "otf", "eot")

FONT_URL_RE = re.compile(
    r"""url\(\s*(['"]?)"""
    r"""([^'"()\s]+?\.(?:woff2|woff|ttf|otf|eot)(?:[?#][^'"()\s]*)?)"""
    r"""\1\s*\)""",
    re.IGNORECASE,
)


class FontUrls:
    """Absolute font URLs referenced by one stylesheet.

    Iteration is lazy and rescans the text each time, so the sequence can be
    consumed more than once.
    """

    __slots__ = ("css_text", "base_url")

    def __init__(self, css_text: str, base_url: str):
        self.css_text = css_text
        self.base_url = base_url

    def __iter__(self) -> Iterator[str]:
        return _scan(self.css_text, self.base_url)

    def __repr__(self) -> str:
        return f"FontUrls(base_url={self.base_url!r})"


def extract_font_urls(css_text: str, base_url: str) -> FontUrls:
    return FontUrls(css_text or "", base_url)


def _scan(css_text: str, base_url: str) -> Iterator[str]:
    for match in FONT_URL_RE.finditer(css_text):
        reference = match.group(2)
        try:
            absolute, _ = urldefrag(urljoin(base_url, reference))
            scheme = urlsplit(absolute).scheme
        except ValueError as exc:
            LOGGER.warning("Skipping malformed font reference %r: %s", reference, exc)
            continue
        if scheme not in ("http", "https"):
            LOGGER.debug("Skipping non-http font reference %r", reference)
            continue
        yield absolute

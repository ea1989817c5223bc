"""Utility functions for Folio.

This module contains various utility functions used throughout the Folio codebase.
These include slug generation, string processing, path handling and date extraction.

Key functions:
    slugify: Convert titles, paths and terms to URL-safe identifiers.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract date from filename prefix.
    strip_date_prefix: Remove a YYYY-MM-DD prefix from a filename stem.
    is_markdown: Check if a path is a Markdown file.

Key classes:
    AnchorSlugger: Generates per-document unique heading anchors.

Note:
    URL joining and HTML structure helpers live in html_utils.py.
"""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import datetime
from pathlib import Path

SLUGIFY_MODES = ("paths", "taxonomies", "anchors")
SLUGIFY_STRATEGIES = ("on", "safe", "off")

DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[-_](?P<rest>.*))?$")

_APOSTROPHES_RE = re.compile(r"['‘’ʼ]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_UNSAFE_RE = re.compile(r"[<>:\"/\\|?*#'\x00-\x1f\x7f]")
_WHITESPACE_RE = re.compile(r"\s+")
_WORD_RE = re.compile(r"\w+", re.UNICODE)

WORDS_PER_MINUTE = 200


def slugify(raw: str, mode: str = "paths", strategy: str = "on") -> str:
    """Convert an arbitrary string to a URL-safe identifier.

    The transform is pure and total: the same input under the same strategy
    always yields the same slug, and it never raises. An empty result is
    possible; callers decide what to fall back on.

    Args:
        raw: The title, path segment or term to convert.
        mode: Which switch applies ("paths", "taxonomies" or "anchors").
            Only used for validation; all modes share one algorithm.
        strategy: "on" for full slugification, "safe" to only strip
            characters that are unsafe in paths, "off" for identity.

    Returns:
        The slug.

    Examples:
        >>> slugify("It's all about memory")
        'its-all-about-memory'

        >>> slugify("Café Au Lait", strategy="safe")
        'Café-Au-Lait'
    """
    if mode not in SLUGIFY_MODES:
        raise ValueError(f"Unknown slugify mode: {mode}")
    if strategy == "off":
        return raw
    if strategy == "safe":
        cleaned = _UNSAFE_RE.sub("", raw).strip()
        return _WHITESPACE_RE.sub("-", cleaned)
    if strategy != "on":
        raise ValueError(f"Unknown slugify strategy: {strategy}")

    normalized = unicodedata.normalize("NFKD", raw)
    ascii_only = "".join(c for c in normalized if not unicodedata.combining(c))
    ascii_only = ascii_only.encode("ascii", "ignore").decode("ascii")
    cleaned = _APOSTROPHES_RE.sub("", ascii_only).lower()
    cleaned = _NON_ALNUM_RE.sub("-", cleaned)
    return cleaned.strip("-")


class AnchorSlugger:
    """Generates heading anchors that are unique within one document.

    A collision gets a numeric suffix (-2, -3, ...) in first-seen order.
    Create a fresh instance for every rendered document.
    """

    def __init__(self, strategy: str = "on"):
        self.strategy = strategy
        self._seen: set[str] = set()
        self._counts: dict[str, int] = {}

    def __call__(self, text: str) -> str:
        base = slugify(text, "anchors", self.strategy) or "section"
        anchor = base
        if anchor in self._seen:
            count = self._counts.get(base, 1)
            while anchor in self._seen:
                count += 1
                anchor = f"{base}-{count}"
            self._counts[base] = count
        self._seen.add(anchor)
        return anchor


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.
    """
    match = DATE_PREFIX_RE.match(name)
    if not match:
        return None
    year, month, day = (int(match.group(i)) for i in (1, 2, 3))
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def strip_date_prefix(name: str) -> str:
    """Remove a leading YYYY-MM-DD- or YYYY-MM-DD_ prefix from a stem.

    A stem that is only a date is returned unchanged.
    """
    match = DATE_PREFIX_RE.match(name)
    if match and match.group("rest"):
        return match.group("rest")
    return name


def count_words(text: str) -> int:
    """Count words in plain or markdown text."""
    return len(_WORD_RE.findall(text))


def reading_time(word_count: int) -> int:
    """Estimated reading time in minutes, at least one for non-empty text."""
    if word_count <= 0:
        return 0
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .md extension (case-insensitive).
    """
    return path.suffix.lower() == ".md"


def is_section_file(path: Path) -> bool:
    """Check if a path is a section index (_index.md)."""
    return path.name == "_index.md"


def is_hidden(path: Path) -> bool:
    """Check if any component of a relative path is hidden (starts with a dot)."""
    return any(part.startswith(".") for part in path.parts)

"""HTML utility functions for Folio.

This module provides HTML helpers: URL joining, redirect pages, and a
structural fingerprint of a document used to check that minification did
not change what a browser would build.

Functions:
    join_root_url: Join a base URL with a path.
    redirect_html: Minimal page redirecting to another URL.
    html_structure: Tag sequence and visible text of a document.
"""

from __future__ import annotations

from html.parser import HTMLParser

from markupsafe import escape

# Whitespace inside these elements is content, not formatting.
_PRESERVE_TAGS = {"pre", "textarea"}
# Content of these elements is not visible text.
_IGNORED_TAGS = {"script", "style"}
# Browsers create these even when the tags are omitted.
_IMPLIED_TAGS = {"html", "head", "body"}


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about/')
        'https://example.com/about/'

        >>> join_root_url('https://example.com/', 'about/')
        'https://example.com/about/'
    """
    if path.startswith(("http://", "https://", "//")):
        return path
    base = (root_url or "").rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def redirect_html(target: str) -> str:
    """Return a page that redirects to target."""
    url = escape(target)
    return (
        "<!DOCTYPE html>\n"
        '<html><head><meta charset="utf-8">'
        f'<link rel="canonical" href="{url}">'
        f'<meta http-equiv="refresh" content="0; url={url}">'
        f'<title>Redirect</title></head><body><a href="{url}">Click here</a> to be redirected.</body></html>\n'
    )


class _StructureParser(HTMLParser):
    """Collects start tags and text tokens.

    Adjacent text nodes are merged (comments do not split them) before
    tokenizing, so dropping a comment does not change the result.
    """

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.tags: list[str] = []
        self.tokens: list[str] = []
        self._buffer: list[str] = []
        self._preserve = 0
        self._ignore = 0

    def handle_starttag(self, tag, attrs):
        self._flush()
        if tag not in _IMPLIED_TAGS:
            self.tags.append(tag)
        if tag in _PRESERVE_TAGS:
            self._preserve += 1
        elif tag in _IGNORED_TAGS:
            self._ignore += 1

    def handle_startendtag(self, tag, attrs):
        self._flush()
        self.tags.append(tag)

    def handle_endtag(self, tag):
        self._flush()
        if tag in _PRESERVE_TAGS and self._preserve:
            self._preserve -= 1
        elif tag in _IGNORED_TAGS and self._ignore:
            self._ignore -= 1

    def handle_data(self, data):
        self._buffer.append(data)

    def close(self):
        super().close()
        self._flush()

    def _flush(self):
        text = "".join(self._buffer)
        self._buffer = []
        if self._ignore:
            return
        if self._preserve:
            if text:
                self.tokens.append(text)
        else:
            self.tokens.extend(text.split())


def html_structure(html: str) -> tuple[list[str], list[str]]:
    """Return the start-tag sequence and visible text tokens of a document.

    Text outside whitespace-sensitive elements is split into words, so two
    documents that differ only in formatting whitespace or comments compare
    equal. Text inside pre and textarea is kept verbatim; script and style
    contents are not visible and are skipped.

    Args:
        html: HTML document or fragment.

    Returns:
        Tuple of (start tag names in document order, text tokens).
    """
    parser = _StructureParser()
    parser.feed(html)
    parser.close()
    return parser.tags, parser.tokens

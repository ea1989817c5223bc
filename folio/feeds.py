"""Feed generation for Folio.

This module serializes lists of pages into syndication documents (Atom,
RSS) and the sitemap. Following the Single Responsibility Principle, feed
generation is separate from build orchestration.

Feeds are read-only views over already sorted page lists: a generator
takes the first ``max_items`` published pages and never reorders them.
Every piece of text is escaped; rendered HTML bodies are written as
escaped text content, never spliced in raw.

Classes:
    FeedDocument: A serialized feed and the pages it lists.
    FeedGenerator: Base class for syndication formats.
    AtomGenerator: Atom 1.0 feeds.
    RSSGenerator: RSS 2.0 feeds.
    SitemapGenerator: sitemap.xml.

Functions:
    generator_for: Pick the feed format for an output filename.
    generate: Generate a feed for a section.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import TYPE_CHECKING

from markupsafe import escape

from .html_utils import join_root_url

if TYPE_CHECKING:
    from .content import Page, Section

EPOCH = datetime(1970, 1, 1)


@dataclass
class FeedDocument:
    """A serialized feed.

    Attributes:
        filename: Output filename, relative to the feed's directory.
        content: Serialized XML.
        entries: Pages listed in the feed, in feed order.
    """

    filename: str
    content: str
    entries: list[Page] = field(default_factory=list)


def select_entries(pages: Iterable[Page], max_items: int | None) -> list[Page]:
    """Take the first max_items published pages, keeping their order."""
    published = [p for p in pages if not p.draft]
    if max_items is None:
        return published
    return published[: max(max_items, 0)]


def _utc(value: datetime | None) -> datetime:
    return (value or EPOCH).replace(tzinfo=timezone.utc)


class FeedGenerator(ABC):
    """Abstract base class for syndication feed generators.

    Subclasses implement specific formats. New formats can be added by
    creating new subclasses without modifying existing code.
    """

    @abstractmethod
    def serialize(
        self,
        entries: Sequence[Page],
        title: str,
        base_url: str,
        feed_url: str,
        page_url: str,
        description: str = "",
        language: str = "en",
    ) -> str:
        """Serialize entries into a feed document.

        Args:
            entries: Pages to list, already ordered and capped.
            title: Feed title.
            base_url: Site base URL, used to absolutize links.
            feed_url: Absolute URL of the feed itself.
            page_url: Absolute URL of the page the feed belongs to.
            description: Feed description.
            language: Language code.

        Returns:
            The XML document.
        """
        ...

    def generate(
        self,
        filename: str,
        pages: Iterable[Page],
        max_items: int | None,
        title: str,
        base_url: str,
        path: str = "/",
        description: str = "",
        language: str = "en",
    ) -> FeedDocument:
        """Generate a feed over pages.

        Args:
            filename: Output filename.
            pages: Pages in date-descending order.
            max_items: Maximum number of entries, None for all.
            title: Feed title.
            base_url: Site base URL.
            path: URL path of the page owning the feed (section or term).
            description: Feed description.
            language: Language code.

        Returns:
            FeedDocument; an empty page list yields a valid empty feed.
        """
        entries = select_entries(pages, max_items)
        page_url = join_root_url(base_url, path)
        feed_url = join_root_url(base_url, f"{path.rstrip('/')}/{filename}")
        content = self.serialize(entries, title, base_url, feed_url, page_url, description, language)
        return FeedDocument(filename=filename, content=content, entries=entries)


class AtomGenerator(FeedGenerator):
    """Generates Atom 1.0 feeds."""

    def serialize(self, entries, title, base_url, feed_url, page_url, description="", language="en"):
        updated = max((_utc(p.last_modified) for p in entries), default=_utc(None))
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<feed xmlns="http://www.w3.org/2005/Atom" xml:lang="{escape(language)}">',
            f"  <title>{escape(title)}</title>",
        ]
        if description:
            lines.append(f"  <subtitle>{escape(description)}</subtitle>")
        lines += [
            f'  <link rel="self" type="application/atom+xml" href="{escape(feed_url)}"/>',
            f'  <link rel="alternate" type="text/html" href="{escape(page_url)}"/>',
            f"  <updated>{updated.isoformat()}</updated>",
            f"  <id>{escape(feed_url)}</id>",
        ]
        for page in entries:
            link = escape(join_root_url(base_url, page.url))
            lines += [
                "  <entry>",
                f"    <title>{escape(page.title)}</title>",
                f"    <published>{_utc(page.date).isoformat()}</published>",
                f"    <updated>{_utc(page.last_modified).isoformat()}</updated>",
                f'    <link rel="alternate" type="text/html" href="{link}"/>',
                f"    <id>{link}</id>",
            ]
            if page.description:
                lines.append(f"    <summary>{escape(page.description)}</summary>")
            lines += [
                f'    <content type="html" xml:base="{link}">{escape(page.listing_html())}</content>',
                "  </entry>",
            ]
        lines.append("</feed>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """Generates RSS 2.0 feeds."""

    def serialize(self, entries, title, base_url, feed_url, page_url, description="", language="en"):
        build_date = max((_utc(p.last_modified) for p in entries), default=_utc(None))
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">',
            "<channel>",
            f"  <title>{escape(title)}</title>",
            f"  <link>{escape(page_url)}</link>",
            f"  <description>{escape(description or title)}</description>",
            f"  <language>{escape(language)}</language>",
            f'  <atom:link href="{escape(feed_url)}" rel="self" type="application/rss+xml"/>',
            f"  <lastBuildDate>{format_datetime(build_date)}</lastBuildDate>",
        ]
        for page in entries:
            link = escape(join_root_url(base_url, page.url))
            lines += [
                "  <item>",
                f"    <title>{escape(page.title)}</title>",
                f"    <link>{link}</link>",
                f"    <guid>{link}</guid>",
                f"    <pubDate>{format_datetime(_utc(page.date))}</pubDate>",
                f"    <description>{escape(page.listing_html())}</description>",
                "  </item>",
            ]
        lines += ["</channel>", "</rss>"]
        return "\n".join(lines) + "\n"


def generator_for(filename: str) -> FeedGenerator:
    """Pick the feed format for an output filename.

    Filenames containing "rss" produce RSS 2.0; everything else is Atom.
    """
    if "rss" in filename.lower():
        return RSSGenerator()
    return AtomGenerator()


def generate(
    section: Section,
    max_items: int | None,
    base_url: str,
    filename: str = "atom.xml",
    site_title: str = "",
    language: str = "en",
) -> FeedDocument:
    """Generate a feed for a section.

    Args:
        section: Section whose pages are listed date descending, whatever the
            section's own sort_by; drafts are excluded.
        max_items: Maximum number of entries, None for all.
        base_url: Site base URL.
        filename: Output filename; selects the format.
        site_title: Prefix for the feed title.
        language: Language code.

    Returns:
        FeedDocument.
    """
    title = " - ".join(t for t in (site_title, section.title) if t) or "Feed"
    return generator_for(filename).generate(
        filename,
        sorted(section.pages, key=lambda p: p.sort_key),
        max_items,
        title,
        base_url,
        path=section.url,
        description=section.description or "",
        language=language,
    )


class SitemapGenerator:
    """Generates sitemap.xml for search engine indexing.

    Lists every published page, section and taxonomy page with absolute
    URLs. Entries are sorted by URL so the output is stable.
    """

    filename = "sitemap.xml"

    def generate(self, base_url: str, entries: Iterable[tuple[str, datetime | None]]) -> str:
        """Generate sitemap.xml content.

        Args:
            base_url: Site base URL.
            entries: (URL path, last modification date or None) pairs.

        Returns:
            Sitemap XML content.
        """
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for url, lastmod in sorted(set(entries), key=lambda e: e[0]):
            loc = escape(join_root_url(base_url, url))
            if lastmod:
                lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod.strftime('%Y-%m-%d')}</lastmod></url>")
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"

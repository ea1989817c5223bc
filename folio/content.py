"""Content processing for Folio.

This module turns content files into a graph of sections and pages. It
parses front matter, renders bodies, derives slugs and URLs, and attaches
every page to the section matching its directory.

Key classes:
- Page: Dataclass representing a site page with all its metadata.
- Section: Dataclass representing a directory-scoped group of pages.
- PageOptions: Flat record of per-page presentation toggles.
- ContentGraph: Sections and pages of the whole site.
- FileContentLoader: Discovers and reads content files.
- UrlDeriver: Derives slugs and URLs for pages and sections.
- ContentGraphBuilder: Builds a ContentGraph from (path, raw text) pairs.

Design:
- Parsing and rendering of each file is independent, so it runs on a
  thread pool. Every worker owns one file and returns a fresh Page.
- Assembly waits for all workers and is the only place that creates
  cross-page relationships and checks URL uniqueness.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from .config import SiteConfig
from .errors import BuildError, DuplicateURL
from .extractors import FrontMatter, parse_frontmatter, parse_section_frontmatter
from .protocols import ContentRenderer
from .renderers import Heading, MarkdownRenderer
from .shortcodes import ShortcodeRegistry
from .utils import (
    count_words,
    extract_date_from_name,
    is_hidden,
    is_markdown,
    is_section_file,
    reading_time,
    slugify,
    strip_date_prefix,
    titleize,
)

logger = logging.getLogger(__name__)

SECTION_FILENAME = "_index.md"
BUNDLE_FILENAME = "index.md"
LAYOUTS = ("list", "recent", "about")
SORT_MODES = ("date", "weight", "title", "none")


@dataclass(frozen=True)
class PageOptions:
    """Presentation toggles of a page.

    Each value is resolved with explicit precedence: the page's ``extra``,
    then its section's ``extra``, then the site ``[extra]``, then the
    default declared here.
    """

    toc: bool = False
    copy: bool = False
    comment: bool = False
    display_tags: bool = True
    truncate_summary: bool = False
    outdate_alert: bool = False
    outdate_alert_days: int = 120
    math: bool = False
    mermaid: bool = False
    featured: bool = False

    @classmethod
    def resolve(cls, *layers: Mapping[str, Any]) -> PageOptions:
        """Resolve options from layers ordered most specific first."""
        values: dict[str, Any] = {}
        for option in fields(cls):
            for layer in layers:
                if option.name in layer:
                    values[option.name] = layer[option.name]
                    break
        return cls(**values)


@dataclass
class Page:
    """Represents a site page with all its metadata and content.

    Attributes:
        path: Source path relative to the content directory (identity).
        title: Human-readable title of the page.
        description: Optional description from front matter.
        date: Publication date, or None if undated.
        updated: Date of the last update, or None.
        draft: Whether this is a draft page.
        raw_body: Markdown body without front matter.
        content: Rendered HTML content.
        summary: Rendered HTML before ``<!-- more -->``, or None.
        taxonomies: Taxonomy name to declared term strings.
        extra: Open extension mapping from front matter.
        options: Resolved presentation toggles.
        slug: URL-friendly slug.
        url: URL path for the page, e.g. /blog/my-post/.
        section: Path of the owning section ("" for the root).
        toc: Headings for the table of contents.
        word_count: Number of words in the body.
        reading_time: Estimated reading time in minutes.
        aliases: URLs that redirect to this page.
        template: Template override.
        weight: Optional manual ordering weight.
    """

    path: PurePosixPath
    title: str
    description: str | None = None
    date: datetime | None = None
    updated: datetime | None = None
    draft: bool = False
    raw_body: str = ""
    content: str = ""
    summary: str | None = None
    taxonomies: dict[str, list[str]] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    options: PageOptions = field(default_factory=PageOptions)
    slug: str = ""
    url: str = ""
    section: str = ""
    toc: list[Heading] = field(default_factory=list)
    word_count: int = 0
    reading_time: int = 0
    aliases: list[str] = field(default_factory=list)
    template: str | None = None
    weight: int | None = None

    @property
    def sort_key(self) -> tuple:
        """Key for date-descending order with ties broken by path ascending."""
        age = (self.date - datetime.min).total_seconds() if self.date else float("-inf")
        return (-age, str(self.path))

    @property
    def last_modified(self) -> datetime | None:
        return self.updated or self.date

    def listing_html(self) -> str:
        """HTML for listings and feeds: the summary when truncation is on."""
        if self.options.truncate_summary and self.summary:
            return self.summary
        return self.content


@dataclass
class Section:
    """A directory-scoped group of pages.

    Attributes:
        path: Directory relative to the content directory ("" for the root).
        title: Section title.
        description: Optional description.
        url: URL of the section index.
        layout: "list", "recent" or "about"; controls the index listing.
        extra: Open extension mapping from _index.md.
        content: Rendered HTML body of _index.md.
        pages: Non-draft pages in ``sort_by`` order.
        subsections: Paths of direct child sections.
        parent: Path of the parent section, None for the root.
        template: Template override.
        generate_feeds: Whether this section gets its own feeds.
        source: Source path of _index.md, or None for implicit sections.
        sort_by: "date" (newest first), "weight" (lowest first, unweighted
            last), "title", or "none" (source path order).
    """

    path: str
    title: str
    description: str | None = None
    url: str = "/"
    layout: str = "list"
    extra: dict[str, Any] = field(default_factory=dict)
    content: str = ""
    pages: list[Page] = field(default_factory=list)
    subsections: list[str] = field(default_factory=list)
    parent: str | None = None
    template: str | None = None
    generate_feeds: bool = False
    source: PurePosixPath | None = None
    sort_by: str = "date"

    def sort_pages(self) -> None:
        """Order pages by sort_by; ties fall back to date order."""
        if self.sort_by == "weight":
            self.pages.sort(key=lambda p: (p.weight is None, p.weight or 0, p.sort_key))
        elif self.sort_by == "title":
            self.pages.sort(key=lambda p: (p.title.casefold(), p.sort_key))
        elif self.sort_by == "none":
            self.pages.sort(key=lambda p: str(p.path))
        else:
            self.pages.sort(key=lambda p: p.sort_key)

    def listing(self, recent_max: int = 15) -> list[Page]:
        """Pages shown on the section index for its layout mode."""
        if self.layout == "about":
            return []
        if self.layout == "recent":
            return self.pages[:recent_max]
        return list(self.pages)


@dataclass
class ContentGraph:
    """All sections and pages of a site.

    Attributes:
        sections: Sections keyed by path; the root section has path "".
        pages: Every page, drafts included, keyed by source path.
    """

    sections: dict[str, Section] = field(default_factory=dict)
    pages: dict[PurePosixPath, Page] = field(default_factory=dict)

    @property
    def root(self) -> Section:
        return self.sections[""]

    def published_pages(self) -> list[Page]:
        """Non-draft pages, date descending then path ascending."""
        return sorted((p for p in self.pages.values() if not p.draft), key=lambda p: p.sort_key)

    def draft_pages(self) -> list[Page]:
        return sorted((p for p in self.pages.values() if p.draft), key=lambda p: str(p.path))

    def section_for(self, page: Page) -> Section:
        return self.sections[page.section]


class FileContentLoader:
    """Loads content files from a directory.

    Attributes:
        content_dir: Directory containing markdown content.
    """

    def __init__(self, content_dir: Path):
        self.content_dir = content_dir

    def iter_files(self) -> list[Path]:
        """Return every markdown file, sorted, skipping hidden paths."""
        if not self.content_dir.exists():
            return []
        files = []
        for path in sorted(self.content_dir.rglob("*.md")):
            rel = path.relative_to(self.content_dir)
            if path.is_file() and not is_hidden(rel):
                files.append(path)
        return files

    def load(self) -> list[tuple[PurePosixPath, str]]:
        """Read every content file.

        Returns:
            List of (relative posix path, raw text) pairs.
        """
        return [
            (PurePosixPath(path.relative_to(self.content_dir).as_posix()), path.read_text(encoding="utf-8"))
            for path in self.iter_files()
        ]


class UrlDeriver:
    """Derives slugs and URLs for pages and sections.

    Attributes:
        strategy: Slugify strategy for paths.
    """

    def __init__(self, strategy: str = "on"):
        self.strategy = strategy

    def section_path(self, rel: PurePosixPath) -> str:
        """Directory of the section a content file belongs to."""
        parent = rel.parent
        if rel.name == BUNDLE_FILENAME:
            parent = parent.parent
        return "" if str(parent) == "." else parent.as_posix()

    def section_url(self, section_path: str) -> str:
        if not section_path:
            return "/"
        segments = [self._segment(part) for part in PurePosixPath(section_path).parts]
        return "/" + "/".join(segments) + "/"

    def page_slug(self, rel: PurePosixPath, front_matter: FrontMatter) -> str:
        """Slug from the explicit override, else the file or bundle name."""
        if front_matter.slug is not None:
            source = front_matter.slug
        elif rel.name == BUNDLE_FILENAME and str(rel.parent) != ".":
            source = strip_date_prefix(rel.parent.name)
        else:
            source = strip_date_prefix(rel.stem)
        return slugify(source, "paths", self.strategy) or "index"

    def page_url(self, section_path: str, slug: str, front_matter: FrontMatter) -> str:
        if front_matter.path is not None:
            return normalize_url(front_matter.path)
        base = self.section_url(section_path)
        return f"{base}{slug}/"

    def _segment(self, part: str) -> str:
        return slugify(part, "paths", self.strategy) or part


def normalize_url(path: str) -> str:
    """Return a URL path with exactly one leading and one trailing slash."""
    stripped = path.strip().strip("/")
    return f"/{stripped}/" if stripped else "/"


class ContentGraphBuilder:
    """Builds the content graph from raw content files.

    Attributes:
        config: Site configuration.
        renderer: Content renderer shared by all workers (stateless).
        url_deriver: Slug and URL derivation.
    """

    def __init__(
        self,
        config: SiteConfig,
        renderer: ContentRenderer | None = None,
        shortcodes: ShortcodeRegistry | None = None,
    ):
        self.config = config
        self.renderer = renderer or MarkdownRenderer(
            config.markdown, config.slugify, config.base_url, shortcodes
        )
        self.url_deriver = UrlDeriver(config.slugify.paths)

    def build(
        self, files: Sequence[tuple[PurePosixPath | str, str]], now: datetime | None = None
    ) -> ContentGraph:
        """Build a ContentGraph.

        Args:
            files: (path relative to the content directory, raw text) pairs.
            now: Reference time for future-date warnings.

        Returns:
            The assembled ContentGraph.

        Raises:
            BuildError: Attributed to the offending file for parse and render
                errors; DuplicateURL for URL collisions.
        """
        normalized = [(PurePosixPath(str(path)), raw) for path, raw in files]
        section_files = [(p, raw) for p, raw in normalized if is_section_file(Path(p.name))]
        page_files = [
            (p, raw)
            for p, raw in normalized
            if is_markdown(Path(p.name)) and not is_section_file(Path(p.name))
        ]

        graph = ContentGraph()
        for rel, raw in section_files:
            section = self._build_section(rel, raw)
            graph.sections[section.path] = section
        self._ensure_sections(graph, [self.url_deriver.section_path(p) for p, _ in page_files])

        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = [executor.submit(self._build_page, rel, raw, graph) for rel, raw in page_files]
            pages = [future.result() for future in futures]

        for page in sorted(pages, key=lambda p: str(p.path)):
            graph.pages[page.path] = page
            if not page.draft:
                graph.sections[page.section].pages.append(page)
        for section in graph.sections.values():
            section.sort_pages()

        self._check_urls(graph)
        self._warn_future_dates(graph, now or datetime.now())
        logger.info("Loaded %d pages in %d sections", len(graph.pages), len(graph.sections))
        return graph

    def _build_section(self, rel: PurePosixPath, raw: str) -> Section:
        try:
            front_matter, body = parse_section_frontmatter(raw, rel)
            rendered = self.renderer.render(body)
        except BuildError as exc:
            raise exc.with_path(rel)
        path = "" if str(rel.parent) == "." else rel.parent.as_posix()
        layout = front_matter.extra.get("layout")
        if layout is None:
            layout = self.config.homepage_layout if not path else "list"
        if layout not in LAYOUTS:
            raise BuildError(f"Unknown section layout {layout!r}", rel)
        sort_by = front_matter.unknown.get("sort_by", "date")
        if sort_by not in SORT_MODES:
            raise BuildError(f"Unknown sort_by {sort_by!r}; expected one of {', '.join(SORT_MODES)}", rel)
        return Section(
            path=path,
            title=front_matter.title or (titleize(PurePosixPath(path).name) if path else self.config.title),
            description=front_matter.description,
            url=self.url_deriver.section_url(path),
            layout=layout,
            extra=front_matter.extra,
            content=rendered.html,
            template=front_matter.template,
            generate_feeds=bool(front_matter.unknown.get("generate_feeds", False)),
            source=rel,
            sort_by=sort_by,
        )

    def _ensure_sections(self, graph: ContentGraph, paths: Sequence[str]) -> None:
        """Create implicit sections and link every section to its parent."""
        wanted = set(paths) | set(graph.sections) | {""}
        for path in list(wanted):
            parent = PurePosixPath(path).parent
            while path and str(parent) != ".":
                wanted.add(parent.as_posix())
                parent = parent.parent
        for path in sorted(wanted):
            if path not in graph.sections:
                graph.sections[path] = Section(
                    path=path,
                    title=titleize(PurePosixPath(path).name) if path else self.config.title,
                    url=self.url_deriver.section_url(path),
                    layout=self.config.homepage_layout if not path else "list",
                )
        for path in sorted(graph.sections):
            if not path:
                continue
            parent = PurePosixPath(path).parent
            parent_path = "" if str(parent) == "." else parent.as_posix()
            graph.sections[path].parent = parent_path
            graph.sections[parent_path].subsections.append(path)

    def _build_page(self, rel: PurePosixPath, raw: str, graph: ContentGraph) -> Page:
        """Parse and render one file. Runs on a worker thread."""
        try:
            front_matter, body = parse_frontmatter(raw, rel)
            rendered = self.renderer.render(body)
        except BuildError as exc:
            raise exc.with_path(rel)

        section_path = self.url_deriver.section_path(rel)
        section = graph.sections[section_path]
        slug = self.url_deriver.page_slug(rel, front_matter)
        name = rel.parent.name if rel.name == BUNDLE_FILENAME else rel.stem
        words = count_words(body)
        return Page(
            path=rel,
            title=front_matter.title or titleize(rel.name),
            description=front_matter.description,
            date=front_matter.date or extract_date_from_name(name),
            updated=front_matter.updated,
            draft=front_matter.draft,
            raw_body=body,
            content=rendered.html,
            summary=rendered.summary,
            taxonomies=front_matter.taxonomies,
            extra=front_matter.extra,
            options=PageOptions.resolve(front_matter.extra, section.extra, self.config.extra),
            slug=slug,
            url=self.url_deriver.page_url(section_path, slug, front_matter),
            section=section_path,
            toc=rendered.toc,
            word_count=words,
            reading_time=reading_time(words),
            aliases=[normalize_url(alias) for alias in front_matter.aliases],
            template=front_matter.template,
            weight=front_matter.weight,
        )

    def _check_urls(self, graph: ContentGraph) -> None:
        """Fail on any URL claimed twice. Drafts take part like any page."""
        claimed: dict[str, PurePosixPath | str] = {}
        for section in sorted(graph.sections.values(), key=lambda s: s.path):
            owner = section.source or PurePosixPath(section.path or ".")
            if section.url in claimed:
                raise DuplicateURL(section.url, owner, claimed[section.url])
            claimed[section.url] = owner
        for page in sorted(graph.pages.values(), key=lambda p: str(p.path)):
            for url in [page.url, *page.aliases]:
                if url in claimed:
                    raise DuplicateURL(url, page.path, claimed[url])
                claimed[url] = page.path

    def _warn_future_dates(self, graph: ContentGraph, now: datetime) -> None:
        for page in graph.published_pages():
            if page.date and page.date > now:
                logger.warning("%s is dated in the future (%s)", page.path, page.date.date())

"""Site building functionality for Folio.

This module contains the core logic for building a static site from source files.
It loads configuration, builds the content graph, indexes taxonomies, generates
feeds, renders templates, runs the asset pipeline and writes the output.

Key functions:
- build_site: Main function to build the entire site.

The build is fail-fast: the first error aborts it. Everything is written to a
staging directory next to the output directory and swapped in at the end, so
a failed or aborted build leaves the previous output untouched.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from .assets import AssetPipeline
from .collections import PageCollection, TaxonomyCollection, TaxonomyIndexer
from .config import SiteConfig, load_config
from .content import ContentGraph, ContentGraphBuilder, FileContentLoader, Page, Section
from .errors import BuildAborted, BuildError, ConfigError, DuplicateURL, TemplateError
from .feeds import FeedDocument, SitemapGenerator, generate, generator_for
from .html_utils import join_root_url, redirect_html
from .protocols import TemplateRenderer
from .templates import TemplateEngine, render_toc

logger = logging.getLogger(__name__)

CONTENT_DIRNAME = "content"
SOURCE_DIRNAMES = (CONTENT_DIRNAME, "sass", "static", "templates", "themes")


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        config: Configuration the build ran with, overrides applied.
        graph: Content graph of all sections and pages.
        taxonomies: Taxonomy index.
        feeds: Feed documents keyed by output path.
        files: Every file written, relative to the output directory.
        output_dir: Directory where the site was built.
        duration: Wall-clock build time in seconds.
    """

    config: SiteConfig
    graph: ContentGraph
    taxonomies: TaxonomyCollection
    feeds: dict[PurePosixPath, FeedDocument]
    files: list[PurePosixPath]
    output_dir: Path
    duration: float = 0.0

    @property
    def pages(self) -> list[Page]:
        """Published pages, date descending."""
        return self.graph.published_pages()


@dataclass
class _Outputs:
    """Emitted text files keyed by output path, with the source of each."""

    files: dict[PurePosixPath, str] = field(default_factory=dict)
    owners: dict[PurePosixPath, str] = field(default_factory=dict)

    def add(self, path: PurePosixPath, text: str, owner: str) -> None:
        if path in self.files:
            raise DuplicateURL(f"/{path}", owner, self.owners[path])
        self.files[path] = text
        self.owners[path] = owner


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    base_url: str | None = None,
    output_dir: Path | str | None = None,
    abort: threading.Event | None = None,
    renderer: TemplateRenderer | None = None,
    now: datetime | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether draft pages are rendered. Drafts are never listed.
        base_url: Optional override of the configured base URL.
        output_dir: Optional output directory instead of the configured one.
        abort: Event checked between stages; when set the build stops.
        renderer: Template renderer; defaults to the Jinja2 TemplateEngine.
        now: Reference time for date checks; defaults to the current time.

    Returns:
        BuildResult describing what was built.

    Raises:
        BuildError: On the first failure of any stage. BuildAborted if the
            abort event was set.
    """
    started = time.perf_counter()
    project_root = Path(project_root)
    now = now or datetime.now()

    _check_abort(abort, "loading configuration")
    config = load_config(project_root).with_overrides(
        base_url, str(output_dir) if output_dir is not None else None
    )
    target = project_root / config.output_dir
    _check_output_dir(project_root, target)

    _check_abort(abort, "reading content")
    files = FileContentLoader(project_root / CONTENT_DIRNAME).load()
    logger.info("Found %d content files", len(files))

    _check_abort(abort, "building the content graph")
    graph = ContentGraphBuilder(config).build(files, now=now)

    _check_abort(abort, "indexing taxonomies")
    taxonomies = TaxonomyCollection(
        TaxonomyIndexer(config.taxonomies, config.slugify).index(graph.pages.values())
    )
    logger.info("Indexed %d taxonomies", len(taxonomies))

    _check_abort(abort, "generating feeds")
    outputs = _Outputs()
    feeds = generate_feeds(config, graph, taxonomies)
    for path, document in feeds.items():
        outputs.add(path, document.content, "feeds")
    logger.info("Generated %d feeds", len(feeds))

    _check_abort(abort, "rendering templates")
    engine = renderer or TemplateEngine(config, project_root)
    _render_site(engine, config, graph, taxonomies, outputs, include_drafts, now)
    if config.generate_sitemap:
        outputs.add(PurePosixPath(SitemapGenerator.filename), _sitemap(config, graph, taxonomies), "sitemap")
    if config.generate_robots_txt:
        outputs.add(PurePosixPath("robots.txt"), _robots_txt(config), "robots.txt")
    logger.info("Rendered %d files", len(outputs.files))

    _check_abort(abort, "processing assets")
    pipeline = AssetPipeline(config, project_root)
    for path, css in pipeline.compile().items():
        outputs.add(path, css, "assets")
    emitted = pipeline.minify(outputs.files)

    _check_abort(abort, "writing output")
    written = _write_output(target, emitted, pipeline)

    duration = time.perf_counter() - started
    logger.info("Wrote %d files to %s in %.2fs", len(written), target, duration)
    return BuildResult(
        config=config,
        graph=graph,
        taxonomies=taxonomies,
        feeds=feeds,
        files=written,
        output_dir=target,
        duration=duration,
    )


def _check_output_dir(project_root: Path, target: Path) -> None:
    """Refuse output directories that would replace project sources.

    Raises:
        ConfigError: If target is the project root, one of its parents, or
            inside a source directory.
    """
    root = project_root.resolve()
    resolved = target.resolve()
    if resolved == root or resolved in root.parents:
        raise ConfigError(f"output_dir {target} would replace the project directory")
    for name in SOURCE_DIRNAMES:
        source = root / name
        if resolved == source or source in resolved.parents:
            raise ConfigError(f"output_dir {target} is inside the project's {name}/ directory")


def _check_abort(abort: threading.Event | None, stage: str) -> None:
    if abort is not None and abort.is_set():
        raise BuildAborted(f"Build aborted before {stage}")


def output_path(url: str) -> PurePosixPath:
    """Output file for a URL path: /blog/post/ -> blog/post/index.html."""
    stripped = url.strip("/")
    if not stripped:
        return PurePosixPath("index.html")
    return PurePosixPath(stripped) / "index.html"


def generate_feeds(
    config: SiteConfig, graph: ContentGraph, taxonomies: TaxonomyCollection
) -> dict[PurePosixPath, FeedDocument]:
    """Generate the site-wide, section and taxonomy term feeds.

    Args:
        config: Site configuration.
        graph: Content graph.
        taxonomies: Taxonomy index.

    Returns:
        Feed documents keyed by output path, one per configured filename.
    """
    feeds: dict[PurePosixPath, FeedDocument] = {}
    limit = config.feed_limit
    for filename in config.feed_filenames:
        if config.generate_feeds:
            feeds[PurePosixPath(filename)] = generator_for(filename).generate(
                filename,
                graph.published_pages(),
                limit,
                config.title or "Feed",
                config.base_url,
                description=config.description,
                language=config.default_language,
            )
        for section in graph.sections.values():
            if not section.generate_feeds or (config.generate_feeds and not section.path):
                continue
            path = PurePosixPath(section.url.strip("/"), filename)
            feeds[path] = generate(
                section,
                limit,
                config.base_url,
                filename=filename,
                site_title=config.title,
                language=config.default_language,
            )
        for taxonomy in taxonomies.values():
            if not taxonomy.definition.feed:
                continue
            for term in taxonomy.terms:
                title = " - ".join(t for t in (config.title, term.name) if t)
                feeds[PurePosixPath(term.url.strip("/"), filename)] = generator_for(filename).generate(
                    filename,
                    term.pages,
                    limit,
                    title,
                    config.base_url,
                    path=term.url,
                    language=config.default_language,
                )
    return feeds


def _render_site(
    engine: TemplateRenderer,
    config: SiteConfig,
    graph: ContentGraph,
    taxonomies: TaxonomyCollection,
    outputs: _Outputs,
    include_drafts: bool,
    now: datetime,
) -> None:
    """Render every page, section, taxonomy page, alias and the 404 page."""
    base: dict[str, Any] = {
        "config": config,
        "site_pages": PageCollection(graph.published_pages()),
        "sections": graph.sections,
        "taxonomies": taxonomies,
        "now": now,
        "get_url": lambda path: join_root_url(config.base_url, path),
        "render_toc": render_toc,
    }
    recent_max = int(config.extra.get("recent_max", 15))

    for section in sorted(graph.sections.values(), key=lambda s: s.path):
        template = section.template or ("index.html" if not section.path else "section.html")
        context = {
            **base,
            "section": section,
            "pages": section.listing(recent_max),
            "subsections": [graph.sections[p] for p in sorted(section.subsections)],
        }
        source = str(section.source or section.path or CONTENT_DIRNAME)
        outputs.add(output_path(section.url), _render(engine, template, context, source), source)

    for page in sorted(graph.pages.values(), key=lambda p: str(p.path)):
        if page.draft and not include_drafts:
            continue
        context = {
            **base,
            "page": page,
            "section": graph.section_for(page),
            "page_terms": taxonomies.terms_for(page),
        }
        source = str(page.path)
        outputs.add(output_path(page.url), _render(engine, page.template or "page.html", context, source), source)
        for alias in page.aliases:
            outputs.add(output_path(alias), redirect_html(join_root_url(config.base_url, page.url)), source)

    for taxonomy in taxonomies.values():
        context = {**base, "taxonomy": taxonomy}
        outputs.add(
            output_path(taxonomy.url),
            _render(engine, "taxonomy_list.html", context, taxonomy.name),
            taxonomy.name,
        )
        for term in taxonomy.terms:
            context = {**base, "taxonomy": taxonomy, "term": term, "pages": term.pages}
            owner = f"{taxonomy.name}/{term.slug}"
            outputs.add(output_path(term.url), _render(engine, "taxonomy_single.html", context, owner), owner)

    outputs.add(PurePosixPath("404.html"), _render(engine, "404.html", dict(base), "404.html"), "404.html")


def _render(engine: TemplateRenderer, template: str, context: dict[str, Any], source: str) -> str:
    """Render a template, attributing failures to source."""
    try:
        return engine.render(template, context)
    except BuildError as exc:
        raise exc.with_path(source)
    except Exception as exc:
        raise TemplateError(_format_error_message(exc), source, exc) from exc


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _section_lastmod(section: Section) -> datetime | None:
    dates = [p.last_modified for p in section.pages if p.last_modified]
    return max(dates) if dates else None


def _sitemap(config: SiteConfig, graph: ContentGraph, taxonomies: TaxonomyCollection) -> str:
    """Sitemap of every published page, section and taxonomy page."""
    entries: list[tuple[str, datetime | None]] = []
    entries += [(p.url, p.last_modified) for p in graph.published_pages()]
    entries += [(s.url, _section_lastmod(s)) for s in graph.sections.values()]
    for taxonomy in taxonomies.values():
        entries.append((taxonomy.url, None))
        entries += [(t.url, None) for t in taxonomy.terms]
    return SitemapGenerator().generate(config.base_url, entries)


def _robots_txt(config: SiteConfig) -> str:
    lines = ["User-agent: *", "Disallow:", "Allow: /"]
    if config.generate_sitemap:
        lines.append(f"Sitemap: {join_root_url(config.base_url, '/' + SitemapGenerator.filename)}")
    return "\n".join(lines) + "\n"


def _write_output(target: Path, emitted: Mapping[PurePosixPath, str], pipeline: AssetPipeline) -> list[PurePosixPath]:
    """Write everything to a staging directory and swap it into target.

    Static files are copied first, so an emitted file with the same path
    replaces the static one.

    Returns:
        Relative paths of the emitted (non-static) files.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{target.name}-staging-", dir=target.parent))
    try:
        copied = pipeline.copy_static(staging)
        logger.debug("Copied %d static files", copied)
        for rel, text in sorted(emitted.items()):
            dest = staging / rel
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(text, encoding="utf-8")
        _swap(staging, target)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    return sorted(emitted)


def _swap(staging: Path, target: Path) -> None:
    """Replace target with staging, restoring target if the rename fails."""
    if not target.exists():
        staging.rename(target)
        return
    previous = staging.with_name(f"{staging.name}-previous")
    target.rename(previous)
    try:
        staging.rename(target)
    except OSError:
        previous.rename(target)
        raise
    shutil.rmtree(previous)

"""Site configuration for Folio.

The configuration is read once from ``config.toml`` before any content is
loaded and turned into a frozen SiteConfig value. Every component receives
the same instance; nothing mutates it during a build.

Key classes:
- SiteConfig: Process-wide, read-only build settings.
- MarkdownConfig: Markdown rendering switches and highlight themes.
- SlugifyConfig: Per-mode slugify strategies.
- TaxonomyDefinition: A classification axis such as tags or categories.

Key functions:
- load_config: Load and validate config.toml from a project root.
- config_from_mapping: Build a SiteConfig from an already-parsed mapping.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .errors import ConfigError
from .utils import SLUGIFY_STRATEGIES

CONFIG_FILENAME = "config.toml"
HOMEPAGE_LAYOUTS = ("list", "recent", "about")

DEFAULT_CONFIG: dict[str, Any] = {
    "base_url": "/",
    "title": "",
    "description": "",
    "default_language": "en",
    "theme": None,
    "output_dir": "public",
    "compile_sass": False,
    "minify_html": False,
    "generate_feeds": False,
    "feed_filenames": ["atom.xml"],
    "feed_limit": None,
    "generate_sitemap": True,
    "generate_robots_txt": True,
    "taxonomies": [],
    "workers": None,
}


@dataclass(frozen=True)
class HighlightTheme:
    """A highlight theme written to a stylesheet file.

    Attributes:
        theme: Theme name; used as a Pygments style name when it is one.
        filename: Output filename relative to the output root.
    """

    theme: str
    filename: str

    @property
    def variant(self) -> str:
        """Return "dark" or "light", guessed from the theme or filename."""
        haystack = f"{self.theme} {self.filename}".lower()
        return "dark" if "dark" in haystack else "light"


@dataclass(frozen=True)
class MarkdownConfig:
    """Markdown rendering switches.

    Attributes:
        highlight_code: Whether fenced code is syntax highlighted.
        highlight_theme: "css" for class-based output, otherwise a Pygments
            style used for inline styles.
        highlight_themes_css: Stylesheets emitted when highlight_theme is "css".
        render_emoji: Replace :emoji: shortcodes.
        smart_punctuation: Replace quotes, dashes and ellipses.
        external_links_target_blank: Open external links in a new tab.
        external_links_no_follow: Add rel="nofollow" to external links.
        external_links_no_referrer: Add rel="noreferrer" to external links.
    """

    highlight_code: bool = False
    highlight_theme: str = "css"
    highlight_themes_css: tuple[HighlightTheme, ...] = ()
    render_emoji: bool = False
    smart_punctuation: bool = False
    external_links_target_blank: bool = False
    external_links_no_follow: bool = False
    external_links_no_referrer: bool = False

    @property
    def highlight_theme_map(self) -> dict[str, HighlightTheme]:
        """Highlight stylesheets keyed by light/dark variant."""
        return {theme.variant: theme for theme in self.highlight_themes_css}


@dataclass(frozen=True)
class SlugifyConfig:
    """Slugify strategy ("on", "safe" or "off") for each mode."""

    paths: str = "on"
    taxonomies: str = "on"
    anchors: str = "on"

    def strategy(self, mode: str) -> str:
        return getattr(self, mode)


@dataclass(frozen=True)
class TaxonomyDefinition:
    """A named classification axis.

    Attributes:
        name: Taxonomy name as used in front matter (e.g. "tags").
        slugify: Whether term strings are slugified for bucketing and URLs.
        feed: Whether each term gets its own feed.
    """

    name: str
    slugify: bool = True
    feed: bool = False


@dataclass(frozen=True)
class SiteConfig:
    """Read-only configuration for one build.

    Attributes:
        base_url: Absolute root URL of the published site.
        title: Site title.
        description: Site description.
        default_language: Language code.
        theme: Theme directory name under themes/, if any.
        output_dir: Output directory, relative to the project root.
        taxonomies: Enabled taxonomies.
        markdown: Markdown rendering switches.
        slugify: Slugify strategies.
        compile_sass: Compile sass/ sources.
        minify_html: Minify emitted HTML, CSS and JS.
        generate_feeds: Emit site-wide and section feeds.
        feed_filenames: One feed document per filename.
        feed_limit: Maximum entries per feed, None for all.
        generate_sitemap: Emit sitemap.xml.
        generate_robots_txt: Emit robots.txt.
        workers: Worker threads for parsing; None lets the executor decide.
        extra: Open presentation settings ([extra] table).
        raw: Every top-level key as loaded, including unknown ones.
    """

    base_url: str = "/"
    title: str = ""
    description: str = ""
    default_language: str = "en"
    theme: str | None = None
    output_dir: str = "public"
    taxonomies: tuple[TaxonomyDefinition, ...] = ()
    markdown: MarkdownConfig = field(default_factory=MarkdownConfig)
    slugify: SlugifyConfig = field(default_factory=SlugifyConfig)
    compile_sass: bool = False
    minify_html: bool = False
    generate_feeds: bool = False
    feed_filenames: tuple[str, ...] = ("atom.xml",)
    feed_limit: int | None = None
    generate_sitemap: bool = True
    generate_robots_txt: bool = True
    workers: int | None = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    raw: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def taxonomy(self, name: str) -> TaxonomyDefinition | None:
        for definition in self.taxonomies:
            if definition.name == name:
                return definition
        return None

    @property
    def homepage_layout(self) -> str:
        return str(self.extra.get("homepage_layout", "list"))

    def with_overrides(
        self, base_url: str | None = None, output_dir: str | None = None
    ) -> SiteConfig:
        """Return a copy with per-build overrides applied."""
        changes: dict[str, Any] = {}
        if base_url is not None:
            changes["base_url"] = base_url
        if output_dir is not None:
            changes["output_dir"] = output_dir
        return replace(self, **changes) if changes else self


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from config.toml.

    Args:
        project_root: Root directory of the project.

    Returns:
        SiteConfig with defaults applied.

    Raises:
        ConfigError: If the file is not valid TOML or holds invalid values.
    """
    config_path = project_root / CONFIG_FILENAME
    loaded: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                loaded = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML: {exc}", config_path, exc) from exc
    try:
        return config_from_mapping(loaded)
    except ConfigError as exc:
        raise exc.with_path(config_path)


def config_from_mapping(data: Mapping[str, Any]) -> SiteConfig:
    """Build a SiteConfig from a parsed configuration mapping.

    Args:
        data: Top-level configuration table.

    Returns:
        Validated SiteConfig.
    """
    merged = {**DEFAULT_CONFIG, **data}

    slugify_config = _parse_slugify(merged.get("slugify") or {})
    extra = merged.get("extra") or {}
    if not isinstance(extra, Mapping):
        raise ConfigError("[extra] must be a table")
    layout = extra.get("homepage_layout", "list")
    if layout not in HOMEPAGE_LAYOUTS:
        raise ConfigError(
            f"Unknown homepage_layout {layout!r}, expected one of {', '.join(HOMEPAGE_LAYOUTS)}"
        )

    feed_limit = merged.get("feed_limit")
    if feed_limit is not None and (not isinstance(feed_limit, int) or feed_limit < 0):
        raise ConfigError("feed_limit must be a non-negative integer")

    return SiteConfig(
        base_url=str(merged["base_url"]),
        title=str(merged["title"]),
        description=str(merged["description"]),
        default_language=str(merged["default_language"]),
        theme=merged.get("theme") or None,
        output_dir=str(merged["output_dir"]),
        taxonomies=_parse_taxonomies(merged.get("taxonomies") or [], slugify_config),
        markdown=_parse_markdown(merged.get("markdown") or {}),
        slugify=slugify_config,
        compile_sass=bool(merged["compile_sass"]),
        minify_html=bool(merged["minify_html"]),
        generate_feeds=bool(merged["generate_feeds"]),
        feed_filenames=tuple(merged.get("feed_filenames") or ()),
        feed_limit=feed_limit,
        generate_sitemap=bool(merged["generate_sitemap"]),
        generate_robots_txt=bool(merged["generate_robots_txt"]),
        workers=merged.get("workers"),
        extra=MappingProxyType(dict(extra)),
        raw=MappingProxyType(dict(data)),
    )


def _parse_slugify(table: Mapping[str, Any]) -> SlugifyConfig:
    values: dict[str, str] = {}
    for mode in ("paths", "taxonomies", "anchors"):
        strategy = table.get(mode, "on")
        if isinstance(strategy, bool):
            strategy = "on" if strategy else "off"
        if strategy not in SLUGIFY_STRATEGIES:
            raise ConfigError(
                f"Unknown slugify strategy {strategy!r} for {mode}, "
                f"expected one of {', '.join(SLUGIFY_STRATEGIES)}"
            )
        values[mode] = strategy
    return SlugifyConfig(**values)


def _parse_markdown(table: Mapping[str, Any]) -> MarkdownConfig:
    themes = []
    for entry in table.get("highlight_themes_css") or []:
        if not isinstance(entry, Mapping) or "theme" not in entry or "filename" not in entry:
            raise ConfigError(
                "highlight_themes_css entries need both 'theme' and 'filename'"
            )
        themes.append(HighlightTheme(str(entry["theme"]), str(entry["filename"])))
    return MarkdownConfig(
        highlight_code=bool(table.get("highlight_code", False)),
        highlight_theme=str(table.get("highlight_theme", "css")),
        highlight_themes_css=tuple(themes),
        render_emoji=bool(table.get("render_emoji", False)),
        smart_punctuation=bool(table.get("smart_punctuation", False)),
        external_links_target_blank=bool(table.get("external_links_target_blank", False)),
        external_links_no_follow=bool(table.get("external_links_no_follow", False)),
        external_links_no_referrer=bool(table.get("external_links_no_referrer", False)),
    )


def _parse_taxonomies(
    entries: list[Any], slugify_config: SlugifyConfig
) -> tuple[TaxonomyDefinition, ...]:
    definitions: list[TaxonomyDefinition] = []
    seen: set[str] = set()
    for entry in entries:
        if isinstance(entry, str):
            entry = {"name": entry}
        if not isinstance(entry, Mapping) or not entry.get("name"):
            raise ConfigError("Every taxonomy needs a name")
        name = str(entry["name"])
        if name in seen:
            raise ConfigError(f"Taxonomy {name!r} is defined twice")
        seen.add(name)
        definitions.append(
            TaxonomyDefinition(
                name=name,
                slugify=bool(entry.get("slugify", slugify_config.taxonomies != "off")),
                feed=bool(entry.get("feed", False)),
            )
        )
    return tuple(definitions)

"""Markdown rendering for Folio.

This module turns a markdown body into HTML. It is a pure function of the
body, the markdown switches and the slugify strategy: it does no file I/O
and never looks at other pages.

Key classes:
- Heading: A heading collected for the table of contents.
- RenderedDocument: HTML, table of contents and summary of one body.
- MarkdownRenderer: Renders markdown with highlighting and shortcodes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

import emoji
import mistune
from markupsafe import escape
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .config import MarkdownConfig, SlugifyConfig
from .errors import RenderError
from .shortcodes import ShortcodeRegistry, create_default_registry, split_summary
from .utils import AnchorSlugger

logger = logging.getLogger(__name__)

ANCHOR_PLACEHOLDER = "folio-anchor-{}"
ANCHOR_PLACEHOLDER_RE = re.compile(r'id="folio-anchor-(\d+)"')
TAG_RE = re.compile(r"<[^>]+>")
PLAIN_LANGUAGES = {"", "text", "plain", "txt", "plaintext"}
FALLBACK_STYLES = {"light": "default", "dark": "monokai"}
MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


@dataclass
class Heading:
    """Represents a heading extracted from markdown content for TOC generation.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The text content of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class RenderedDocument:
    """Output of rendering one markdown body.

    Attributes:
        html: Rendered HTML.
        toc: Headings in document order.
        summary: Rendered HTML of the part before ``<!-- more -->``, if any.
    """

    html: str
    toc: list[Heading] = field(default_factory=list)
    summary: str | None = None


@dataclass(frozen=True)
class CodeBlockOptions:
    """Attributes of a fenced code block's info string.

    Attributes:
        language: Language identifier, lower-cased.
        linenos: Whether to render a line-number gutter.
        linenostart: Number of the first line.
        hl_lines: 1-based line numbers to highlight, relative to the block.
    """

    language: str = ""
    linenos: bool = False
    linenostart: int = 1
    hl_lines: tuple[int, ...] = ()

    @classmethod
    def parse(cls, info: str | None) -> CodeBlockOptions:
        """Parse an info string such as ``rust,linenos,hl_lines=1 3-5``.

        Raises:
            RenderError: If an attribute value is not a number or range.
        """
        if not info:
            return cls()
        parts = [p.strip() for p in info.split(",")]
        language = parts[0].split()[0].lower() if parts[0] else ""
        linenos = False
        linenostart = 1
        hl_lines: list[int] = []
        for attr in parts[1:]:
            key, _, value = attr.partition("=")
            key = key.strip()
            try:
                if key == "linenos":
                    linenos = True
                elif key == "linenostart":
                    linenostart = int(value)
                elif key == "hl_lines":
                    hl_lines.extend(_parse_line_ranges(value))
                elif key:
                    logger.warning("Ignoring unsupported code block attribute %r", key)
            except ValueError as exc:
                raise RenderError(f"Invalid code block attribute {attr!r}", original_error=exc) from exc
        return cls(language, linenos, linenostart, tuple(sorted(set(hl_lines))))


def _parse_line_ranges(value: str) -> list[int]:
    lines: list[int] = []
    for chunk in value.split():
        start, _, end = chunk.partition("-")
        first = int(start)
        last = int(end) if end else first
        if last < first:
            raise ValueError(f"Invalid range {chunk}")
        lines.extend(range(first, last + 1))
    return lines


def resolve_pygments_style(name: str, variant: str = "light") -> str:
    """Return a Pygments style name for a highlight theme.

    Theme names that are not Pygments styles fall back to a built-in style
    matching the light/dark variant.
    """
    try:
        get_style_by_name(name)
    except ClassNotFound:
        fallback = FALLBACK_STYLES.get(variant, "default")
        logger.warning("Unknown highlight theme %r; using Pygments style %r", name, fallback)
        return fallback
    return name


def smart_punctuate(text: str) -> str:
    """Replace straight quotes, dashes and dots with typographic ones."""
    text = text.replace("---", "\u2014").replace("--", "\u2013").replace("...", "\u2026")
    text = re.sub(r'(^|[\s(\[{\u2014\u2013])"', "\\1\u201c", text)
    text = text.replace('"', "\u201d")
    text = re.sub(r"(^|[\s(\[{\u2014\u2013])'", "\\1\u2018", text)
    return text.replace("'", "\u2019")


class _HighlightRenderer(mistune.HTMLRenderer):
    """Custom Markdown renderer with anchors, highlighting and link attributes.

    Headings get a numbered placeholder id; the real anchors are assigned
    once the whole document, shortcode bodies included, is assembled.

    Attributes:
        config: Markdown switches.
        headings: Headings collected during rendering, shared by every
            fragment of one document and indexed by placeholder number.
        base_url: Site base URL, used to tell internal from external links.
    """

    def __init__(self, config: MarkdownConfig, headings: list[Heading], base_url: str = ""):
        super().__init__(escape=False)
        self.config = config
        self.headings = headings
        self.base_url = base_url.rstrip("/")

    def text(self, text: str) -> str:
        if self.config.smart_punctuation:
            text = smart_punctuate(text)
        if self.config.render_emoji:
            text = emoji.emojize(text, language="alias")
        return super().text(text)

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading and record it for the TOC."""
        self.headings.append(Heading(id="", text=TAG_RE.sub("", text), level=level))
        placeholder = ANCHOR_PLACEHOLDER.format(len(self.headings) - 1)
        return f'<h{level} id="{placeholder}">{text}</h{level}>\n'

    def link(self, text: str, url: str, title: str | None = None) -> str:
        html = super().link(text, url, title)
        if not self._is_external(url):
            return html
        extra = []
        if self.config.external_links_target_blank:
            extra.append('target="_blank"')
        rel = []
        if self.config.external_links_target_blank:
            rel.append("noopener")
        if self.config.external_links_no_follow:
            rel.append("nofollow")
        if self.config.external_links_no_referrer:
            rel.append("noreferrer")
        if rel:
            extra.append(f'rel="{" ".join(rel)}"')
        if not extra:
            return html
        return html.replace("<a ", f"<a {' '.join(extra)} ", 1)

    def _is_external(self, url: str) -> bool:
        if not url.startswith(("http://", "https://", "//")):
            return False
        return not (self.base_url.startswith("http") and url.startswith(self.base_url))

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced code block, highlighted with Pygments when enabled.

        Raises:
            RenderError: If the language has no Pygments lexer.
        """
        options = CodeBlockOptions.parse(info)
        language = options.language
        data_lang = f' data-lang="{escape(language)}"' if language else ""
        if not self.config.highlight_code or language in PLAIN_LANGUAGES:
            lang_class = f' class="language-{escape(language)}"' if language else ""
            return f"<pre{data_lang}><code{lang_class}>{escape(code)}</code></pre>\n"

        try:
            lexer = get_lexer_by_name(language, stripnl=False)
        except ClassNotFound as exc:
            raise RenderError(f"Unsupported highlighting language '{language}'", original_error=exc) from exc

        formatter = self._formatter(options)
        highlighted = highlight(code, lexer, formatter)
        return f'<div class="code-block"{data_lang}>{highlighted}</div>\n'

    def _formatter(self, options: CodeBlockOptions) -> HtmlFormatter:
        kwargs = {
            "cssclass": "highlight",
            "linenos": "table" if options.linenos else False,
            "linenostart": options.linenostart,
            "hl_lines": list(options.hl_lines),
            "wrapcode": True,
        }
        if self.config.highlight_theme != "css":
            kwargs["noclasses"] = True
            kwargs["style"] = resolve_pygments_style(self.config.highlight_theme)
        return HtmlFormatter(**kwargs)


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    This renderer converts a markdown body into HTML with syntax
    highlighting, shortcode expansion and heading extraction for the TOC.

    Attributes:
        config: Markdown switches.
        slugify_config: Slugify strategies; the anchors one is used.
        base_url: Site base URL.
        shortcodes: Registry of available shortcodes.
    """

    def __init__(
        self,
        config: MarkdownConfig | None = None,
        slugify_config: SlugifyConfig | None = None,
        base_url: str = "",
        shortcodes: ShortcodeRegistry | None = None,
    ):
        self.config = config or MarkdownConfig()
        self.slugify_config = slugify_config or SlugifyConfig()
        self.base_url = base_url
        self.shortcodes = shortcodes or create_default_registry()

    @property
    def source_type(self) -> str:
        """Return the source type identifier."""
        return "markdown"

    def render(self, body: str) -> RenderedDocument:
        """Render a markdown body.

        Args:
            body: Markdown source without front matter.

        Returns:
            RenderedDocument with HTML, headings and optional summary.

        Raises:
            RenderError: For unknown shortcodes or unsupported languages.
        """
        html, headings = self._render_document(body)

        summary = None
        summary_source = split_summary(body)
        if summary_source is not None:
            summary, _ = self._render_document(summary_source)
        return RenderedDocument(html=html, toc=headings, summary=summary)

    def _render_document(self, body: str) -> tuple[str, list[Heading]]:
        collected: list[Heading] = []
        html = self._render(body, collected)

        # Anchors are assigned in document order, nested headings included.
        slugger = AnchorSlugger(self.slugify_config.anchors)
        toc: list[Heading] = []

        def assign(match: re.Match) -> str:
            heading = collected[int(match.group(1))]
            heading.id = slugger(heading.text)
            toc.append(heading)
            return f'id="{escape(heading.id)}"'

        return ANCHOR_PLACEHOLDER_RE.sub(assign, html), toc

    def _render(self, body: str, headings: list[Heading]) -> str:
        renderer = _HighlightRenderer(self.config, headings, self.base_url)
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        expansion = self.shortcodes.expand(body, lambda text: self._render(text, headings))
        html = markdown(expansion.text)
        return expansion.substitute(html)

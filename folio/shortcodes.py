"""Shortcode expansion for Folio.

Markdown bodies may call shortcodes in two forms:

- block: ``{% quote(cite="Ada") %}body{% end %}``
- inline: ``{{ figure(src="a.png", alt="A") }}``

Expansion runs before markdown parsing. Every call is replaced by an HTML
comment placeholder that markdown passes through untouched; the renderer
swaps the placeholders for the shortcode output afterwards. Shortcodes
inside fenced code blocks and inline code spans are left as written.

Key classes:
- ShortcodeRegistry: Maps shortcode names to handlers.
- ShortcodeExpansion: Placeholder text plus the rendered fragments.
- MaskedText: Body with code regions hidden behind tokens.

Key functions:
- parse_arguments: Parse a shortcode argument list.
- split_summary: Find the summary part of a body.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from markupsafe import escape

from .errors import RenderError

BLOCK_RE = re.compile(
    r"\{%\s*(?P<name>[A-Za-z_][\w-]*)\s*\((?P<args>[^)]*)\)\s*%\}"
    r"(?P<body>.*?)"
    r"\{%\s*end\s*%\}",
    re.DOTALL,
)
INLINE_RE = re.compile(r"\{\{\s*(?P<name>[A-Za-z_][\w-]*)\s*\((?P<args>[^)]*)\)\s*\}\}")
DANGLING_RE = re.compile(r"\{%\s*(?P<name>[A-Za-z_][\w-]*)\s*\(|\{%\s*end\s*%\}")

# Fenced code blocks and inline code spans are never expanded.
CODE_RE = re.compile(
    r"^(?P<fence>`{3,}|~{3,})[^\n]*\n.*?^(?P=fence)[ \t]*$|`[^`\n]+`",
    re.DOTALL | re.MULTILINE,
)

ARG_RE = re.compile(
    r"\s*(?P<key>[A-Za-z_]\w*)\s*=\s*"
    r"(?P<value>\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'|true|false|-?\d+(?:\.\d+)?)"
    r"\s*(?:,|$)"
)

MASK_TOKEN = "\x00{}\x00"
MASK_TOKEN_RE = re.compile(r"\x00(\d+)\x00")

SUMMARY_SEPARATOR_RE = re.compile(r"^\s*<!--\s*more\s*-->\s*$", re.MULTILINE)

PLACEHOLDER = "<!--folio-shortcode-{}-->"
PLACEHOLDER_RE = re.compile(r"(?:<p>)?<!--folio-shortcode-(\d+)-->(?:</p>)?\n?")

# Handler signature: (args, body, render_markdown) -> html
ShortcodeHandler = Callable[[dict[str, Any], "str | None", Callable[[str], str]], str]


def parse_arguments(raw: str, name: str) -> dict[str, Any]:
    """Parse a shortcode argument list such as ``cite="Ada", open=true``.

    Args:
        raw: Text between the parentheses.
        name: Shortcode name, for error messages.

    Returns:
        Mapping of argument names to str, int, float or bool values.

    Raises:
        RenderError: If the list is not a comma-separated key=value sequence.
    """
    args: dict[str, Any] = {}
    pos = 0
    raw = raw.strip()
    while pos < len(raw):
        match = ARG_RE.match(raw, pos)
        if not match or match.end() == pos:
            raise RenderError(f"Malformed arguments for shortcode '{name}': {raw!r}")
        args[match.group("key")] = _coerce(match.group("value"))
        pos = match.end()
    return args


def _coerce(value: str) -> Any:
    if value in ("true", "false"):
        return value == "true"
    if value[0] in "\"'":
        inner = value[1:-1]
        return re.sub(r"\\(.)", r"\1", inner)
    if "." in value:
        return float(value)
    return int(value)


def _quote(args: dict[str, Any], body: str | None, render: Callable[[str], str]) -> str:
    inner = render(body or "")
    cite = args.get("cite")
    caption = f"<figcaption><cite>{escape(cite)}</cite></figcaption>" if cite else ""
    return f'<figure class="quote"><blockquote>{inner}</blockquote>{caption}</figure>'


def _mermaid(args: dict[str, Any], body: str | None, render: Callable[[str], str]) -> str:
    return f'<pre class="mermaid">{escape((body or "").strip())}</pre>'


def _details(args: dict[str, Any], body: str | None, render: Callable[[str], str]) -> str:
    summary = escape(args.get("summary", "Details"))
    opened = " open" if args.get("open") else ""
    return f"<details{opened}><summary>{summary}</summary>{render(body or '')}</details>"


def _callout(args: dict[str, Any], body: str | None, render: Callable[[str], str]) -> str:
    kind = escape(args.get("type", "note"))
    return f'<div class="callout callout-{kind}">{render(body or "")}</div>'


def _figure(args: dict[str, Any], body: str | None, render: Callable[[str], str]) -> str:
    src = args.get("src")
    if not src:
        raise RenderError("Shortcode 'figure' requires a src argument")
    alt = escape(args.get("alt", ""))
    caption = args.get("caption")
    figcaption = f"<figcaption>{escape(caption)}</figcaption>" if caption else ""
    return f'<figure><img src="{escape(src)}" alt="{alt}">{figcaption}</figure>'


@dataclass
class MaskedText:
    """Text with its code regions swapped for opaque tokens.

    Attributes:
        text: The masked text.
        regions: Original code regions, indexed by token number.
    """

    text: str
    regions: list[str] = field(default_factory=list)

    @classmethod
    def mask(cls, text: str) -> MaskedText:
        masked = cls(text="")

        def repl(match: re.Match) -> str:
            masked.regions.append(match.group(0))
            return MASK_TOKEN.format(len(masked.regions) - 1)

        masked.text = CODE_RE.sub(repl, text)
        return masked

    def restore(self, text: str) -> str:
        """Put the original code back into any slice of the masked text."""
        if not self.regions:
            return text
        return MASK_TOKEN_RE.sub(lambda m: self.regions[int(m.group(1))], text)


def split_summary(text: str) -> str | None:
    """Markdown before the first summary separator, or None.

    Separators inside code or inside a block shortcode do not count.
    """
    masked = MaskedText.mask(text)
    blocks = [m.span() for m in BLOCK_RE.finditer(masked.text)]
    for match in SUMMARY_SEPARATOR_RE.finditer(masked.text):
        if not any(start <= match.start() < end for start, end in blocks):
            return masked.restore(masked.text[: match.start()])
    return None


@dataclass
class ShortcodeExpansion:
    """Result of expanding shortcodes in a markdown body.

    Attributes:
        text: Markdown with every call replaced by a placeholder.
        fragments: Rendered HTML, indexed by placeholder number.
    """

    text: str
    fragments: list[str] = field(default_factory=list)

    def substitute(self, html: str) -> str:
        """Replace placeholders in rendered HTML with the shortcode output."""
        if not self.fragments:
            return html

        def repl(match: re.Match) -> str:
            fragment = self.fragments[int(match.group(1))]
            opened, closed = match.group(0).startswith("<p>"), "</p>" in match.group(0)
            if opened and not closed:
                fragment = "<p>" + fragment
            if closed and not opened:
                fragment += "</p>"
            return fragment + ("\n" if match.group(0).endswith("\n") else "")

        return PLACEHOLDER_RE.sub(repl, html)


class ShortcodeRegistry:
    """Registry of shortcode handlers.

    New shortcodes can be registered without touching the renderer.
    """

    def __init__(self):
        self._handlers: dict[str, ShortcodeHandler] = {}

    def register(self, name: str, handler: ShortcodeHandler) -> None:
        self._handlers[name] = handler

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def expand(self, text: str, render_markdown: Callable[[str], str]) -> ShortcodeExpansion:
        """Replace shortcode calls with placeholders.

        Code regions are masked across the whole body first, so a block
        shortcode may contain inline code or a fenced block.

        Args:
            text: Markdown body.
            render_markdown: Renders a block shortcode's body to HTML.

        Returns:
            ShortcodeExpansion with placeholder text and rendered fragments.

        Raises:
            RenderError: For unknown shortcodes, malformed arguments or an
                unterminated block shortcode.
        """
        masked = MaskedText.mask(text)
        expansion = ShortcodeExpansion(text="")

        def block(match: re.Match) -> str:
            body = masked.restore(match.group("body"))
            html = self._call(match.group("name"), match.group("args"), body, render_markdown)
            expansion.fragments.append(html)
            return "\n\n" + PLACEHOLDER.format(len(expansion.fragments) - 1) + "\n\n"

        def inline(match: re.Match) -> str:
            html = self._call(match.group("name"), match.group("args"), None, render_markdown)
            expansion.fragments.append(html)
            return PLACEHOLDER.format(len(expansion.fragments) - 1)

        expanded = BLOCK_RE.sub(block, masked.text)
        dangling = DANGLING_RE.search(expanded)
        if dangling:
            name = dangling.group("name") or "end"
            raise RenderError(f"Unterminated or unmatched shortcode '{name}'")
        expansion.text = masked.restore(INLINE_RE.sub(inline, expanded))
        return expansion

    def _call(
        self,
        name: str,
        raw_args: str,
        body: str | None,
        render_markdown: Callable[[str], str],
    ) -> str:
        handler = self._handlers.get(name)
        if handler is None:
            raise RenderError(f"Unknown shortcode '{name}'")
        args = parse_arguments(raw_args, name)
        if body is not None:
            body = body.strip("\n")
        return handler(args, body, render_markdown)


def create_default_registry() -> ShortcodeRegistry:
    """Create a registry with the built-in shortcodes.

    Returns:
        ShortcodeRegistry with quote, mermaid, details, callout and figure.
    """
    registry = ShortcodeRegistry()
    registry.register("quote", _quote)
    registry.register("mermaid", _mermaid)
    registry.register("details", _details)
    registry.register("callout", _callout)
    registry.register("figure", _figure)
    return registry

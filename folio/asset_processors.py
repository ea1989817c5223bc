"""Asset processors for Folio.

This module contains the transforms of the asset pipeline. Each processor
handles a single type of asset, following the Single Responsibility
Principle (SRP). All of them work on text in memory; the build writes
the results.

Key classes:
- SassCompiler: Compiles SCSS/Sass sources with libsass.
- HTMLMinifier: Minifies HTML with minify-html and checks the structure survived.
- CSSMinifier: Minifies CSS with rcssmin.
- JSMinifier: Minifies JavaScript with rjsmin.
- MinifierRegistry: Picks the minifier for an output path.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

import minify_html
import rcssmin
import rjsmin
import sass

from .errors import CompileError, MinifyError
from .html_utils import html_structure

logger = logging.getLogger(__name__)

SASS_LOCATION_RE = re.compile(r"on line (?P<line>\d+):(?P<column>\d+) of (?P<file>\S+)")
SASS_SUFFIXES = {".scss", ".sass"}


def compile_scss(
    source: str,
    path: Path | str | None = None,
    include_paths: Sequence[Path] = (),
    indented: bool = False,
    output_style: str = "expanded",
) -> str:
    """Compile a stylesheet source to CSS.

    Args:
        source: SCSS (or indented Sass) text.
        path: Source path, for error attribution.
        include_paths: Directories searched by @use/@import.
        indented: True for the indented .sass syntax.
        output_style: libsass output style.

    Returns:
        The compiled CSS.

    Raises:
        CompileError: With line and column when libsass reports them.
    """
    try:
        return sass.compile(
            string=source,
            include_paths=[str(p) for p in include_paths],
            indented=indented,
            output_style=output_style,
        )
    except sass.CompileError as exc:
        raise _compile_error(exc, path) from exc


def _compile_error(exc: Exception, path: Path | str | None) -> CompileError:
    message = str(exc).strip()
    first_line = message.splitlines()[0] if message else "Sass compilation failed"
    if first_line.startswith("Error: "):
        first_line = first_line[len("Error: ") :]
    match = SASS_LOCATION_RE.search(message)
    line = int(match.group("line")) if match else None
    column = int(match.group("column")) if match else None
    return CompileError(first_line, path, line=line, column=column, original_error=exc)


class SassCompiler:
    """Compiles every non-partial stylesheet under a set of sass directories.

    Partials (files starting with an underscore) are only compiled through
    the files that import them. Later directories override earlier ones
    when both hold the same relative path, so a site can shadow a theme.

    Attributes:
        source_dirs: sass directories, lowest precedence first.
    """

    def __init__(self, source_dirs: Sequence[Path]):
        self.source_dirs = [d for d in source_dirs if d.is_dir()]

    def discover(self) -> dict[PurePosixPath, Path]:
        """Map output CSS paths to their source files."""
        sources: dict[PurePosixPath, Path] = {}
        for source_dir in self.source_dirs:
            for path in sorted(source_dir.rglob("*")):
                if path.suffix not in SASS_SUFFIXES or not path.is_file():
                    continue
                if path.name.startswith("_"):
                    continue
                rel = PurePosixPath(path.relative_to(source_dir).with_suffix(".css").as_posix())
                sources[rel] = path
        return sources

    def compile(self) -> dict[PurePosixPath, str]:
        """Compile every discovered stylesheet.

        Returns:
            Output path (relative to the output root) to CSS text.

        Raises:
            CompileError: On the first stylesheet that fails.
        """
        compiled: dict[PurePosixPath, str] = {}
        for rel, path in self.discover().items():
            include_paths = [path.parent, *self.source_dirs]
            compiled[rel] = compile_scss(
                path.read_text(encoding="utf-8"),
                path,
                include_paths=include_paths,
                indented=path.suffix == ".sass",
            )
            logger.debug("Compiled %s", path)
        return compiled


class BaseMinifier(ABC):
    """Base class for minifiers.

    Each subclass handles one output type. A minifier must not change
    what the document means; failures raise MinifyError.
    """

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return minifier priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: PurePosixPath) -> bool:
        """Check if this minifier handles the given output path."""
        ...

    @abstractmethod
    def minify(self, text: str) -> str:
        """Return the minified text."""
        ...

    def process(self, text: str, path: PurePosixPath) -> str:
        """Minify text, attributing failures to path."""
        try:
            return self.minify(text)
        except MinifyError as exc:
            raise exc.with_path(path)
        except Exception as exc:
            raise MinifyError(f"{type(exc).__name__}: {exc}", path, exc) from exc


class HTMLMinifier(BaseMinifier):
    """Minifies HTML.

    Closing tags and the html/head opening tags are kept. The tag sequence
    and visible text of the output are compared against the input.
    """

    @property
    def priority(self) -> int:
        return 100

    def can_process(self, path: PurePosixPath) -> bool:
        return path.suffix.lower() in (".html", ".htm")

    def minify(self, text: str) -> str:
        minified = minify_html.minify(
            text,
            keep_closing_tags=True,
            keep_html_and_head_opening_tags=True,
        )
        if html_structure(minified) != html_structure(text):
            raise MinifyError("Minified HTML does not match the structure of its input")
        return minified


class CSSMinifier(BaseMinifier):
    """Minifies CSS with rcssmin."""

    @property
    def priority(self) -> int:
        return 90

    def can_process(self, path: PurePosixPath) -> bool:
        return path.suffix.lower() == ".css"

    def minify(self, text: str) -> str:
        return rcssmin.cssmin(text)


class JSMinifier(BaseMinifier):
    """Minifies JavaScript with rjsmin."""

    @property
    def priority(self) -> int:
        return 80

    def can_process(self, path: PurePosixPath) -> bool:
        return path.suffix.lower() == ".js"

    def minify(self, text: str) -> str:
        return rjsmin.jsmin(text)


class MinifierRegistry:
    """Registry for managing minifiers.

    New minifiers can be added without modifying existing code.
    """

    def __init__(self):
        self._minifiers: list[BaseMinifier] = []

    def register(self, minifier: BaseMinifier) -> None:
        """Register a minifier, keeping the list sorted by priority."""
        self._minifiers.append(minifier)
        self._minifiers.sort(key=lambda m: m.priority, reverse=True)

    def get_minifier(self, path: PurePosixPath) -> BaseMinifier | None:
        for minifier in self._minifiers:
            if minifier.can_process(path):
                return minifier
        return None

    def process(self, text: str, path: PurePosixPath) -> str:
        """Minify text with the matching minifier, or return it unchanged."""
        minifier = self.get_minifier(path)
        if minifier is None:
            return text
        return minifier.process(text, path)


def create_default_registry() -> MinifierRegistry:
    """Create a registry with the HTML, CSS and JS minifiers."""
    registry = MinifierRegistry()
    registry.register(HTMLMinifier())
    registry.register(CSSMinifier())
    registry.register(JSMinifier())
    return registry

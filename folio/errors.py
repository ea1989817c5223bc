"""Build errors for Folio.

Every stage of the build raises a subclass of BuildError. Content-level
errors carry the path of the offending file so the CLI can point at it.

Classes:
    BuildError: Base class, optionally attributed to a source file.
    ConfigError: Invalid or inconsistent site configuration.
    MalformedMetadata: Front matter is missing, unparseable or incomplete.
    InvalidDate: A front matter date could not be parsed.
    RenderError: Unknown shortcode or unsupported highlighting language.
    DuplicateURL: Two entities resolve to the same output URL.
    CompileError: Stylesheet compilation failed.
    MinifyError: Minification of an emitted file failed.
    TemplateError: The template renderer could not resolve a template or variable.
    BuildAborted: The build was cancelled between stages.
"""

from __future__ import annotations

from pathlib import Path


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error, if known.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        message: str,
        source_path: Path | str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.source_path = Path(source_path) if source_path is not None else None
        self.original_error = original_error
        super().__init__(self._format())

    def _format(self) -> str:
        if self.source_path is None:
            return self.message
        return f"{self.source_path}: {self.message}"

    def with_path(self, source_path: Path | str) -> BuildError:
        """Attach a source path if the error does not already carry one."""
        if self.source_path is None:
            self.source_path = Path(source_path)
            self.args = (self._format(),)
        return self


class ConfigError(BuildError):
    """Site configuration is invalid."""


class MalformedMetadata(BuildError):
    """Front matter is not valid structured data or misses required fields."""


class InvalidDate(MalformedMetadata):
    """A date in front matter cannot be parsed as a calendar date."""


class RenderError(BuildError):
    """Markdown body could not be rendered."""


class DuplicateURL(BuildError):
    """Two entities compute the same output URL.

    Attributes:
        url: The contested URL.
        other_path: Source path of the entity that claimed the URL first.
    """

    def __init__(self, url: str, source_path: Path | str, other_path: Path | str):
        self.url = url
        self.other_path = Path(other_path)
        super().__init__(
            f"URL {url} is already used by {other_path}", source_path=source_path
        )


class CompileError(BuildError):
    """Stylesheet compilation failed.

    Attributes:
        line: 1-based line of the error, if the compiler reported one.
        column: 1-based column of the error, if the compiler reported one.
    """

    def __init__(
        self,
        message: str,
        source_path: Path | str | None = None,
        line: int | None = None,
        column: int | None = None,
        original_error: Exception | None = None,
    ):
        self.line = line
        self.column = column
        if line is not None:
            location = f"line {line}" + (f", column {column}" if column else "")
            message = f"{message} ({location})"
        super().__init__(message, source_path, original_error)


class MinifyError(BuildError):
    """Minification of an emitted file failed."""


class TemplateError(BuildError):
    """The template renderer could not resolve a template or a variable."""


class BuildAborted(BuildError):
    """The build was cancelled through its abort signal."""

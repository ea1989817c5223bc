"""Protocol definitions for Folio.

This module defines the interfaces (protocols) the build depends on,
following the Dependency Inversion Principle (DIP) of SOLID.

These protocols enable:
- Loose coupling between the build and its collaborators
- Easy testing through stub implementations
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .renderers import RenderedDocument


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for rendering content bodies to HTML.

    Implementations must be safe to call from several threads at once.
    """

    @abstractmethod
    def render(self, body: str) -> RenderedDocument:
        """Render a body (without front matter) to HTML.

        Args:
            body: Source text.

        Returns:
            RenderedDocument with the HTML, headings and optional summary.

        Raises:
            RenderError: If the body cannot be rendered.
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown')."""
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Protocol for rendering named templates.

    This defines the interface for template rendering engines,
    allowing different implementations (Jinja2, a stub in tests, etc.).
    """

    @abstractmethod
    def render(self, template_name: str, context: dict[str, Any]) -> str:
        """Render a template by name.

        Args:
            template_name: Template to render, e.g. "page.html".
            context: Variables to make available in the template.

        Returns:
            Rendered string.

        Raises:
            TemplateError: If the template is missing or fails to render.
        """
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Protocol for loading content files.

    This separates file discovery from content processing (SRP).
    """

    @abstractmethod
    def load(self) -> list[tuple[PurePosixPath, str]]:
        """Read every content file.

        Returns:
            List of (path relative to the content directory, raw text) pairs.
        """
        ...

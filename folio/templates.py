"""Template rendering engine for Folio.

This module uses Jinja2 to render named templates for pages, sections,
taxonomies and the 404 page.

Key class:
- TemplateEngine: Resolves templates from the site, its theme and the
  built-in defaults, and converts Jinja2 failures into TemplateError.

Design principles:
- Single Responsibility: The engine only renders; the build decides what
  to render and where the output goes.
- Dependency Inversion: The build depends on the TemplateRenderer
  protocol, so a different engine can be substituted.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
    select_autoescape,
)
from markupsafe import Markup, escape

from .config import SiteConfig
from .errors import TemplateError
from .html_utils import join_root_url
from .renderers import Heading

__all__ = ["DEFAULT_TEMPLATES_DIR", "TemplateEngine", "render_toc"]

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "default_templates"


def render_toc(page_or_headings: Any) -> Markup:
    """Render a table of contents as nested HTML from page headings.

    Generates properly nested `<ul><li><a href="#id">text</a></li></ul>` structure
    based on heading levels.

    Args:
        page_or_headings: A Page (its ``toc`` is used) or a list of Headings.

    Returns:
        Markup-safe HTML string of the nested TOC, or empty Markup if no headings.
    """
    headings = getattr(page_or_headings, "toc", page_or_headings)
    if not headings:
        return Markup("")
    return _render_toc_from_headings(list(headings))


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        elif not level_stack or level > level_stack[-1]:  # pragma: no branch
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(f'<li><a href="#{escape(heading.id)}">{escape(heading.text)}</a>')

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Templates are looked up in ``templates/`` of the project, then in
    ``themes/<theme>/templates/``, then in the built-in defaults. Undefined
    variables are errors rather than empty strings.

    Attributes:
        config: Site configuration.
        search_path: Template directories in lookup order.
        env: Jinja2 environment.
    """

    def __init__(
        self,
        config: SiteConfig,
        project_root: Path,
        extra_dirs: Sequence[Path] = (),
    ):
        """Initialize the template engine.

        Args:
            config: Site configuration.
            project_root: Root directory of the project.
            extra_dirs: Additional directories searched before the project's.
        """
        self.config = config
        self.search_path = [*extra_dirs, project_root / "templates"]
        if config.theme:
            self.search_path.append(project_root / "themes" / config.theme / "templates")
        self.search_path.append(DEFAULT_TEMPLATES_DIR)
        self.env = Environment(
            loader=ChoiceLoader([FileSystemLoader(str(d)) for d in self.search_path]),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._install_globals()

    def _install_globals(self) -> None:
        """Install global variables and functions in the Jinja environment."""
        self.env.globals["config"] = self.config
        self.env.globals["get_url"] = self.get_url
        self.env.globals["render_toc"] = render_toc

    def get_url(self, path: str) -> str:
        """Absolute URL for a site path.

        Args:
            path: Path to generate URL for.

        Returns:
            Full URL with the base_url prefix.
        """
        return join_root_url(self.config.base_url, path)

    def render(self, template_name: str, context: dict[str, Any]) -> str:
        """Render a template by name.

        Args:
            template_name: Template to render, e.g. "page.html".
            context: Variables to make available in the template.

        Returns:
            Rendered string.

        Raises:
            TemplateError: If the template (or one it includes) is missing,
                has a syntax error, or references an undefined variable.
        """
        try:
            template = self.env.get_template(template_name)
            return template.render(**context)
        except TemplateNotFound as exc:
            raise TemplateError(f"Template not found: {exc.name}", original_error=exc) from exc
        except TemplateSyntaxError as exc:
            raise TemplateError(
                f"Template syntax error in {exc.name or template_name} on line {exc.lineno}: {exc.message}",
                original_error=exc,
            ) from exc
        except UndefinedError as exc:
            raise TemplateError(
                f"Undefined variable in {template_name}: {exc.message}", original_error=exc
            ) from exc

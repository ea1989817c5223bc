"""Folio static site generator.

This package builds a static site from a directory of Markdown files with
TOML or YAML front matter, Jinja2 templates, Sass stylesheets and static
files. It renders pages and section indexes, indexes taxonomies, writes
Atom/RSS feeds and a sitemap, and compiles and minifies assets.

The main entry point is the CLI module (``folio build``); the build itself
is available as ``folio.build.build_site``.

Architecture follows SOLID principles:
- Single Responsibility: Each module handles one concern (content, feeds, assets, etc.)
- Open/Closed: Registries and protocols allow extension without modification
- Dependency Inversion: The build depends on protocols for rendering
"""

__all__ = ["__version__"]
__version__ = "0.1.0"

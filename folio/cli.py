"""Command-line interface for Folio.

This module defines the CLI commands using Click framework.

Commands:
- build: Build the site into the output directory.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .errors import BuildError


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@click.group()
@click.version_option(version=__version__, prog_name="folio")
def cli():
    """Folio static site generator."""


@cli.command()
@click.option("--drafts", is_flag=True, help="Render draft content")
@click.option("--base-url", default=None, help="Override base_url from config.toml")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Write the site here instead of the configured output_dir",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def build(drafts: bool, base_url: str | None, output_dir: Path | None, verbose: bool):
    """Build the site into the output directory."""
    _configure_logging(verbose)
    project_root = Path.cwd()
    from .build import build_site

    try:
        result = build_site(
            project_root,
            include_drafts=drafts,
            base_url=base_url,
            output_dir=output_dir,
        )
    except BuildError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        if exc.source_path is not None:
            click.echo(click.style(f"  File: {_display_path(exc.source_path, project_root)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    click.echo(
        f"Built {len(result.pages)} pages into {result.output_dir} in {result.duration:.2f}s"
    )


def _display_path(path: Path, project_root: Path) -> Path:
    """Show paths relative to the project root where possible."""
    if path.is_absolute():
        try:
            return path.relative_to(project_root)
        except ValueError:
            return path
    return path


def main():
    """Entry point for the CLI application."""
    cli()

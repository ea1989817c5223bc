"""Asset processing pipeline for Folio.

This module compiles stylesheets, emits syntax-highlighting stylesheets,
minifies emitted files and copies static files. Stages are independently
switched by the site configuration and always run in the same order:
compile before minify.

Key components:
- AssetPipeline: Runs the asset stages over the in-memory output tree.
- Individual transforms live in the asset_processors module.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from pathlib import Path, PurePosixPath

from pygments.formatters import HtmlFormatter

from .asset_processors import MinifierRegistry, SassCompiler, create_default_registry
from .config import SiteConfig
from .renderers import resolve_pygments_style

logger = logging.getLogger(__name__)


class AssetPipeline:
    """Handles stylesheet compilation, minification and static files.

    Attributes:
        config: Site configuration.
        project_root: Root directory of the project.
        theme_dir: Directory of the configured theme, if any.
        minifiers: Registry of minifiers.
    """

    def __init__(
        self,
        config: SiteConfig,
        project_root: Path,
        minifiers: MinifierRegistry | None = None,
    ):
        self.config = config
        self.project_root = project_root
        self.theme_dir = project_root / "themes" / config.theme if config.theme else None
        self.minifiers = minifiers or create_default_registry()

    def _layered_dirs(self, name: str) -> list[Path]:
        """Theme directory first, then the site's, so the site wins."""
        dirs = []
        if self.theme_dir is not None:
            dirs.append(self.theme_dir / name)
        dirs.append(self.project_root / name)
        return dirs

    def compile(self) -> dict[PurePosixPath, str]:
        """Compile stylesheets and highlight themes.

        Returns:
            Output path to CSS text. Empty when both stages are off.

        Raises:
            CompileError: If a stylesheet fails to compile.
        """
        outputs: dict[PurePosixPath, str] = {}
        if self.config.compile_sass:
            compiled = SassCompiler(self._layered_dirs("sass")).compile()
            logger.info("Compiled %d stylesheets", len(compiled))
            outputs.update(compiled)
        outputs.update(self.highlight_stylesheets())
        return outputs

    def highlight_stylesheets(self) -> dict[PurePosixPath, str]:
        """Pygments stylesheets for class-based highlighting.

        Returns:
            Output path to CSS text, one per configured light/dark theme.
        """
        markdown = self.config.markdown
        if not markdown.highlight_code or markdown.highlight_theme != "css":
            return {}
        sheets: dict[PurePosixPath, str] = {}
        for variant, theme in markdown.highlight_theme_map.items():
            style = resolve_pygments_style(theme.theme, variant)
            formatter = HtmlFormatter(style=style, cssclass="highlight")
            sheets[PurePosixPath(theme.filename.lstrip("/"))] = formatter.get_style_defs(".highlight") + "\n"
        return sheets

    def minify(self, outputs: Mapping[PurePosixPath, str]) -> dict[PurePosixPath, str]:
        """Minify emitted files when minification is enabled.

        Args:
            outputs: Output path to text.

        Returns:
            A new mapping; unchanged when minification is off.

        Raises:
            MinifyError: If a file cannot be minified safely.
        """
        if not self.config.minify_html:
            return dict(outputs)
        minified = {path: self.minifiers.process(text, path) for path, text in outputs.items()}
        before = sum(len(t) for t in outputs.values())
        after = sum(len(t) for t in minified.values())
        logger.info("Minified %d files (%d -> %d bytes)", len(minified), before, after)
        return minified

    def copy_static(self, output_dir: Path) -> int:
        """Copy static files into output_dir.

        Returns:
            Number of files copied.
        """
        count = 0
        for static_dir in self._layered_dirs("static"):
            if not static_dir.is_dir():
                continue
            for item in static_dir.rglob("*"):
                if item.is_dir():
                    continue
                dest = output_dir / item.relative_to(static_dir)
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(item, dest)
                count += 1
        return count

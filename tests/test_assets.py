from pathlib import Path, PurePosixPath

import pytest

from folio.asset_processors import (
    CSSMinifier,
    HTMLMinifier,
    JSMinifier,
    SassCompiler,
    compile_scss,
    create_default_registry,
)
from folio.assets import AssetPipeline
from folio.config import config_from_mapping
from folio.errors import CompileError, MinifyError
from folio.html_utils import html_structure

PAGE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Hello</title>
  <!-- a comment -->
</head>
<body>
  <main>
    <h1 id="hello">Hello   world</h1>
    <p>Some <em>emphasis</em> and <a href="/x/">a link</a>.</p>
    <pre><code>line 1
    indented line 2</code></pre>
  </main>
</body>
</html>
"""


def create_project(tmp_path: Path, config: dict | None = None) -> Path:
    (tmp_path / "sass").mkdir()
    (tmp_path / "themes" / "serene" / "sass").mkdir(parents=True)
    (tmp_path / "sass" / "_vars.scss").write_text("$accent: #abcdef;\n", encoding="utf-8")
    (tmp_path / "sass" / "main.scss").write_text(
        '@import "vars";\nbody { a { color: $accent; } }\n', encoding="utf-8"
    )
    (tmp_path / "themes" / "serene" / "sass" / "main.scss").write_text("body { color: blue; }\n", encoding="utf-8")
    (tmp_path / "themes" / "serene" / "sass" / "theme.scss").write_text(
        ".theme { margin: 0; }\n", encoding="utf-8"
    )
    return tmp_path


def test_compile_scss():
    css = compile_scss("$c: #123456;\n.a { .b { color: $c; } }\n")
    assert ".a .b" in css
    assert "#123456" in css


def test_compile_error_carries_location():
    with pytest.raises(CompileError) as exc:
        compile_scss("a {\n  color: red;\n}\n}\n", "sass/broken.scss")
    assert exc.value.line is not None
    assert exc.value.source_path == Path("sass/broken.scss")
    assert f"line {exc.value.line}" in exc.value.message


def test_sass_compiler_skips_partials_and_site_overrides_theme(tmp_path: Path):
    root = create_project(tmp_path)
    compiler = SassCompiler([root / "themes" / "serene" / "sass", root / "sass", root / "missing"])
    compiled = compiler.compile()
    assert set(compiled) == {PurePosixPath("main.css"), PurePosixPath("theme.css")}
    assert "#abcdef" in compiled[PurePosixPath("main.css")]
    assert "blue" not in compiled[PurePosixPath("main.css")]


def test_pipeline_compile_respects_toggle(tmp_path: Path):
    root = create_project(tmp_path)
    off = AssetPipeline(config_from_mapping({}), root)
    assert off.compile() == {}
    on = AssetPipeline(config_from_mapping({"compile_sass": True, "theme": "serene"}), root)
    assert set(on.compile()) == {PurePosixPath("main.css"), PurePosixPath("theme.css")}


def test_highlight_stylesheets(tmp_path: Path):
    config = config_from_mapping(
        {
            "markdown": {
                "highlight_code": True,
                "highlight_themes_css": [
                    {"theme": "serene-light", "filename": "hl-light.css"},
                    {"theme": "monokai", "filename": "/css/hl-dark.css"},
                ],
            }
        }
    )
    sheets = AssetPipeline(config, tmp_path).highlight_stylesheets()
    assert set(sheets) == {PurePosixPath("hl-light.css"), PurePosixPath("css/hl-dark.css")}
    assert all(".highlight" in css for css in sheets.values())
    assert sheets[PurePosixPath("hl-light.css")] != sheets[PurePosixPath("css/hl-dark.css")]


def test_no_highlight_stylesheets_for_inline_theme(tmp_path: Path):
    config = config_from_mapping(
        {
            "markdown": {
                "highlight_code": True,
                "highlight_theme": "monokai",
                "highlight_themes_css": [{"theme": "monokai", "filename": "hl.css"}],
            }
        }
    )
    assert AssetPipeline(config, tmp_path).highlight_stylesheets() == {}


def test_html_minification_keeps_structure():
    minified = HTMLMinifier().minify(PAGE_HTML)
    assert len(minified) < len(PAGE_HTML)
    assert html_structure(minified) == html_structure(PAGE_HTML)
    assert "line 1\n    indented line 2" in minified


def test_html_minification_rejects_structure_changes(monkeypatch):
    monkeypatch.setattr("folio.asset_processors.minify_html.minify", lambda text, **kwargs: "<p>changed</p>")
    with pytest.raises(MinifyError):
        HTMLMinifier().minify(PAGE_HTML)


def test_minifier_failures_are_attributed(monkeypatch):
    def broken(text):
        raise RuntimeError("boom")

    monkeypatch.setattr("folio.asset_processors.rcssmin.cssmin", broken)
    with pytest.raises(MinifyError) as exc:
        create_default_registry().process("a { }", PurePosixPath("main.css"))
    assert exc.value.source_path == Path("main.css")
    assert "boom" in exc.value.message


def test_css_and_js_minifiers():
    assert CSSMinifier().minify("a {  color : red ; }\n") == "a{color:red}"
    assert JSMinifier().minify("var a = 1;\n\n  var b = 2;\n") == "var a=1;var b=2;"


def test_registry_dispatches_by_suffix():
    registry = create_default_registry()
    assert isinstance(registry.get_minifier(PurePosixPath("index.html")), HTMLMinifier)
    assert isinstance(registry.get_minifier(PurePosixPath("app.js")), JSMinifier)
    assert registry.get_minifier(PurePosixPath("atom.xml")) is None
    assert registry.process("<feed>  </feed>", PurePosixPath("atom.xml")) == "<feed>  </feed>"


def test_pipeline_minify_toggle(tmp_path: Path):
    outputs = {PurePosixPath("index.html"): PAGE_HTML, PurePosixPath("style.css"): "a {  color: red; }"}
    off = AssetPipeline(config_from_mapping({}), tmp_path).minify(outputs)
    assert off == outputs
    on = AssetPipeline(config_from_mapping({"minify_html": True}), tmp_path).minify(outputs)
    assert on[PurePosixPath("style.css")] == "a{color:red}"
    assert len(on[PurePosixPath("index.html")]) < len(PAGE_HTML)


def test_copy_static_site_wins(tmp_path: Path):
    (tmp_path / "static" / "img").mkdir(parents=True)
    (tmp_path / "themes" / "serene" / "static").mkdir(parents=True)
    (tmp_path / "static" / "robots-extra.txt").write_text("site", encoding="utf-8")
    (tmp_path / "static" / "img" / "logo.svg").write_text("<svg/>", encoding="utf-8")
    (tmp_path / "themes" / "serene" / "static" / "robots-extra.txt").write_text("theme", encoding="utf-8")
    (tmp_path / "themes" / "serene" / "static" / "theme.js").write_text("x", encoding="utf-8")

    out = tmp_path / "out"
    pipeline = AssetPipeline(config_from_mapping({"theme": "serene"}), tmp_path)
    assert pipeline.copy_static(out) == 4
    assert (out / "robots-extra.txt").read_text(encoding="utf-8") == "site"
    assert (out / "img" / "logo.svg").exists()
    assert (out / "theme.js").exists()


def test_html_structure_ignores_formatting_but_not_text():
    assert html_structure("<p>a  b</p>") == html_structure("<p>a b</p>")
    assert html_structure("<p>a<!-- x -->b</p>") == html_structure("<p>ab</p>")
    assert html_structure("<p>a b</p>") != html_structure("<p>ab</p>")
    assert html_structure("<pre>a  b</pre>") != html_structure("<pre>a b</pre>")
    assert html_structure("<p>x</p>") != html_structure("<div>x</div>")

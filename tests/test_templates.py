from datetime import datetime
from pathlib import Path, PurePosixPath

import pytest

from folio.collections import TaxonomyCollection, TaxonomyIndexer
from folio.config import config_from_mapping
from folio.content import Page, PageOptions, Section
from folio.errors import TemplateError
from folio.renderers import Heading
from folio.templates import TemplateEngine, render_toc


def create_project(tmp_path: Path) -> Path:
    (tmp_path / "templates").mkdir()
    (tmp_path / "themes" / "serene" / "templates").mkdir(parents=True)
    (tmp_path / "templates" / "404.html").write_text("site 404 {{ config.title }}", encoding="utf-8")
    (tmp_path / "themes" / "serene" / "templates" / "404.html").write_text("theme 404", encoding="utf-8")
    (tmp_path / "themes" / "serene" / "templates" / "custom.html").write_text(
        "theme custom {{ get_url('/x/') }}", encoding="utf-8"
    )
    (tmp_path / "templates" / "strict.html").write_text("{{ missing_value }}", encoding="utf-8")
    (tmp_path / "templates" / "broken.html").write_text("{% if %}", encoding="utf-8")
    return tmp_path


def base_context(config, pages=()):
    taxonomies = TaxonomyCollection(TaxonomyIndexer(config.taxonomies).index(pages))
    return {
        "config": config,
        "sections": {},
        "taxonomies": taxonomies,
        "now": datetime(2024, 8, 1),
    }


def test_render_toc_nests_by_level():
    headings = [Heading("a", "A", 1), Heading("b", "B", 2), Heading("c", "C & D", 2), Heading("d", "D", 1)]
    assert render_toc(headings) == (
        '<ul><li><a href="#a">A</a><ul><li><a href="#b">B</a></li>'
        '<li><a href="#c">C &amp; D</a></li></ul></li><li><a href="#d">D</a></li></ul>'
    )
    assert render_toc([]) == ""
    page = Page(path=PurePosixPath("p.md"), title="P", toc=[Heading("x", "X", 2)])
    assert render_toc(page) == '<ul><li><a href="#x">X</a></li></ul>'


def test_lookup_order_site_then_theme_then_defaults(tmp_path: Path):
    root = create_project(tmp_path)
    config = config_from_mapping({"title": "Site", "theme": "serene", "base_url": "https://example.com"})
    engine = TemplateEngine(config, root)
    assert engine.render("404.html", {}) == "site 404 Site"
    assert engine.render("custom.html", {}) == "theme custom https://example.com/x/"
    assert "<h1>404</h1>" in TemplateEngine(config_from_mapping({}), tmp_path / "elsewhere").render(
        "404.html", base_context(config_from_mapping({}))
    )


def test_missing_variable_names_it(tmp_path: Path):
    engine = TemplateEngine(config_from_mapping({}), create_project(tmp_path))
    with pytest.raises(TemplateError) as exc:
        engine.render("strict.html", {})
    assert "missing_value" in exc.value.message


def test_missing_template_names_it(tmp_path: Path):
    engine = TemplateEngine(config_from_mapping({}), tmp_path)
    with pytest.raises(TemplateError) as exc:
        engine.render("nope.html", {})
    assert "nope.html" in exc.value.message


def test_syntax_error_is_a_template_error(tmp_path: Path):
    engine = TemplateEngine(config_from_mapping({}), create_project(tmp_path))
    with pytest.raises(TemplateError) as exc:
        engine.render("broken.html", {})
    assert "line 1" in exc.value.message


def test_default_page_template(tmp_path: Path):
    config = config_from_mapping({"title": "Site", "taxonomies": ["tags"]})
    page = Page(
        path=PurePosixPath("blog/post.md"),
        title="Fish & <Chips>",
        date=datetime(2024, 1, 1),
        content="<p>Rendered <em>body</em></p>",
        url="/blog/post/",
        taxonomies={"tags": ["Rust"]},
        toc=[Heading("intro", "Intro", 2)],
        options=PageOptions(toc=True, outdate_alert=True, outdate_alert_days=30),
        reading_time=2,
    )
    context = base_context(config, [page])
    context.update(
        page=page,
        section=Section(path="blog", title="Blog", url="/blog/"),
        page_terms=context["taxonomies"].terms_for(page),
    )
    html = TemplateEngine(config, tmp_path).render("page.html", context)
    assert "<h1>Fish &amp; &lt;Chips&gt;</h1>" in html
    assert "<p>Rendered <em>body</em></p>" in html
    assert '<nav class="toc"><ul><li><a href="#intro">Intro</a></li></ul></nav>' in html
    assert 'class="outdate-alert"' in html
    assert '<a href="/tags/rust/">Rust</a>' in html
    assert "2 min read" in html


def test_default_section_template_lists_pages(tmp_path: Path):
    config = config_from_mapping({"title": "Site"})
    pages = [
        Page(path=PurePosixPath("blog/a.md"), title="A", url="/blog/a/", summary="<p>Teaser</p>"),
        Page(path=PurePosixPath("blog/b.md"), title="B", url="/blog/b/", description="About B"),
    ]
    section = Section(path="blog", title="Blog", url="/blog/", pages=pages)
    context = base_context(config)
    context.update(section=section, pages=pages, subsections=[])
    html = TemplateEngine(config, tmp_path).render("section.html", context)
    assert '<a href="/blog/a/">A</a>' in html
    assert "<p>Teaser</p>" in html
    assert '<p class="description">About B</p>' in html

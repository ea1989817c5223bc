import threading
from datetime import datetime
from pathlib import Path, PurePosixPath

import pytest

from folio.build import build_site, output_path
from folio.errors import BuildAborted, ConfigError, DuplicateURL, MalformedMetadata, TemplateError

NOW = datetime(2024, 8, 1)

CONFIG = """
base_url = "https://example.com"
title = "Site"
generate_feeds = true
compile_sass = true
taxonomies = [{ name = "categories" }, { name = "tags", feed = true }]

[markdown]
highlight_code = true
highlight_themes_css = [
  { theme = "serene-light", filename = "hl-light.css" },
  { theme = "serene-dark", filename = "hl-dark.css" },
]

[extra]
recent_max = 10
"""


def write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def create_project(tmp_path: Path, config: str = CONFIG) -> Path:
    root = tmp_path / "site"
    write(root / "config.toml", config)
    write(root / "content" / "_index.md", '+++\ntitle = "Home"\n+++\nWelcome.\n')
    write(
        root / "content" / "blog" / "_index.md",
        '+++\ntitle = "Blog"\ngenerate_feeds = true\n+++\n',
    )
    write(
        root / "content" / "blog" / "2024-07-11-first.md",
        '+++\ntitle = "First"\naliases = ["/old-first/"]\n'
        '[taxonomies]\ncategories = ["posts"]\ntags = ["Rust"]\n+++\n'
        "# Hello\n\n```rust\nfn main() {}\n```\n",
    )
    write(
        root / "content" / "blog" / "2024-06-28-second.md",
        '+++\ntitle = "Second"\n[taxonomies]\ncategories = ["posts"]\n+++\nSecond body.\n',
    )
    write(
        root / "content" / "blog" / "draft.md",
        '+++\ntitle = "Draft"\ndraft = true\n[taxonomies]\ntags = ["Secret"]\n+++\nNot yet.\n',
    )
    write(root / "sass" / "main.scss", "$c: #abcdef;\nbody { a { color: $c; } }\n")
    write(root / "static" / "favicon.ico", "icon")
    return root


def read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def test_build_writes_the_whole_site(tmp_path: Path):
    root = create_project(tmp_path)
    result = build_site(root, now=NOW)
    out = root / "public"

    assert result.output_dir == out
    assert [p.title for p in result.pages] == ["First", "Second"]
    for rel in [
        "index.html",
        "404.html",
        "blog/index.html",
        "blog/first/index.html",
        "blog/second/index.html",
        "categories/index.html",
        "categories/posts/index.html",
        "tags/rust/index.html",
        "tags/rust/atom.xml",
        "atom.xml",
        "blog/atom.xml",
        "sitemap.xml",
        "robots.txt",
        "main.css",
        "hl-light.css",
        "hl-dark.css",
        "favicon.ico",
    ]:
        assert (out / rel).is_file(), rel

    assert not (out / "blog" / "draft").exists()
    assert not (out / "tags" / "secret").exists()

    first = read(out / "blog" / "first" / "index.html")
    assert '<h1 id="hello">Hello</h1>' in first
    assert 'class="highlight"' in first
    assert '<a href="https://example.com/tags/rust/">Rust</a>' in first

    blog = read(out / "blog" / "index.html")
    assert blog.index("First") < blog.index("Second")
    assert "Draft" not in blog

    redirect = read(out / "old-first" / "index.html")
    assert 'url=https://example.com/blog/first/' in redirect

    feed = read(out / "atom.xml")
    assert feed.index("First") < feed.index("Second")
    assert "Draft" not in feed

    sitemap = read(out / "sitemap.xml")
    assert "https://example.com/blog/first/" in sitemap
    assert "draft" not in sitemap
    assert "Sitemap: https://example.com/sitemap.xml" in read(out / "robots.txt")
    assert "#abcdef" in read(out / "main.css")
    assert PurePosixPath("blog/atom.xml") in result.feeds


def test_drafts_rendered_only_on_request_and_never_listed(tmp_path: Path):
    root = create_project(tmp_path)
    build_site(root, include_drafts=True, now=NOW)
    out = root / "public"
    assert (out / "blog" / "draft" / "index.html").is_file()
    assert "Draft" not in read(out / "blog" / "index.html")
    assert "Draft" not in read(out / "atom.xml")
    assert not (out / "tags" / "secret").exists()


def test_overrides_for_base_url_and_output_dir(tmp_path: Path):
    root = create_project(tmp_path)
    target = tmp_path / "dist"
    result = build_site(root, base_url="http://localhost:1111", output_dir=target, now=NOW)
    assert result.output_dir == target
    assert "http://localhost:1111/blog/first/" in read(target / "sitemap.xml")
    assert not (root / "public").exists()


def test_failed_build_leaves_previous_output_untouched(tmp_path: Path):
    root = create_project(tmp_path)
    out = root / "public"
    write(out / "marker.txt", "previous build")
    write(root / "content" / "blog" / "broken.md", "no front matter")

    with pytest.raises(MalformedMetadata) as exc:
        build_site(root, now=NOW)
    assert exc.value.source_path == Path("blog/broken.md")
    assert read(out / "marker.txt") == "previous build"
    assert [p.name for p in root.iterdir() if "staging" in p.name] == []


def test_successful_build_replaces_previous_output(tmp_path: Path):
    root = create_project(tmp_path)
    write(root / "public" / "stale.html", "old")
    build_site(root, now=NOW)
    assert not (root / "public" / "stale.html").exists()
    assert (root / "public" / "index.html").exists()
    assert sorted(p.name for p in root.iterdir()) == ["config.toml", "content", "public", "sass", "static"]


def test_abort_signal_stops_the_build(tmp_path: Path):
    root = create_project(tmp_path)
    abort = threading.Event()
    abort.set()
    with pytest.raises(BuildAborted):
        build_site(root, abort=abort, now=NOW)
    assert not (root / "public").exists()


class RecordingRenderer:
    def __init__(self):
        self.calls = []

    def render(self, template_name, context):
        self.calls.append((template_name, context))
        return f"<p>{template_name}</p>"


def test_template_renderer_is_pluggable(tmp_path: Path):
    root = create_project(tmp_path)
    renderer = RecordingRenderer()
    build_site(root, renderer=renderer, now=NOW)

    names = [name for name, _ in renderer.calls]
    assert names.count("page.html") == 2
    assert names.count("index.html") == 1
    assert names.count("section.html") == 1
    assert names.count("taxonomy_list.html") == 2
    assert names.count("taxonomy_single.html") == 2
    assert names.count("404.html") == 1

    page_context = next(ctx for name, ctx in renderer.calls if name == "page.html")
    for key in ["config", "page", "section", "sections", "taxonomies", "page_terms", "get_url", "now"]:
        assert key in page_context
    assert read(root / "public" / "404.html") == "<p>404.html</p>"


def test_template_failures_are_attributed_to_the_page(tmp_path: Path):
    root = create_project(tmp_path)

    class Failing(RecordingRenderer):
        def render(self, template_name, context):
            if template_name == "page.html":
                raise KeyError("author")
            return super().render(template_name, context)

    with pytest.raises(TemplateError) as exc:
        build_site(root, renderer=Failing(), now=NOW)
    assert exc.value.source_path is not None
    assert "KeyError" in exc.value.message


def test_missing_template_variable_fails_the_build(tmp_path: Path):
    root = create_project(tmp_path)
    write(root / "templates" / "page.html", "{{ page.title }} {{ page.author }}")
    with pytest.raises(TemplateError) as exc:
        build_site(root, now=NOW)
    assert "author" in exc.value.message


def test_taxonomy_url_colliding_with_section_fails(tmp_path: Path):
    config = CONFIG.replace('{ name = "categories" }', '{ name = "blog" }')
    root = create_project(tmp_path, config)
    write(
        root / "content" / "blog" / "2024-06-28-second.md",
        '+++\ntitle = "Second"\n+++\nSecond body.\n',
    )
    write(
        root / "content" / "blog" / "2024-07-11-first.md",
        '+++\ntitle = "First"\n[taxonomies]\nblog = ["posts"]\n+++\n',
    )
    with pytest.raises(DuplicateURL):
        build_site(root, now=NOW)


def test_minified_build(tmp_path: Path):
    root = create_project(tmp_path, CONFIG.replace("compile_sass = true", "compile_sass = true\nminify_html = true"))
    build_site(root, now=NOW)
    css = read(root / "public" / "main.css")
    assert "\n" not in css.strip()
    page = read(root / "public" / "blog" / "second" / "index.html")
    assert "Second body." in page
    assert "\n  " not in page


def test_output_path():
    assert output_path("/") == PurePosixPath("index.html")
    assert output_path("/blog/post/") == PurePosixPath("blog/post/index.html")


def test_featured_pages_on_home_page(tmp_path: Path):
    root = create_project(tmp_path)
    write(
        root / "content" / "blog" / "2024-06-28-second.md",
        '+++\ntitle = "Second"\n[extra]\nfeatured = true\n+++\nSecond body.\n',
    )
    build_site(root, now=NOW)
    home = read(root / "public" / "index.html")
    assert '<section class="featured">' in home
    featured = home.split('<section class="featured">', 1)[1].split("</section>", 1)[0]
    assert "Second" in featured
    assert "First" not in featured
    assert '<section class="featured">' not in read(root / "public" / "blog" / "index.html")


@pytest.mark.parametrize("output_dir", [".", "..", "content", "static/site", "themes"])
def test_output_dir_may_not_replace_sources(tmp_path: Path, output_dir: str):
    root = create_project(tmp_path)
    with pytest.raises(ConfigError):
        build_site(root, output_dir=output_dir, now=NOW)
    assert (root / "content" / "blog" / "2024-07-11-first.md").is_file()
    assert (root / "static" / "favicon.ico").is_file()
    assert not (root / "public").exists()


def test_output_dir_may_not_replace_the_project_via_absolute_path(tmp_path: Path):
    root = create_project(tmp_path)
    with pytest.raises(ConfigError):
        build_site(root, output_dir=str(root.resolve()), now=NOW)
    assert (root / "config.toml").is_file()

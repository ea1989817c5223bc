import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import PurePosixPath

from folio.content import Page, PageOptions, Section
from folio.feeds import AtomGenerator, RSSGenerator, SitemapGenerator, generate, generator_for

ATOM = "{http://www.w3.org/2005/Atom}"


def make_section(*pages):
    return Section(path="blog", title="Blog", url="/blog/", pages=list(pages))


def make_page(slug, date, title=None, content="<p>Body</p>", **kwargs):
    return Page(
        path=PurePosixPath(f"blog/{slug}.md"),
        title=title or slug.title(),
        date=date,
        url=f"/blog/{slug}/",
        content=content,
        **kwargs,
    )


def test_max_items_takes_the_newest_entry():
    newer = make_page("newer", datetime(2024, 7, 11))
    older = make_page("older", datetime(2024, 6, 28))
    feed = generate(make_section(newer, older), 1, "https://example.com", site_title="Site")

    assert feed.entries == [newer]
    root = ET.fromstring(feed.content)
    entries = root.findall(f"{ATOM}entry")
    assert len(entries) == 1
    assert entries[0].find(f"{ATOM}title").text == "Newer"
    assert entries[0].find(f"{ATOM}link").get("href") == "https://example.com/blog/newer/"
    assert root.find(f"{ATOM}title").text == "Site - Blog"


def test_all_entries_keep_section_order():
    pages = [make_page("a", datetime(2024, 3, 1)), make_page("b", datetime(2024, 2, 1))]
    feed = generate(make_section(*pages), None, "https://example.com")
    assert feed.entries == pages


def test_drafts_are_skipped():
    draft = make_page("draft", datetime(2024, 8, 1), draft=True)
    live = make_page("live", datetime(2024, 7, 1))
    feed = generate(make_section(draft, live), 10, "https://example.com")
    assert feed.entries == [live]


def test_text_and_html_are_escaped():
    page = make_page(
        "tricky",
        datetime(2024, 7, 11),
        title='Ampersands & <tags> "quoted"',
        content="<p>Fish &amp; chips</p><script>alert(1)</script>",
    )
    feed = generate(make_section(page), 5, "https://example.com")
    assert "<script>" not in feed.content
    root = ET.fromstring(feed.content)
    entry = root.find(f"{ATOM}entry")
    assert entry.find(f"{ATOM}title").text == 'Ampersands & <tags> "quoted"'
    assert entry.find(f"{ATOM}content").text == "<p>Fish &amp; chips</p><script>alert(1)</script>"


def test_truncated_summary_is_used_when_enabled():
    page = make_page(
        "long",
        datetime(2024, 7, 11),
        content="<p>Intro</p><p>More</p>",
        summary="<p>Intro</p>",
        options=PageOptions(truncate_summary=True),
    )
    feed = generate(make_section(page), 5, "https://example.com")
    content = ET.fromstring(feed.content).find(f"{ATOM}entry").find(f"{ATOM}content").text
    assert content == "<p>Intro</p>"


def test_empty_section_yields_valid_empty_feed():
    feed = generate(make_section(), 10, "https://example.com")
    assert feed.entries == []
    root = ET.fromstring(feed.content)
    assert root.findall(f"{ATOM}entry") == []


def test_rss_feed():
    page = make_page("post", datetime(2024, 7, 11, 8, 30))
    feed = generate(make_section(page), 10, "https://example.com", filename="rss.xml")
    channel = ET.fromstring(feed.content).find("channel")
    item = channel.find("item")
    assert item.find("link").text == "https://example.com/blog/post/"
    assert item.find("pubDate").text == "Thu, 11 Jul 2024 08:30:00 +0000"
    assert item.find("description").text == "<p>Body</p>"


def test_generator_for_filename():
    assert isinstance(generator_for("atom.xml"), AtomGenerator)
    assert isinstance(generator_for("feed.xml"), AtomGenerator)
    assert isinstance(generator_for("rss.xml"), RSSGenerator)


def test_sitemap_is_sorted_and_deduplicated():
    sitemap = SitemapGenerator().generate(
        "https://example.com",
        [("/b/", datetime(2024, 7, 11)), ("/a/", None), ("/b/", datetime(2024, 7, 11))],
    )
    assert sitemap.count("<url>") == 2
    assert sitemap.index("https://example.com/a/") < sitemap.index("https://example.com/b/")
    assert "<lastmod>2024-07-11</lastmod>" in sitemap

from datetime import datetime
from pathlib import Path

import pytest

from folio.utils import (
    AnchorSlugger,
    count_words,
    extract_date_from_name,
    is_hidden,
    is_markdown,
    is_section_file,
    reading_time,
    slugify,
    strip_date_prefix,
    titleize,
)


def test_slugify_strips_apostrophes_and_punctuation():
    assert slugify("It's all about memory") == "its-all-about-memory"
    assert slugify("It’s all about memory") == "its-all-about-memory"
    assert slugify("  --Rust & Go--  ") == "rust-go"
    assert slugify("Hello,   World!") == "hello-world"


def test_slugify_transliterates_diacritics():
    assert slugify("Café Au Lait") == "cafe-au-lait"
    assert slugify("Ünïcödé") == "unicode"


def test_slugify_empty_input_and_only_separators():
    assert slugify("") == ""
    assert slugify("!!!") == ""


def test_slugify_is_idempotent():
    for raw in ["It's all about memory", "Café Au Lait", "a--b__c", "2024-07-11 Post"]:
        once = slugify(raw)
        assert slugify(once) == once


def test_slugify_strategies():
    assert slugify("Hello World", strategy="off") == "Hello World"
    assert slugify("Café Au Lait", strategy="safe") == "Café-Au-Lait"
    assert slugify("what?/is#this", strategy="safe") == "whatisthis"


def test_slugify_rejects_unknown_mode_or_strategy():
    with pytest.raises(ValueError):
        slugify("x", mode="titles")
    with pytest.raises(ValueError):
        slugify("x", strategy="maybe")


def test_anchor_slugger_suffixes_collisions_in_order():
    slugger = AnchorSlugger()
    assert slugger("Intro") == "intro"
    assert slugger("Intro") == "intro-2"
    assert slugger("intro!") == "intro-3"
    assert slugger("Setup") == "setup"
    assert slugger("???") == "section"
    assert slugger("") == "section-2"


def test_anchor_slugger_is_per_document():
    assert AnchorSlugger()("Intro") == "intro"
    assert AnchorSlugger()("Intro") == "intro"


def test_titleize_and_dates():
    assert titleize("2024-01-15-hello-world.md") == "Hello World"
    assert titleize("about_us") == "About Us"
    assert extract_date_from_name("2024-07-11-post") == datetime(2024, 7, 11)
    assert extract_date_from_name("2024-13-01-post") is None
    assert extract_date_from_name("notes") is None
    assert strip_date_prefix("2024-07-11-post") == "post"
    assert strip_date_prefix("2024-07-11_post") == "post"
    assert strip_date_prefix("2024-07-11") == "2024-07-11"


def test_word_count_and_reading_time():
    assert count_words("one two three") == 3
    assert reading_time(0) == 0
    assert reading_time(1) == 1
    assert reading_time(401) == 3


def test_path_predicates():
    assert is_markdown(Path("post.MD"))
    assert not is_markdown(Path("post.txt"))
    assert is_section_file(Path("blog/_index.md"))
    assert not is_section_file(Path("blog/index.md"))
    assert is_hidden(Path(".drafts/post.md"))
    assert not is_hidden(Path("blog/post.md"))

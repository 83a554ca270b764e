"""Unit tests for posts.py: Post assembly and site index ordering"""

import dataclasses
import datetime as dt
import random
from pathlib import Path

import pytest

from staticpost.errors import DuplicateSlug, EmptySlug, MalformedMetadata
from staticpost.models import Metadata, RenderedBody
from staticpost.posts import build_post, build_site_index

UTC = dt.timezone.utc
BODY = RenderedBody(html="<p>one two three</p>")


def make_post(title, date=None, source=None, draft=False, slug=None):
    meta = Metadata(title=title, date=date, draft=draft, slug=slug, has_header=True)
    source = Path(source or f"{title}.md")
    return build_post(meta, BODY, source, 0.0)


def day(n: int) -> dt.datetime:
    return dt.datetime(2024, 1, n, tzinfo=UTC)


def test_header_title_and_derived_fields():
    post = make_post("Hello World", date=day(5), source="anything.md")
    assert post.title == "Hello World"
    assert post.slug == "hello-world"
    assert post.output_path == "hello-world/index.html"
    assert post.url == "hello-world/"
    assert post.date == day(5)
    assert post.date_source == "metadata"
    assert post.word_count == 3


def test_explicit_slug_wins_over_title():
    post = make_post("Hello World", slug="Custom Slug!")
    assert post.slug == "custom-slug"


def test_leading_heading_is_title_without_header():
    post = build_post(Metadata(), BODY, Path("whatever.md"), 0.0, heading="From Heading")
    assert post.title == "From Heading"
    assert post.slug == "from-heading"


def test_filename_fallback_strips_date_prefix():
    """Without header or heading, the file name gives the title, slug and date."""
    post = build_post(Metadata(), BODY, Path("2024-03-02-my-notes.md"), 0.0)
    assert post.title == "my-notes"
    assert post.slug == "my-notes"
    assert post.date == dt.datetime(2024, 3, 2, tzinfo=UTC)
    assert post.date_source == "filename"


def test_mtime_is_the_last_date_fallback():
    post = build_post(Metadata(), BODY, Path("plain.md"), 1700000000.7)
    assert post.date == dt.datetime.fromtimestamp(1700000000, tz=UTC)
    assert post.date_source == "mtime"


def test_header_without_title_is_malformed():
    meta = Metadata(author="Ada", has_header=True)
    with pytest.raises(MalformedMetadata):
        build_post(meta, BODY, Path("titled-by-name.md"), 0.0)


@pytest.mark.parametrize("meta,source", [
    (Metadata(title="!!!", has_header=True), Path("x.md")),
    (Metadata(), Path("   .md")),
    (Metadata(title="日本語", has_header=True), Path("x.md")),
])
def test_empty_slug(meta, source):
    with pytest.raises(EmptySlug) as excinfo:
        build_post(meta, BODY, source, 0.0)
    assert excinfo.value.source == source


def test_summary_from_header_is_inline_markdown():
    meta = Metadata(title="T", summary="A *short* one", has_header=True)
    post = build_post(meta, BODY, Path("t.md"), 0.0)
    assert post.summary_html == "A <em>short</em> one"


def test_derived_summary_is_escaped_plain_text():
    rendered = RenderedBody(html="<h2>Intro</h2>\n<p>Fish &amp; <em>chips</em></p>")
    post = build_post(Metadata(title="T", has_header=True), rendered, Path("t.md"), 0.0)
    assert post.summary_html == "Intro Fish &amp; chips"


def test_post_is_immutable():
    post = make_post("Frozen")
    with pytest.raises(dataclasses.FrozenInstanceError):
        post.title = "Changed"


def test_index_orders_newest_first():
    posts = [make_post("Old", day(1)), make_post("New", day(3)), make_post("Mid", day(2))]
    index = build_site_index(posts)
    assert [p.slug for p in index.posts] == ["new", "mid", "old"]


def test_same_date_ties_break_on_slug():
    """Posts sharing a date are ordered by slug ascending."""
    posts = [make_post("B post", day(1)), make_post("A post", day(1))]
    index = build_site_index(posts)
    assert [p.slug for p in index.posts] == ["a-post", "b-post"]


def test_ordering_ignores_input_order():
    posts = [make_post(f"Post {n}", day(n % 4 + 1)) for n in range(12)]
    expected = [p.slug for p in build_site_index(posts).posts]
    rng = random.Random(7)
    for _ in range(5):
        shuffled = posts[:]
        rng.shuffle(shuffled)
        assert [p.slug for p in build_site_index(shuffled).posts] == expected


def test_drafts_are_kept_out_of_posts():
    posts = [make_post("Live", day(1)), make_post("Secret", day(2), draft=True)]
    index = build_site_index(posts)
    assert [p.slug for p in index.posts] == ["live"]
    assert [p.slug for p in index.drafts] == ["secret"]
    assert index.recent(10) == index.posts


def test_recent_limits_the_feed():
    posts = [make_post(f"Post {n}", day(n)) for n in range(1, 6)]
    index = build_site_index(posts)
    assert [p.slug for p in index.recent(2)] == ["post-5", "post-4"]
    assert len(index.recent(0)) == 5


def test_duplicate_slug_names_both_sources():
    posts = [
        make_post("Hello, World!", day(2), source="b.md"),
        make_post("Hello World", day(1), source="a.md"),
    ]
    with pytest.raises(DuplicateSlug) as excinfo:
        build_site_index(posts)
    error = excinfo.value
    assert error.slug == "hello-world"
    assert error.paths == (Path("a.md"), Path("b.md"))
    assert "a.md" in str(error) and "b.md" in str(error)


def test_draft_collision_only_matters_when_drafts_are_written():
    posts = [
        make_post("Hello World", day(1), source="a.md"),
        make_post("Hello World", day(2), source="b.md", draft=True),
    ]
    assert [p.slug for p in build_site_index(posts).posts] == ["hello-world"]
    with pytest.raises(DuplicateSlug):
        build_site_index(posts, include_drafts=True)

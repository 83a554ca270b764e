"""Unit tests for render.py and pages.py: placeholder substitution, page payloads"""

import datetime as dt
from pathlib import Path

import pytest

from staticpost.errors import MissingTemplate
from staticpost.models import Metadata, RenderedBody
from staticpost.pages import ArchivePage, FeedPage, IndexPage, PostPage, SiteInfo, paginate, render_page
from staticpost.posts import build_post
from staticpost.render import Html, TemplateSet, fix_relative_img_src, render_template

SITE = SiteInfo(title="Cats & Dogs", description="A <pet> blog", url="https://example.com/blog/")


def make_post(title="A <b> post", summary=None, date=dt.datetime(2024, 3, 2, tzinfo=dt.timezone.utc)):
    meta = Metadata(title=title, summary=summary, date=date, has_header=True)
    rendered = RenderedBody(html='<p>Body <img alt="x" src="pic.png" /></p>', toc="")
    return build_post(meta, rendered, Path("post.md"), 0.0)


def minimal_templates(**overrides):
    templates = {
        "index": "<title>{{title}}</title><ol>{{posts}}</ol>",
        "post": "<h1>{{title}}</h1>{{body}}",
        "feed": "<channel>{{entries}}</channel>",
    }
    templates.update(overrides)
    return TemplateSet(templates)


def test_values_are_escaped():
    assert render_template("<p>{{x}}</p>", x="<script>&") == "<p>&lt;script&gt;&amp;</p>"


def test_html_values_are_verbatim():
    assert render_template("<div>{{x}}</div>", x=Html("<em>ok</em>")) == "<div><em>ok</em></div>"


def test_substitution_is_single_pass():
    """Placeholder text inside a substituted value is not expanded again."""
    out = render_template("{{a}}|{{b}}", a=Html("{{b}}"), b="B")
    assert out == "{{b}}|B"


def test_unknown_placeholders_are_left_alone():
    assert render_template("{{known}} {{unknown}}", known="k") == "k {{unknown}}"


def test_placeholders_may_contain_spaces():
    assert render_template("{{  name }}", name="v", other=None) == "v"


def test_none_renders_empty():
    assert render_template("[{{x}}]", x=None) == "[]"


def test_missing_template_kind():
    templates = TemplateSet({"index": "x", "feed": "y"})
    with pytest.raises(MissingTemplate) as excinfo:
        render_page(templates, "post", PostPage(SITE, make_post()))
    assert excinfo.value.kind == "post"
    with pytest.raises(MissingTemplate):
        templates.require()


def test_payload_must_match_kind():
    with pytest.raises(TypeError):
        render_page(minimal_templates(), "index", PostPage(SITE, make_post()))


def test_from_dir_loads_theme_and_default_fragments(tmp_path):
    (tmp_path / "index.html").write_text("I", encoding="utf-8")
    (tmp_path / "post.html").write_text("P", encoding="utf-8")
    (tmp_path / "feed.xml").write_text("F", encoding="utf-8")
    (tmp_path / "index-entry.html").write_text("<li>{{title}}</li>", encoding="utf-8")
    templates = TemplateSet.from_dir(tmp_path)
    templates.require()
    assert templates.get("index_entry") == "<li>{{title}}</li>"
    assert "<item>" in templates.get("feed_entry")
    assert templates.location == tmp_path


def test_from_dir_without_post_template(tmp_path):
    (tmp_path / "index.html").write_text("I", encoding="utf-8")
    (tmp_path / "feed.xml").write_text("F", encoding="utf-8")
    with pytest.raises(MissingTemplate) as excinfo:
        TemplateSet.from_dir(tmp_path).require()
    assert excinfo.value.kind == "post"


def test_index_page_escapes_titles():
    html = render_page(minimal_templates(), "index", IndexPage(SITE, (make_post(),)))
    assert "<title>Cats &amp; Dogs</title>" in html
    assert "A &lt;b&gt; post" in html
    assert "<b>" not in html
    assert 'href="./a-b-post/"' in html


def test_post_page_rewrites_relative_images():
    html = render_page(minimal_templates(), "post", PostPage(SITE, make_post()))
    assert "<h1>A &lt;b&gt; post</h1>" in html
    assert 'src="../pic.png"' in html


def test_post_page_summary_is_markup_and_description_is_text():
    post = make_post(summary="A *short* one")
    context = PostPage(SITE, post).context(minimal_templates())
    assert context["summary"] == "A <em>short</em> one"
    assert isinstance(context["summary"], Html)
    assert context["description"] == "A short one"


def test_feed_links_are_absolute_and_summary_escaped():
    post = make_post(summary="A *short* one")
    xml = render_page(minimal_templates(), "feed", FeedPage(SITE, (post,)))
    assert "<link>https://example.com/blog/a-b-post/</link>" in xml
    assert "<pubDate>Sat, 02 Mar 2024 00:00:00 +0000</pubDate>" in xml
    assert "<description>A &lt;em&gt;short&lt;/em&gt; one</description>" in xml


def test_later_index_pages_link_back_to_root():
    page = IndexPage(SITE, (make_post(),), page=2, total_pages=3)
    assert page.output_path == "page/2/index.html"
    context = page.context(minimal_templates())
    assert context["root"] == "../.."
    assert 'rel="prev" href="../../"' in context["pagination"]
    assert 'rel="next" href="../../page/3/"' in context["pagination"]


def test_paginate():
    posts = tuple(range(5))
    assert paginate(posts, 0) == [posts]
    assert paginate(posts, 2) == [(0, 1), (2, 3), (4,)]


@pytest.mark.parametrize("src,expected", [
    ("pic.png", "../pic.png"),
    ("https://example.com/x.png", "https://example.com/x.png"),
    ("/abs.png", "/abs.png"),
    ("../up.png", "../up.png"),
])
def test_fix_relative_img_src(src, expected):
    out = fix_relative_img_src(f'<img alt="a" src="{src}" />', "..")
    assert f'src="{expected}"' in out


def test_intro_only_on_first_index_page():
    templates = minimal_templates(index="<div>{{intro}}</div>{{posts}}")
    first = render_page(templates, "index", IndexPage(SITE, (), page=1, total_pages=2, intro="<p>Hi</p>"))
    second = render_page(templates, "index", IndexPage(SITE, (), page=2, total_pages=2, intro="<p>Hi</p>"))
    assert first == "<div><p>Hi</p></div>"
    assert second == "<div></div>"


def test_archive_page_lists_posts_with_default_entries():
    templates = minimal_templates(archive="<h1>{{title}}</h1><p>{{count}}</p><ol>{{posts}}</ol>")
    html = render_page(templates, "archive", ArchivePage(SITE, (make_post(),)))
    assert ArchivePage(SITE, ()).output_path == "archive/index.html"
    assert "<h1>Archive | Cats &amp; Dogs</h1>" in html
    assert "<p>1</p>" in html
    assert '<li class="archive-entry"><time datetime="2024-03-02T00:00:00Z">2024-03-02</time>' in html
    assert '<a href="../a-b-post/">A &lt;b&gt; post</a>' in html


def test_template_set_membership():
    templates = minimal_templates()
    assert "index" in templates
    assert "archive_entry" in templates
    assert "archive" not in templates
    assert "archive" in minimal_templates(archive="x")

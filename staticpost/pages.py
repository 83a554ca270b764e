from __future__ import annotations

import html
import math
from dataclasses import dataclass
from typing import Optional

from .markup import plain_text
from .models import Post
from .render import Html, TemplateSet, fix_relative_img_src, render_template
from .utils import iso_date, join_url, rfc822_date

DATE_FMT = "%Y-%m-%d"
LONG_DATE_FMT = "%A, %d %B %Y"
FEED_PATH = "rss.xml"
ARCHIVE_PATH = "archive/index.html"


def page_dir(page: int) -> str:
    return "" if page == 1 else f"page/{page}/"


def page_root(page: int) -> str:
    return "." if page == 1 else "../.."


def paginate(posts: tuple[Post, ...], per_page: int) -> list[tuple[Post, ...]]:
    if per_page <= 0 or len(posts) <= per_page:
        return [posts]
    total = math.ceil(len(posts) / per_page)
    return [posts[i * per_page : (i + 1) * per_page] for i in range(total)]


def build_pagination(page: int, total_pages: int, root: str) -> str:
    if total_pages <= 1:
        return ""

    def url(num: int) -> str:
        return f"{root}/{page_dir(num)}"

    items = []
    if page > 1:
        items.append(f'<a class="page-link" rel="prev" href="{url(page - 1)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    items.append(f'<span class="page-number">Page {page} of {total_pages}</span>')
    if page < total_pages:
        items.append(f'<a class="page-link" rel="next" href="{url(page + 1)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def build_tag_list(tags: tuple[str, ...]) -> str:
    if not tags:
        return ""
    chips = "".join(f'<li class="chip">{html.escape(tag)}</li>' for tag in tags)
    return f'<ul class="post-tags">{chips}</ul>'


def build_byline(post: Post, author: str) -> str:
    time_tag = (
        f'<time datetime="{post.date.strftime(DATE_FMT)}" title="{post.date.strftime("%d %B %Y")}">'
        f"{post.date.strftime(LONG_DATE_FMT)}</time>"
    )
    if author:
        return f'Published by <a rel="author">{html.escape(author)}</a> on {time_tag}'
    return f"Published on {time_tag}"


@dataclass(frozen=True)
class SiteInfo:
    title: str
    description: str
    url: str
    lang: str = "en"
    author: str = ""

    @property
    def feed_url(self) -> str:
        return join_url(self.url, FEED_PATH)


@dataclass(frozen=True)
class IndexPage:
    site: SiteInfo
    posts: tuple[Post, ...]
    page: int = 1
    total_pages: int = 1
    intro: str = ""

    @property
    def output_path(self) -> str:
        return f"{page_dir(self.page)}index.html"

    def context(self, templates: TemplateSet) -> dict:
        root = page_root(self.page)
        entry_template = templates.get("index_entry")
        entries = "\n".join(
            render_template(
                entry_template,
                url=f"{root}/{post.url}",
                title=post.title,
                date=post.date.strftime(DATE_FMT),
                date_iso=iso_date(post.date),
                summary=Html(post.summary_html),
                words=post.word_count,
                tags=Html(build_tag_list(post.metadata.tags)),
            )
            for post in self.posts
        )
        return {
            "root": root,
            "lang": self.site.lang,
            "site_title": self.site.title,
            "site_description": self.site.description,
            "title": self.site.title if self.page == 1 else f"{self.site.title} | Page {self.page}",
            "feed_url": f"{root}/{FEED_PATH}",
            "intro": Html(self.intro if self.page == 1 else ""),
            "posts": Html(entries),
            "pagination": Html(build_pagination(self.page, self.total_pages, root)),
        }


@dataclass(frozen=True)
class ArchivePage:
    """Every published post on one page, newest first."""

    site: SiteInfo
    posts: tuple[Post, ...]

    @property
    def output_path(self) -> str:
        return ARCHIVE_PATH

    def context(self, templates: TemplateSet) -> dict:
        root = ".."
        entry_template = templates.get("archive_entry")
        entries = "\n".join(
            render_template(
                entry_template,
                url=f"{root}/{post.url}",
                title=post.title,
                date=post.date.strftime(DATE_FMT),
                date_iso=iso_date(post.date),
                summary=Html(post.summary_html),
                words=post.word_count,
            )
            for post in self.posts
        )
        return {
            "root": root,
            "lang": self.site.lang,
            "site_title": self.site.title,
            "site_description": self.site.description,
            "title": f"Archive | {self.site.title}",
            "feed_url": f"{root}/{FEED_PATH}",
            "count": len(self.posts),
            "posts": Html(entries),
        }


@dataclass(frozen=True)
class PostPage:
    site: SiteInfo
    post: Post

    @property
    def output_path(self) -> str:
        return self.post.output_path

    def context(self, templates: TemplateSet) -> dict:
        post = self.post
        root = ".."
        author = post.metadata.author or self.site.author
        draft_notice = '<p class="draft-notice">Draft: this post is not listed.</p>' if post.draft else ""
        return {
            "root": root,
            "lang": self.site.lang,
            "site_title": self.site.title,
            "site_description": self.site.description,
            "title": post.title,
            "page_title": f"{post.title} | {self.site.title}",
            "author": author,
            "byline": Html(build_byline(post, author)),
            "date": post.date.strftime(DATE_FMT),
            "date_iso": iso_date(post.date),
            "summary": Html(post.summary_html),
            "description": " ".join(plain_text(post.summary_html).split()),
            "body": Html(fix_relative_img_src(post.body_html, root)),
            "toc": Html(post.toc_html),
            "tags": Html(build_tag_list(post.metadata.tags)),
            "words": post.word_count,
            "draft_notice": Html(draft_notice),
            "feed_url": f"{root}/{FEED_PATH}",
        }


@dataclass(frozen=True)
class FeedPage:
    site: SiteInfo
    posts: tuple[Post, ...]
    updated: Optional[str] = None

    @property
    def output_path(self) -> str:
        return FEED_PATH

    def context(self, templates: TemplateSet) -> dict:
        entry_template = templates.get("feed_entry")
        entries = "\n".join(
            render_template(
                entry_template,
                title=post.title,
                link=join_url(self.site.url, post.url),
                pub_date=rfc822_date(post.date),
                date_iso=iso_date(post.date),
                # Escaped once more so readers get the markup as text.
                summary=post.summary_html,
                author=post.metadata.author or self.site.author,
            )
            for post in self.posts
        )
        updated = self.updated
        if updated is None:
            updated = rfc822_date(self.posts[0].date) if self.posts else ""
        return {
            "lang": self.site.lang,
            "site_title": self.site.title,
            "site_description": self.site.description,
            "site_url": join_url(self.site.url, ""),
            "feed_url": self.site.feed_url,
            "updated": updated,
            "entries": Html(entries),
        }


PAYLOAD_TYPES = {"index": IndexPage, "post": PostPage, "feed": FeedPage, "archive": ArchivePage}


def render_page(templates: TemplateSet, kind: str, payload: object) -> str:
    """Render one page of ``kind``; raises MissingTemplate if the set lacks it."""
    template = templates.get(kind)
    expected = PAYLOAD_TYPES.get(kind)
    if expected is None or not isinstance(payload, expected):
        raise TypeError(f"{kind!r} pages need a {expected.__name__ if expected else 'known'} payload")
    return render_template(template, **payload.context(templates))

from __future__ import annotations

import datetime as dt
import html
from pathlib import Path
from typing import Iterable, Optional

from .content import count_words, filename_parts, slugify
from .errors import DuplicateSlug, EmptySlug, MalformedMetadata
from .markup import plain_text, render_inline, summarize
from .models import (
    DATE_FROM_FILENAME,
    DATE_FROM_METADATA,
    DATE_FROM_MTIME,
    Metadata,
    Post,
    RenderedBody,
    SiteIndex,
)


def output_path_for(slug: str) -> str:
    return f"{slug}/index.html"


def resolve_date(metadata: Metadata, source_path: Path, mtime: float) -> tuple[dt.datetime, str]:
    if metadata.date is not None:
        return metadata.date, DATE_FROM_METADATA
    date_from_name, _ = filename_parts(source_path)
    if date_from_name is not None:
        return date_from_name, DATE_FROM_FILENAME
    return dt.datetime.fromtimestamp(int(mtime), tz=dt.timezone.utc), DATE_FROM_MTIME


def build_post(
    metadata: Metadata,
    rendered: RenderedBody,
    source_path: Path,
    mtime: float,
    heading: Optional[str] = None,
    allow_raw_html: bool = False,
) -> Post:
    """Assemble an immutable Post from parsed and rendered parts.

    ``heading`` is the leading ``# `` heading taken from a document that has
    no header block; such documents fall back to it, then to the file name,
    for their title. A document with a header must carry ``title`` itself.
    """
    _, name = filename_parts(source_path)
    if metadata.title:
        title = metadata.title
    elif metadata.has_header:
        raise MalformedMetadata("missing required field 'title'", source_path)
    else:
        title = heading or name.strip()

    slug = slugify(metadata.slug or title)
    if not slug:
        raise EmptySlug(f"no slug can be derived from {title or source_path.name!r}", source_path)

    date, date_source = resolve_date(metadata, source_path, mtime)
    if metadata.summary:
        summary_html = render_inline(metadata.summary, allow_raw_html)
    else:
        summary_html = html.escape(summarize(rendered.html))

    return Post(
        slug=slug,
        title=title,
        metadata=metadata,
        body_html=rendered.html,
        summary_html=summary_html,
        toc_html=rendered.toc,
        source_path=source_path,
        output_path=output_path_for(slug),
        date=date,
        date_source=date_source,
        word_count=count_words(plain_text(rendered.html)),
    )


def index_sort_key(post: Post) -> tuple[float, str]:
    return (-post.date.timestamp(), post.slug)


def build_site_index(posts: Iterable[Post], include_drafts: bool = False) -> SiteIndex:
    """Order published posts newest first and reject slug collisions.

    Every post that will be written takes part in the collision check: all
    published posts, plus drafts when ``include_drafts`` is set.
    """
    posts = sorted(posts, key=lambda p: p.source_path.as_posix())
    owners: dict[str, Post] = {}
    for post in posts:
        if post.draft and not include_drafts:
            continue
        if post.slug in owners:
            raise DuplicateSlug(post.slug, owners[post.slug].source_path, post.source_path)
        owners[post.slug] = post
    published = sorted((p for p in posts if not p.draft), key=index_sort_key)
    drafts = sorted((p for p in posts if p.draft), key=lambda p: (p.slug, p.source_path.as_posix()))
    return SiteIndex(posts=tuple(published), drafts=tuple(drafts))

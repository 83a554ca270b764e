from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

RECOGNIZED_KEYS = ("title", "author", "summary", "date", "draft", "tags", "slug")

DATE_FROM_METADATA = "metadata"
DATE_FROM_FILENAME = "filename"
DATE_FROM_MTIME = "mtime"


@dataclass(frozen=True)
class SourceDocument:
    path: Path
    rel: Path
    text: str
    mtime: float


@dataclass(frozen=True)
class Metadata:
    title: Optional[str] = None
    author: Optional[str] = None
    summary: Optional[str] = None
    date: Optional[dt.datetime] = None
    draft: bool = False
    tags: tuple[str, ...] = ()
    slug: Optional[str] = None
    # Unrecognized keys, kept for forward compatibility.
    extra: dict = field(default_factory=dict, compare=False)
    has_header: bool = field(default=False, compare=False)


@dataclass(frozen=True)
class RenderedBody:
    html: str
    toc: str = ""


@dataclass(frozen=True)
class Post:
    slug: str
    title: str
    metadata: Metadata
    body_html: str
    summary_html: str
    toc_html: str
    source_path: Path
    output_path: str
    date: dt.datetime
    date_source: str
    word_count: int

    @property
    def draft(self) -> bool:
        return self.metadata.draft

    @property
    def url(self) -> str:
        return f"{self.slug}/"


@dataclass(frozen=True)
class PostError:
    source_path: Path
    error: Exception

    @property
    def kind(self) -> str:
        return getattr(self.error, "kind", type(self.error).__name__)

    def describe(self) -> str:
        message = getattr(self.error, "message", str(self.error))
        return f"{self.source_path.as_posix()}: {self.kind}: {message}"


@dataclass(frozen=True)
class SiteIndex:
    posts: tuple[Post, ...]
    drafts: tuple[Post, ...] = ()

    def recent(self, limit: int) -> tuple[Post, ...]:
        if limit <= 0:
            return self.posts
        return self.posts[:limit]


@dataclass
class BuildReport:
    index: SiteIndex
    errors: list[PostError]
    written: list[str]
    removed: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.errors)

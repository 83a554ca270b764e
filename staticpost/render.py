from __future__ import annotations

import html
import re
import shutil
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from .errors import MissingTemplate

IMG_SRC_RE = re.compile(r'<img([^>]*?)src="([^"]+)"', re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

PAGE_KINDS = ("index", "post", "feed")
TEMPLATE_FILES = {
    "index": "index.html",
    "post": "post.html",
    "feed": "feed.xml",
    "index_entry": "index-entry.html",
    "feed_entry": "feed-entry.xml",
    "archive": "archive.html",
    "archive_entry": "archive-entry.html",
}
DEFAULT_FRAGMENTS = {
    "index_entry": (
        '<li class="post-entry">'
        '<a href="{{url}}"><h2 class="post-title">{{title}}</h2></a>'
        '<time datetime="{{date_iso}}">{{date}}</time>'
        '<p class="post-summary">{{summary}}</p>'
        "</li>"
    ),
    "archive_entry": (
        '<li class="archive-entry">'
        '<time datetime="{{date_iso}}">{{date}}</time> '
        '<a href="{{url}}">{{title}}</a>'
        '<p class="post-summary">{{summary}}</p>'
        "</li>"
    ),
    "feed_entry": (
        "<item>\n"
        "<title>{{title}}</title>\n"
        "<link>{{link}}</link>\n"
        '<guid isPermaLink="true">{{link}}</guid>\n'
        "<pubDate>{{pub_date}}</pubDate>\n"
        "<description>{{summary}}</description>\n"
        "</item>"
    ),
}


class Html(str):
    """A value that is already safe markup and is substituted verbatim."""


def fix_relative_img_src(html_text: str, root: str) -> str:
    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        src = match.group(2)
        if src.startswith(("http://", "https://", "data:", "#", "/", "./", "../")):
            return match.group(0)
        return f'<img{attrs}src="{root}/{src}"'

    return IMG_SRC_RE.sub(repl, html_text)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def render_template(template: str, **context: object) -> str:
    """Substitute ``{{ name }}`` placeholders in one pass.

    Values are escaped unless they are Html instances. Placeholders with no
    matching value are left as they are, and substituted text is never
    scanned again.
    """

    def repl(match: re.Match) -> str:
        key = match.group(1)
        if key not in context:
            return match.group(0)
        value = context[key]
        if value is None:
            return ""
        if isinstance(value, Html):
            return str(value)
        return html.escape(str(value))

    return PLACEHOLDER_RE.sub(repl, template)


class TemplateSet:
    """Read-only mapping from page kind to template text."""

    def __init__(self, templates: Mapping[str, str], location: Optional[Path] = None) -> None:
        merged = dict(DEFAULT_FRAGMENTS)
        merged.update(templates)
        self._templates = MappingProxyType(merged)
        self.location = location

    @classmethod
    def from_dir(cls, path: Path) -> "TemplateSet":
        templates = {}
        for kind, filename in TEMPLATE_FILES.items():
            template_path = path / filename
            if template_path.is_file():
                templates[kind] = read_template(template_path)
        return cls(templates, location=path)

    def get(self, kind: str) -> str:
        try:
            return self._templates[kind]
        except KeyError:
            raise MissingTemplate(kind, self.location) from None

    def require(self, kinds=PAGE_KINDS) -> None:
        for kind in kinds:
            self.get(kind)

    def __contains__(self, kind: object) -> bool:
        return kind in self._templates


def read_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def copy_static(static_dir: Path, output_dir: Path) -> list[Path]:
    """Copy the static tree verbatim; returns the copied paths relative to ``output_dir``."""
    copied = []
    for item in sorted(static_dir.rglob("*"), key=lambda p: p.as_posix()):
        if not item.is_file():
            continue
        rel = item.relative_to(static_dir)
        dest = output_dir / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(item, dest)
        copied.append(rel)
    return copied

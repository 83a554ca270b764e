from __future__ import annotations

import datetime as dt
import html as html_lib
import re
import unicodedata
from pathlib import Path
from typing import Optional

from .errors import MalformedMetadata
from .models import RECOGNIZED_KEYS, Metadata
from .utils import parse_flag, to_utc

HEADER_MARKER = "---"
COMMENT_MARKER = "#"
LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
DOUBLE_QUOTE_RE = re.compile(r"^(?P<indent>[ \t]*)>>(?!>)(?P<rest>.*)$")
FILENAME_DATE_RE = re.compile(r"^(?P<date>\d{4}-\d{2}-\d{2})(?:[-_ ](?P<rest>.*))?$")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")

LONG_DATE_FORMATS = (
    "%d %b %Y %I:%M:%S %p %z",
    "%d %b %Y %H:%M:%S %z",
    "%d %B %Y %I:%M:%S %p %z",
    "%d %B %Y %H:%M:%S %z",
    "%d %b %Y %I:%M %p %z",
    "%d %b %Y %H:%M %z",
    "%d %B %Y %I:%M %p %z",
    "%d %B %Y %H:%M %z",
)


def slugify(text: str) -> str:
    """Lower-case, hyphenated slug limited to ``[a-z0-9-]``; may be empty."""
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"[^a-z0-9-]", "", text)
    return re.sub(r"-+", "-", text).strip("-")


def parse_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def parse_date_value(value: str) -> dt.datetime:
    """Parse an ISO or long-form date. Naive values are taken as UTC."""
    value = value.strip()
    parsed = None
    iso_value = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = dt.datetime.fromisoformat(iso_value)
    except ValueError:
        for fmt in LONG_DATE_FORMATS:
            try:
                parsed = dt.datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        raise ValueError(f"unrecognized date {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    try:
        to_utc(parsed)
    except OverflowError:
        raise ValueError(f"date out of range {value!r}") from None
    return parsed


def parse_metadata(text: str) -> tuple[Metadata, str]:
    """Split ``text`` into its header block and markdown body.

    A document without an opening ``---`` line has no header: empty metadata
    and the whole text as body. Raises MalformedMetadata for a header that is
    present but unterminated, has lines without ``key: value`` shape, or has
    an invalid ``draft`` or ``date`` value.
    """
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != HEADER_MARKER:
        return Metadata(), clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == HEADER_MARKER:
            end = i
            break
    if end is None:
        raise MalformedMetadata("metadata header is not terminated by '---'")

    raw: dict[str, str] = {}
    for lineno, line in enumerate(lines[1:end], start=2):
        line = line.strip()
        if not line or line.startswith(COMMENT_MARKER):
            continue
        if ":" not in line:
            raise MalformedMetadata(f"line {lineno}: expected 'key: value', got {line!r}")
        key, value = line.split(":", 1)
        key = key.strip().lower()
        if not key:
            raise MalformedMetadata(f"line {lineno}: empty key")
        value = value.strip()
        if not value:
            raw.pop(key, None)
            continue
        raw[key] = value

    draft = False
    if "draft" in raw:
        try:
            draft = parse_flag(raw["draft"])
        except ValueError:
            raise MalformedMetadata(f"invalid value for 'draft': {raw['draft']!r}") from None
    date = None
    if "date" in raw:
        try:
            date = parse_date_value(raw["date"])
        except ValueError:
            raise MalformedMetadata(f"invalid value for 'date': {raw['date']!r}") from None

    meta = Metadata(
        title=raw.get("title"),
        author=raw.get("author"),
        summary=raw.get("summary"),
        date=date,
        draft=draft,
        tags=tuple(parse_list(raw.get("tags", ""))),
        slug=raw.get("slug"),
        extra={key: value for key, value in raw.items() if key not in RECOGNIZED_KEYS},
        has_header=True,
    )
    body = "\n".join(lines[end + 1 :])
    return meta, body


def format_metadata(meta: Metadata) -> str:
    lines = [HEADER_MARKER]
    if meta.title:
        lines.append(f"title: {meta.title}")
    if meta.author:
        lines.append(f"author: {meta.author}")
    if meta.summary:
        lines.append(f"summary: {meta.summary}")
    if meta.date is not None:
        lines.append(f"date: {meta.date.isoformat()}")
    if meta.draft:
        lines.append("draft: true")
    if meta.tags:
        lines.append(f"tags: [{', '.join(meta.tags)}]")
    if meta.slug:
        lines.append(f"slug: {meta.slug}")
    for key, value in meta.extra.items():
        lines.append(f"{key}: {value}")
    lines.append(HEADER_MARKER)
    return "\n".join(lines) + "\n"


def extract_title(body: str) -> tuple[Optional[str], str]:
    """Take a leading ``# `` heading out of ``body`` and return it."""
    lines = body.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip().rstrip("#").strip()
            if not title:
                break
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    return None, body


def filename_parts(path: Path) -> tuple[Optional[dt.datetime], str]:
    """Split a ``YYYY-MM-DD-name`` stem into its date and the remaining name."""
    stem = path.stem
    match = FILENAME_DATE_RE.match(stem.strip())
    if not match:
        return None, stem
    try:
        date = dt.datetime.strptime(match.group("date"), "%Y-%m-%d")
    except ValueError:
        return None, stem
    return date.replace(tzinfo=dt.timezone.utc), match.group("rest") or stem


def normalize_list_spacing(text: str) -> str:
    """Blank line before top-level lists, four-space nesting for list items."""
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    indents: list[int] = []
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        quote_match = DOUBLE_QUOTE_RE.match(line)
        if quote_match:
            rest = quote_match.group("rest").lstrip()
            if rest:
                line = f'{quote_match.group("indent")}> {rest}'
            else:
                line = f'{quote_match.group("indent")}>'
        list_match = LIST_MARKER_RE.match(line)
        if list_match:
            indent = len(list_match.group("indent").expandtabs(4))
            if not indent:
                indents = [0]
                if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                    out.append("")
            elif indents:
                while len(indents) > 1 and indent < indents[-1]:
                    indents.pop()
                if indent > indents[-1]:
                    indents.append(indent)
                line = " " * (4 * (len(indents) - 1)) + line.lstrip(" \t")
        elif not line.strip():
            pass
        elif not line.startswith((" ", "\t")):
            indents = []
        out.append(line)
    return "\n".join(out)


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count

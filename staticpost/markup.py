from __future__ import annotations

import html as html_lib
import re

import markdown
from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor
from markdown.treeprocessors import Treeprocessor

from .content import normalize_list_spacing
from .errors import RenderFailure
from .models import RenderedBody
from .render import strip_tags

DELIMITER_ROW_RE = re.compile(r"^\s*\|?\s*:?-+:?\s*(?:\|\s*:?-+:?\s*)*\|?\s*$")
CONTROL_RE = re.compile(r"[\x00-\x20]+")
UNSAFE_SCHEMES = ("javascript:", "vbscript:")
SUMMARY_LENGTH = 200


def split_row(row: str) -> list[str]:
    """Split a pipe table row into stripped cells, honouring ``\\|`` and code spans."""
    row = row.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|") and not row.endswith("\\|"):
        row = row[:-1]
    cells = []
    current: list[str] = []
    in_code = False
    for idx, char in enumerate(row):
        if char == "`":
            in_code = not in_code
        elif char == "|" and not in_code and (idx == 0 or row[idx - 1] != "\\"):
            cells.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    cells.append("".join(current).strip())
    return cells


def format_row(cells: list[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def is_table_header(line: str) -> bool:
    if "|" not in line or line.startswith(("    ", "\t")):
        return False
    return any(split_row(line))


class TableRepairPreprocessor(Preprocessor):
    """Fit every table row to its header width before the tables extension runs.

    Short rows are padded with empty cells, long rows are truncated, and the
    delimiter row is rebuilt to the same width. Tables glued to a preceding
    paragraph get a separating blank line.
    """

    def run(self, lines):
        out = []
        i = 0
        while i < len(lines):
            line = lines[i]
            if (
                i + 1 < len(lines)
                and is_table_header(line)
                and "|" in lines[i + 1]
                and DELIMITER_ROW_RE.match(lines[i + 1])
            ):
                header = split_row(line)
                width = len(header)
                delimiters = split_row(lines[i + 1])
                delimiters = (delimiters + ["---"] * width)[:width]
                if out and out[-1].strip():
                    out.append("")
                out.append(format_row(header))
                out.append(format_row(delimiters))
                i += 2
                while i < len(lines) and lines[i].strip() and "|" in lines[i]:
                    cells = split_row(lines[i])
                    out.append(format_row((cells + [""] * width)[:width]))
                    i += 1
                continue
            out.append(line)
            i += 1
        return out


class LinkSanitizer(Treeprocessor):
    def run(self, root):
        for el in root.iter():
            for attr in ("href", "src"):
                value = el.get(attr)
                if value is not None and is_unsafe_url(value, allow_data=attr == "src"):
                    del el.attrib[attr]
        return None


def is_unsafe_url(value: str, allow_data: bool = False) -> bool:
    value = CONTROL_RE.sub("", html_lib.unescape(value)).lower()
    if value.startswith(UNSAFE_SCHEMES):
        return True
    return not allow_data and value.startswith("data:")


class SafeContentExtension(Extension):
    def __init__(self, allow_raw_html: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.allow_raw_html = allow_raw_html

    def extendMarkdown(self, md):
        if not self.allow_raw_html:
            # Raw HTML falls through to the serializer, which escapes it.
            md.preprocessors.deregister("html_block")
            md.inlinePatterns.deregister("html")
        md.preprocessors.register(TableRepairPreprocessor(md), "table_repair", 22)
        md.treeprocessors.register(LinkSanitizer(md), "link_sanitizer", 4)


def build_markdown(allow_raw_html: bool = False, toc_depth: str = "2-4") -> markdown.Markdown:
    return markdown.Markdown(
        extensions=[
            "fenced_code",
            "tables",
            "toc",
            "codehilite",
            "sane_lists",
            SafeContentExtension(allow_raw_html=allow_raw_html),
        ],
        extension_configs={
            "toc": {"toc_depth": toc_depth},
            "codehilite": {"guess_lang": False},
        },
    )


def render_markdown(text: str, allow_raw_html: bool = False) -> RenderedBody:
    md = build_markdown(allow_raw_html)
    try:
        html_content = md.convert(normalize_list_spacing(text))
    except Exception as exc:
        raise RenderFailure(f"markdown conversion failed: {exc}") from exc
    toc_html = md.toc if "<li" in md.toc else ""
    return RenderedBody(html=html_content, toc=toc_html)


def render_inline(text: str, allow_raw_html: bool = False) -> str:
    html_content = render_markdown(text, allow_raw_html).html.strip()
    if html_content.startswith("<p>") and html_content.endswith("</p>") and html_content.count("<p>") == 1:
        return html_content[3:-4]
    return html_content


def plain_text(html_content: str) -> str:
    return html_lib.unescape(strip_tags(html_content))


def summarize(html_content: str, limit: int = SUMMARY_LENGTH) -> str:
    summary = " ".join(plain_text(html_content).split())
    if len(summary) > limit:
        return summary[:limit].rstrip() + "..."
    return summary

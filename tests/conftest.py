"""Shared fixtures: a throwaway site tree with the bundled default theme"""

import shutil
from pathlib import Path
from typing import Optional

import pytest

from staticpost.config import SiteConfig


_PROJECT_ROOT = Path(__file__).parent.parent
TEMPLATES_DIR = _PROJECT_ROOT / "templates"


def post_text(
    title: Optional[str],
    date: Optional[str] = None,
    draft: Optional[str] = None,
    body: str = "Body text.",
    **extra: str,
) -> str:
    """Build a source document with a header block."""
    lines = ["---"]
    if title is not None:
        lines.append(f"title: {title}")
    if date is not None:
        lines.append(f"date: {date}")
    if draft is not None:
        lines.append(f"draft: {draft}")
    for key, value in extra.items():
        lines.append(f"{key}: {value}")
    lines.append("---")
    return "\n".join(lines) + "\n\n" + body + "\n"


class SiteTree:
    def __init__(self, root: Path):
        self.root = root
        self.posts = root / "posts"
        self.posts.mkdir()
        self.templates = root / "templates"
        shutil.copytree(TEMPLATES_DIR, self.templates)
        self.static = root / "static"
        self.static.mkdir()
        (self.static / "style.css").write_text("body { color: black; }\n", encoding="utf-8")
        (self.static / "robots.txt").write_text("User-agent: *\nAllow: /\n", encoding="utf-8")
        self.output = root / "dist"

    def write_post(self, name: str, text: str) -> Path:
        path = self.posts / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def config(self, **overrides) -> SiteConfig:
        config = SiteConfig(
            posts=self.posts,
            output=self.output,
            templates=self.templates,
            static=self.static,
            site_title="Test Site",
            site_description="A site for tests",
            build_workers=1,
        )
        return config.with_overrides(**overrides)

    def read(self, rel: str) -> str:
        return (self.output / rel).read_text(encoding="utf-8")

    def snapshot(self) -> dict:
        if not self.output.exists():
            return {}
        return {
            path.relative_to(self.output).as_posix(): path.read_bytes()
            for path in sorted(self.output.rglob("*"))
            if path.is_file()
        }


@pytest.fixture(name="site")
def site_fixture(tmp_path):
    return SiteTree(tmp_path)


@pytest.fixture(name="doc")
def doc_fixture():
    """The post_text builder, for tests that write their own sources."""
    return post_text

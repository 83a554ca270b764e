from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Mapping, Optional

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

import yaml

from .utils import parse_bool, parse_float, parse_int

SOURCE_EXTENSIONS = (".md", ".markdown")
FEED_LIMIT = 20
MAX_WORKERS = 32


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            print(f"Invalid TOML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        return data
    if suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            print(f"Invalid YAML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        if data is None:
            return {}
        if not isinstance(data, dict):
            print(f"YAML config must be a mapping: {path}", file=sys.stderr)
            sys.exit(1)
        return data
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        print(f"Invalid JSON in config file {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"JSON config must be an object: {path}", file=sys.stderr)
        sys.exit(1)
    return data


@dataclass(frozen=True)
class SiteConfig:
    """Everything a build needs, passed explicitly from the CLI to the renderer."""

    posts: Path = Path("posts")
    output: Path = Path("dist")
    templates: Path = Path("templates")
    static: Optional[Path] = Path("static")
    intro: Optional[Path] = None
    site_title: str = "staticpost"
    site_description: str = ""
    site_url: str = ""
    author: str = ""
    lang: str = "en"
    feed_limit: int = FEED_LIMIT
    posts_per_page: int = 0
    build_workers: int = 0
    timeout: float = 0.0
    render_drafts: bool = False
    allow_raw_html: bool = False
    extensions: tuple[str, ...] = SOURCE_EXTENSIONS

    @classmethod
    def from_mapping(cls, data: Mapping, base_dir: Optional[Path] = None) -> "SiteConfig":
        """Build a config from a loaded config file; relative paths resolve against ``base_dir``."""
        defaults = cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            print(f"Ignoring unknown config keys: {', '.join(unknown)}", file=sys.stderr)

        def path_value(key: str, default: Optional[Path]) -> Optional[Path]:
            value = data.get(key)
            if value == "":
                return None
            path = default if value is None else Path(str(value))
            if path is not None and base_dir is not None and not path.is_absolute():
                path = base_dir / path
            return path

        def str_value(key: str, default: str) -> str:
            value = data.get(key)
            return default if value is None else str(value)

        extensions = data.get("extensions", defaults.extensions)
        if isinstance(extensions, str):
            extensions = [item.strip() for item in extensions.split(",")]
        return cls(
            posts=path_value("posts", defaults.posts),
            output=path_value("output", defaults.output),
            templates=path_value("templates", defaults.templates),
            static=path_value("static", defaults.static),
            intro=path_value("intro", defaults.intro),
            site_title=str_value("site_title", defaults.site_title),
            site_description=str_value("site_description", defaults.site_description),
            site_url=str_value("site_url", defaults.site_url).strip(),
            author=str_value("author", defaults.author),
            lang=str_value("lang", defaults.lang),
            feed_limit=parse_int(data.get("feed_limit"), defaults.feed_limit),
            posts_per_page=parse_int(data.get("posts_per_page"), defaults.posts_per_page),
            build_workers=parse_int(data.get("build_workers"), defaults.build_workers),
            timeout=parse_float(data.get("timeout"), defaults.timeout),
            render_drafts=parse_bool(data.get("render_drafts", defaults.render_drafts)),
            allow_raw_html=parse_bool(data.get("allow_raw_html", defaults.allow_raw_html)),
            extensions=tuple(
                ext if ext.startswith(".") else f".{ext}"
                for ext in (str(item).strip().lower() for item in extensions)
                if ext
            ),
        )

    def with_overrides(self, **overrides: object) -> "SiteConfig":
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})

    @property
    def workers(self) -> int:
        workers = self.build_workers
        if workers <= 0:
            workers = os.cpu_count() or 1
        return max(1, min(workers, MAX_WORKERS))

    @property
    def intro_path(self) -> Path:
        """Front-page intro document; ``index.md`` beside the posts directory unless set."""
        if self.intro is not None:
            return self.intro
        return self.posts.parent / "index.md"

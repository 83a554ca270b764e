from __future__ import annotations

import os
import shutil
import tempfile
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from .cache import MANIFEST_NAME, hash_file, hash_text, load_manifest, manifest_text
from .config import SiteConfig
from .content import extract_title, parse_metadata
from .errors import BuildFailure, BuildTimeout, IOFailure, PostFailure
from .markup import render_markdown
from .models import BuildReport, Post, PostError, SiteIndex, SourceDocument
from .pages import ArchivePage, FeedPage, IndexPage, PostPage, SiteInfo, paginate, render_page
from .posts import build_post, build_site_index
from .render import TemplateSet, copy_static, write_text

Outcome = Union[Post, PostError]


def discover_sources(posts_dir: Path, extensions: Iterable[str], exclude: Iterable[Path] = ()) -> list[Path]:
    """Source files under ``posts_dir`` with a known extension, skipping dot-files."""
    if not posts_dir.is_dir():
        raise BuildFailure(f"Posts directory not found: {posts_dir}")
    extensions = {ext.lower() for ext in extensions}
    excluded = {path.resolve() for path in exclude}
    found = []
    for path in posts_dir.rglob("*"):
        rel = path.relative_to(posts_dir)
        if any(part.startswith(".") for part in rel.parts):
            continue
        if path.suffix.lower() in extensions and path.is_file() and path.resolve() not in excluded:
            found.append(path)
    return sorted(found, key=lambda p: p.relative_to(posts_dir).as_posix())


def load_intro(path: Path, allow_raw_html: bool = False) -> str:
    """Rendered body of the front-page intro document, or "" when there is none."""
    if not path.is_file():
        return ""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise IOFailure(f"cannot read intro: {exc}", path) from exc
    try:
        _, body = parse_metadata(text)
        return render_markdown(body, allow_raw_html).html
    except PostFailure as exc:
        if exc.source is None:
            exc.source = path
        raise


def read_source(path: Path, posts_dir: Path) -> SourceDocument:
    rel = path.relative_to(posts_dir)
    try:
        text = path.read_text(encoding="utf-8")
        mtime = path.stat().st_mtime
    except (OSError, UnicodeDecodeError) as exc:
        raise IOFailure(f"cannot read source file: {exc}", rel) from exc
    return SourceDocument(path=path, rel=rel, text=text, mtime=mtime)


def process_source(path: Path, config: SiteConfig) -> Outcome:
    """Parse, render and model one file. Per-file failures come back as a PostError."""
    rel = path.relative_to(config.posts)
    try:
        source = read_source(path, config.posts)
        meta, body = parse_metadata(source.text)
        heading = None
        if not meta.has_header:
            heading, body = extract_title(body)
        rendered = render_markdown(body, config.allow_raw_html)
        return build_post(
            meta,
            rendered,
            source.rel,
            source.mtime,
            heading=heading,
            allow_raw_html=config.allow_raw_html,
        )
    except PostFailure as exc:
        if exc.source is None:
            exc.source = rel
        return PostError(rel, exc)


def run_pool(
    func: Callable,
    items: list,
    workers: int,
    deadline: Optional[float],
    abort: threading.Event,
) -> list:
    """Map ``func`` over ``items`` in order, giving up once ``deadline`` passes.

    On timeout the abort flag stops tasks that have not started yet; those
    already running finish before BuildTimeout propagates.
    """
    if workers <= 1 or len(items) <= 1:
        results = []
        for item in items:
            if abort.is_set() or (deadline is not None and time.monotonic() >= deadline):
                abort.set()
                raise BuildTimeout("build timed out")
            results.append(func(item))
        return results

    def guarded(item):
        if abort.is_set():
            return None
        return func(item)

    with ThreadPoolExecutor(max_workers=min(workers, len(items))) as executor:
        futures = [executor.submit(guarded, item) for item in items]
        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        _, pending = wait(futures, timeout=timeout)
        if pending:
            abort.set()
            for future in pending:
                future.cancel()
            raise BuildTimeout("build timed out")
        return [future.result() for future in futures]


def plan_pages(
    index: SiteIndex,
    config: SiteConfig,
    templates: TemplateSet,
    intro: str = "",
) -> list[tuple[str, object]]:
    site = SiteInfo(
        title=config.site_title,
        description=config.site_description,
        url=config.site_url,
        lang=config.lang,
        author=config.author,
    )
    pages: list[tuple[str, object]] = []
    chunks = paginate(index.posts, config.posts_per_page)
    for number, chunk in enumerate(chunks, start=1):
        pages.append(("index", IndexPage(site, chunk, page=number, total_pages=len(chunks), intro=intro)))
    if "archive" in templates:
        pages.append(("archive", ArchivePage(site, index.posts)))
    for post in index.posts:
        pages.append(("post", PostPage(site, post)))
    if config.render_drafts:
        for post in index.drafts:
            pages.append(("post", PostPage(site, post)))
    pages.append(("feed", FeedPage(site, index.recent(config.feed_limit))))
    return pages


def stage_output(pages: list[tuple[str, str]], static_dir: Optional[Path], staging: Path) -> dict[str, str]:
    """Write every output file under ``staging``; returns managed path -> sha256."""
    files: dict[str, str] = {}
    if static_dir is not None and static_dir.is_dir():
        for rel in copy_static(static_dir, staging):
            files[rel.as_posix()] = hash_file(staging / rel)
    for rel, text in pages:
        write_text(staging / rel, text)
        files[rel] = hash_text(text)
    write_text(staging / MANIFEST_NAME, manifest_text(files))
    return files


def check_targets(output_dir: Path, rels: Iterable[str]) -> None:
    """Raise IOFailure if any staged path cannot be moved into ``output_dir``."""
    if output_dir.exists() and not output_dir.is_dir():
        raise IOFailure("output path is not a directory", output_dir)
    for rel in rels:
        dest = output_dir / rel
        if dest.is_dir():
            raise IOFailure(f"a directory is in the way of {rel}", output_dir)
        parent = dest.parent
        while parent != output_dir:
            if parent.exists() and not parent.is_dir():
                where = parent.relative_to(output_dir).as_posix()
                raise IOFailure(f"{where} is not a directory, cannot write {rel}", output_dir)
            parent = parent.parent


def publish(staging: Path, output_dir: Path, files: dict[str, str]) -> list[str]:
    """Move staged files into ``output_dir``; returns stale managed paths removed.

    Every target is checked before the first move, so a blocked path leaves
    the destination as it was. Only paths listed in the previous manifest
    are ever deleted.
    """
    previous = load_manifest(output_dir)
    check_targets(output_dir, list(files) + [MANIFEST_NAME])
    output_dir.mkdir(parents=True, exist_ok=True)
    for rel in sorted(files) + [MANIFEST_NAME]:
        dest = output_dir / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        os.replace(staging / rel, dest)

    root = output_dir.resolve()
    removed = []
    for rel in sorted(set(previous) - set(files)):
        path = output_dir / rel
        if not path.resolve().is_relative_to(root) or not path.is_file():
            continue
        path.unlink()
        removed.append(rel)
        parent = path.parent
        while parent != output_dir and parent.resolve().is_relative_to(root) and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent
    return removed


def build_site(config: SiteConfig) -> BuildReport:
    """Run the full pipeline from ``config.posts`` to ``config.output``.

    Fatal errors (no posts, slug collision, missing template, timeout, staging
    failure) are raised before anything in the destination changes.
    """
    deadline = time.monotonic() + config.timeout if config.timeout > 0 else None
    abort = threading.Event()

    templates = TemplateSet.from_dir(config.templates)
    templates.require()

    intro = load_intro(config.intro_path, config.allow_raw_html)
    sources = discover_sources(config.posts, config.extensions, exclude=[config.intro_path])
    outcomes = run_pool(lambda path: process_source(path, config), sources, config.workers, deadline, abort)
    posts = [outcome for outcome in outcomes if isinstance(outcome, Post)]
    errors = [outcome for outcome in outcomes if isinstance(outcome, PostError)]
    if not posts:
        raise BuildFailure(f"No posts could be built from {config.posts}", tuple(errors))

    index = build_site_index(posts, include_drafts=config.render_drafts)

    def render(entry: tuple[str, object]) -> tuple[str, str]:
        kind, payload = entry
        return payload.output_path, render_page(templates, kind, payload)

    pages = run_pool(render, plan_pages(index, config, templates, intro), config.workers, deadline, abort)
    if deadline is not None and time.monotonic() >= deadline:
        raise BuildTimeout("build timed out before publishing")

    output_dir = config.output
    try:
        output_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=".staticpost-", dir=output_dir.parent))
    except OSError as exc:
        raise IOFailure(f"cannot create staging directory: {exc}", output_dir) from exc
    try:
        try:
            files = stage_output(pages, config.static, staging)
        except OSError as exc:
            raise IOFailure(f"cannot stage output: {exc}", output_dir) from exc
        try:
            removed = publish(staging, output_dir, files)
        except OSError as exc:
            raise IOFailure(f"cannot publish output: {exc}", output_dir) from exc
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    return BuildReport(index=index, errors=errors, written=sorted(files), removed=removed)

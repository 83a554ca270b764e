from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .build import build_site
from .config import SiteConfig, load_config
from .errors import BuildFailure, DuplicateSlug, MissingTemplate, SiteGenError


def build_parser(config: SiteConfig, config_path: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="staticpost", description="Static Markdown blog generator.")
    parser.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--posts", type=Path, default=config.posts, help="Directory containing Markdown posts.")
    parser.add_argument("--output", type=Path, default=config.output, help="Output directory for the site.")
    parser.add_argument(
        "--templates", type=Path, default=config.templates, help="Directory containing the page templates."
    )
    parser.add_argument(
        "--static", type=Path, default=config.static, help="Directory of assets copied verbatim into the output."
    )
    parser.add_argument(
        "--intro",
        type=Path,
        default=config.intro,
        help="Markdown shown at the top of the front page (default: index.md beside the posts directory).",
    )
    parser.add_argument("--site-title", default=config.site_title, help="Site title.")
    parser.add_argument("--site-description", default=config.site_description, help="Site description.")
    parser.add_argument(
        "--site-url", default=config.site_url, help="Public site URL used for feed links (empty = root-relative)."
    )
    parser.add_argument("--author", default=config.author, help="Author shown when a post names none.")
    parser.add_argument(
        "--feed-limit", type=int, default=config.feed_limit, help="Maximum number of posts in the feed."
    )
    parser.add_argument(
        "--posts-per-page",
        type=int,
        default=config.posts_per_page,
        help="Posts per index page (0 = a single index page).",
    )
    parser.add_argument(
        "--build-workers",
        type=int,
        default=config.build_workers,
        help="Number of worker threads for parsing/rendering (0 = auto).",
    )
    parser.add_argument(
        "--timeout", type=float, default=config.timeout, help="Abort the build after this many seconds (0 = never)."
    )
    parser.add_argument(
        "--render-drafts",
        action=argparse.BooleanOptionalAction,
        default=config.render_drafts,
        help="Write pages for drafts (never listed or syndicated).",
    )
    parser.add_argument(
        "--allow-raw-html",
        action=argparse.BooleanOptionalAction,
        default=config.allow_raw_html,
        help="Pass raw HTML in posts through instead of escaping it.",
    )
    return parser


def resolve_config(argv: Optional[Sequence[str]] = None) -> SiteConfig:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default="site.toml")
    pre_args, _ = pre_parser.parse_known_args(argv)
    config_path = Path(pre_args.config)
    file_config = SiteConfig.from_mapping(load_config(config_path), base_dir=config_path.resolve().parent)

    args = build_parser(file_config, pre_args.config).parse_args(argv)
    return file_config.with_overrides(
        posts=args.posts,
        output=args.output,
        templates=args.templates,
        static=args.static,
        intro=args.intro,
        site_title=args.site_title,
        site_description=args.site_description,
        site_url=args.site_url.strip(),
        author=args.author,
        feed_limit=args.feed_limit,
        posts_per_page=args.posts_per_page,
        build_workers=args.build_workers,
        timeout=args.timeout,
        render_drafts=args.render_drafts,
        allow_raw_html=args.allow_raw_html,
    )


def run(config: SiteConfig) -> int:
    start = time.perf_counter()
    try:
        report = build_site(config)
    except BuildFailure as exc:
        for error in exc.errors:
            print(f"error: {error.describe()}", file=sys.stderr)
        print(f"Build failed: {exc}", file=sys.stderr)
        return 1
    except DuplicateSlug as exc:
        print(f"Build failed: duplicate slug: {exc}", file=sys.stderr)
        return 1
    except MissingTemplate as exc:
        print(f"Build failed: missing template: {exc}", file=sys.stderr)
        return 1
    except SiteGenError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        return 1

    for error in report.errors:
        print(f"warning: skipped {error.describe()}", file=sys.stderr)
    if report.partial:
        print(f"{len(report.errors)} file(s) skipped.", file=sys.stderr)
    elapsed = time.perf_counter() - start
    print(
        f"Built {len(report.index.posts)} posts ({len(report.index.drafts)} drafts) "
        f"into {config.output} in {elapsed:.2f}s."
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    sys.exit(run(resolve_config(argv)))

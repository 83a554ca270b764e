from __future__ import annotations

from pathlib import Path
from typing import Optional


class SiteGenError(Exception):
    """Base class for every error raised by the build pipeline."""


class PostFailure(SiteGenError):
    """An error confined to a single source file."""

    kind = "PostFailure"

    def __init__(self, message: str, source: Optional[Path] = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source is None:
            return self.message
        return f"{self.source.as_posix()}: {self.message}"


class MalformedMetadata(PostFailure):
    kind = "MalformedMetadata"


class EmptySlug(PostFailure):
    kind = "EmptySlug"


class RenderFailure(PostFailure):
    kind = "RenderFailure"


class IOFailure(PostFailure):
    """Read or write failure. Fatal when raised for the destination."""

    kind = "IOFailure"


class DuplicateSlug(SiteGenError):
    def __init__(self, slug: str, first: Path, second: Path) -> None:
        super().__init__(
            f"Slug {slug!r} is produced by both {first.as_posix()} and {second.as_posix()}"
        )
        self.slug = slug
        self.paths = (first, second)


class MissingTemplate(SiteGenError):
    def __init__(self, kind: str, location: Optional[Path] = None) -> None:
        where = f" in {location}" if location is not None else ""
        super().__init__(f"Template set does not define {kind!r}{where}")
        self.kind = kind
        self.location = location


class BuildFailure(SiteGenError):
    def __init__(self, message: str, errors: tuple = ()) -> None:
        super().__init__(message)
        self.errors = tuple(errors)


class BuildTimeout(BuildFailure):
    pass

"""Content discovery and page construction for Weaving.

This module walks the content directory and turns each Markdown file into an
immutable ``Page``.

Key classes:
- Page: Dataclass representing one piece of content.
- ContentScanner: Lazily yields content files under a root directory.
- PageBuilder: Reads a file, parses its frontmatter and builds a Page.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any

from .errors import ScanError
from .extractors import FrontmatterParser, FrontmatterValue, default_frontmatter_parser
from .renderers import Heading
from .utils import matches_any, output_path_for_route, route_from_path

logger = logging.getLogger(__name__)

CONTENT_EXTENSION = ".md"
MAX_DEPTH = 32


@dataclass(frozen=True)
class Page:
    """A single piece of content.

    Attributes:
        title: Human-readable title (required in frontmatter).
        tags: Tags in declaration order (required, may be empty).
        keywords: Optional SEO keywords.
        description: Optional short description.
        excerpt: Optional excerpt.
        template: Explicit template name from frontmatter, if any.
        emit: Whether the page is written to the build directory.
        published: ISO-8601 publication timestamp.
        last_updated: ISO-8601 modification timestamp.
        user: Free-form frontmatter fields.
        body_source: Raw Markdown body.
        source_path: Path relative to the content root.
        route: Pretty URL of the page.
        output_path: Output file relative to the build directory.
    """

    title: str
    tags: tuple[str, ...]
    body_source: str
    source_path: PurePosixPath
    route: str
    output_path: PurePosixPath
    keywords: tuple[str, ...] = ()
    description: str | None = None
    excerpt: str | None = None
    template: str | None = None
    emit: bool = True
    published: str | None = None
    last_updated: str | None = None
    user: dict[str, FrontmatterValue] = field(default_factory=dict)

    @property
    def identifier(self) -> str:
        """Stable identifier derived from the source path."""
        return self.source_path.as_posix()

    def summary(self) -> dict[str, Any]:
        """Return the fields templates see when listing other pages."""
        return {
            "title": self.title,
            "route": self.route,
            "description": self.description,
            "excerpt": self.excerpt,
            "tags": list(self.tags),
            "published": self.published,
            "last_updated": self.last_updated,
            "user": self.user,
        }

    def to_context(self, body: str, toc: Iterable[Heading] = ()) -> dict[str, Any]:
        """Return the page as a template mapping.

        Args:
            body: Rendered HTML body.
            toc: Headings extracted while rendering the body.
        """
        return {
            **self.summary(),
            "keywords": list(self.keywords),
            "template": self.template,
            "emit": self.emit,
            "source_path": self.identifier,
            "body": body,
            "toc": [
                {"depth": h.depth, "text": h.text, "slug": h.slug} for h in toc
            ],
        }


class ContentScanner:
    """Finds content files under a root directory.

    Each call to ``scan`` walks the tree afresh. Symlinked directories are
    not followed and the walk depth is bounded.

    Attributes:
        root: Content root directory.
        excludes: Glob patterns of paths to skip (used in serve mode).
        exclude_base: Directory the patterns are relative to, the root by default.
    """

    def __init__(
        self,
        root: Path,
        excludes: Iterable[str] = (),
        extension: str = CONTENT_EXTENSION,
        exclude_base: Path | None = None,
    ):
        self.root = root
        self.excludes = tuple(excludes)
        self.extension = extension
        self.exclude_base = exclude_base or root

    def scan(self) -> Iterator[Path]:
        """Yield content files in a stable, sorted walk order.

        Raises:
            ScanError: If the root does not exist or cannot be read.
        """
        if not self.root.is_dir():
            raise ScanError("content directory does not exist", self.root)
        try:
            os.listdir(self.root)
        except OSError as exc:
            raise ScanError(f"content directory is unreadable: {exc}", self.root) from exc
        return self._walk()

    def _walk(self) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(self.root, followlinks=False):
            current = Path(dirpath)
            rel_dir = current.relative_to(self.root)
            if len(rel_dir.parts) >= MAX_DEPTH:
                logger.warning("Not descending below %s (depth limit)", current)
                dirnames.clear()
            else:
                dirnames[:] = sorted(
                    d for d in dirnames if not self._excluded(current / d)
                )
            for name in sorted(filenames):
                if not name.endswith(self.extension):
                    continue
                if self._excluded(current / name):
                    continue
                yield current / name

    def _excluded(self, path: Path) -> bool:
        if not self.excludes:
            return False
        if path.is_relative_to(self.exclude_base):
            path = path.relative_to(self.exclude_base)
        return matches_any(path, self.excludes)


class PageBuilder:
    """Builds Page objects from content files.

    Attributes:
        content_root: Root content directory, used for routes and identifiers.
        parser: Frontmatter parser.
    """

    def __init__(self, content_root: Path, parser: FrontmatterParser | None = None):
        self.content_root = content_root
        self.parser = parser or default_frontmatter_parser

    def build(self, path: Path) -> Page:
        """Read and parse one content file.

        Args:
            path: Absolute path to a file under the content root.

        Returns:
            Page object.

        Raises:
            MalformedFrontmatter: If the frontmatter cannot be parsed.
            MissingRequiredField: If ``title`` or ``tags`` is absent.
            OSError: If the file cannot be read.
        """
        rel = PurePosixPath(path.relative_to(self.content_root).as_posix())
        raw = path.read_text(encoding="utf-8")
        metadata, body = self.parser.parse(raw, rel)

        published = metadata.published
        last_updated = metadata.last_updated
        if published is None:
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            published = modified.isoformat()
            last_updated = last_updated or published
        elif last_updated is None:
            last_updated = published

        route = route_from_path(self.content_root, path)
        return Page(
            title=metadata.title,
            tags=metadata.tags,
            keywords=metadata.keywords,
            description=metadata.description,
            excerpt=metadata.excerpt,
            template=metadata.template,
            emit=metadata.emit,
            published=published,
            last_updated=last_updated,
            user=metadata.user,
            body_source=body,
            source_path=rel,
            route=route,
            output_path=output_path_for_route(route),
        )

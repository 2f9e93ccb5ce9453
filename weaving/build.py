"""Site building for Weaving.

This module coordinates a full build: it scans the content directory, parses
every page, indexes tags, renders each page through its template and writes
the results, then copies static directories and writes feeds.

Per-page failures are collected into the ``BuildReport`` and never stop the
other pages from being built. Failures that make the whole output
untrustworthy (unreadable content root, colliding outputs, unwritable build
directory) raise.

Key functions:
- build: Build the whole site once.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from .collections import PageRegistry
from .config import SiteConfig
from .content import ContentScanner, Page, PageBuilder
from .errors import ErrorKind, OutputWriteError, WeavingError
from .executable_utils import run_npm_build
from .feeds import create_default_feed_registry
from .templates import RenderEngine
from .utils import copy_tree, write_atomic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageError:
    """A failure confined to one source file.

    Attributes:
        path: Source path, relative to the content root where possible.
        kind: Category of the failure.
        message: Human-readable error message.
    """

    path: Path | None
    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: WeavingError) -> PageError:
        return cls(path=exc.path, kind=exc.kind, message=exc.message)

    def __str__(self) -> str:
        return f"{self.path}: [{self.kind.value}] {self.message}"


@dataclass
class BuildReport:
    """Result of a build.

    Attributes:
        pages_built: Number of pages rendered and written.
        errors: Page-local failures, in scan order.
        duration: Wall-clock time of the build in seconds.
        written: Every file written to the build directory.
    """

    pages_built: int = 0
    errors: list[PageError] = field(default_factory=list)
    duration: float = 0.0
    written: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def build(config: SiteConfig, interactive: bool = False) -> BuildReport:
    """Build the entire site.

    Args:
        config: Site configuration.
        interactive: True when building for the dev server. Enables the
            watch-exclude patterns while scanning and the npm pre-build.

    Returns:
        BuildReport with per-page errors and the files written.

    Raises:
        ScanError: If the content directory is missing or unreadable.
        OutputCollision: If two pages map to the same output file.
        OutputWriteError: If a file cannot be written to the build directory.
    """
    started = time.perf_counter()
    report = BuildReport()

    if interactive and config.serve_config.npm_build:
        run_npm_build(config.base_dir)

    excludes = config.serve_config.watch_excludes if interactive else ()
    scanner = ContentScanner(
        config.content_dir, excludes=excludes, exclude_base=config.base_dir
    )
    builder = PageBuilder(config.content_dir)
    registry = PageRegistry()

    for path in scanner.scan():
        try:
            page = builder.build(path)
        except WeavingError as exc:
            report.errors.append(PageError.from_exception(exc))
            continue
        except (OSError, UnicodeDecodeError) as exc:
            report.errors.append(
                PageError(
                    path=path.relative_to(config.content_dir),
                    kind=ErrorKind.IO_FAILURE,
                    message=f"cannot read file: {exc}",
                )
            )
            continue
        registry.add(page)
    registry.freeze()
    logger.debug("Loaded %d pages", len(registry))

    engine = RenderEngine(config, registry)
    emitted: list[Page] = []
    for page in registry:
        if not page.emit:
            continue
        try:
            rendered = engine.render_page(page)
        except WeavingError as exc:
            report.errors.append(PageError.from_exception(exc))
            continue
        report.written.append(_write_page(config.build_dir, page, rendered))
        emitted.append(page)
    report.pages_built = len(emitted)

    report.written.extend(_copy_static(config))
    try:
        report.written.extend(
            create_default_feed_registry().generate_all(
                config.build_dir, emitted, config.base_url
            )
        )
    except OSError as exc:
        raise OutputWriteError(f"cannot write feeds: {exc}", config.build_dir) from exc

    report.duration = time.perf_counter() - started
    for error in report.errors:
        logger.debug("Page error: %s", error)
    logger.info(
        "Built %d pages in %.2fs (%d errors)",
        report.pages_built,
        report.duration,
        len(report.errors),
    )
    return report


def _write_page(build_dir: Path, page: Page, rendered: str) -> Path:
    """Write a rendered page to the build directory.

    Args:
        build_dir: Base output directory.
        page: Page being written.
        rendered: Rendered HTML content.

    Returns:
        Path of the written file.
    """
    target = build_dir / page.output_path
    try:
        write_atomic(target, rendered)
    except OSError as exc:
        raise OutputWriteError(f"cannot write {target}: {exc}", page.source_path) from exc
    return target


def _copy_static(config: SiteConfig) -> list[Path]:
    """Copy public, partials and ``.well-known`` into the build directory."""
    sources = [
        config.public_dir,
        config.partials_dir,
        config.base_dir / ".well-known",
    ]
    copied: list[Path] = []
    for src in sources:
        if not src.is_dir():
            continue
        try:
            copied.extend(copy_tree(src, config.build_dir / src.name))
        except OSError as exc:
            raise OutputWriteError(f"cannot copy {src}: {exc}", src) from exc
    return copied

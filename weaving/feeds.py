"""Feed generation for Weaving.

Generates ``sitemap.xml`` and ``atom.xml`` from the pages of a build. Feeds
need an absolute site URL and are skipped when ``base_url`` is empty. Output
depends only on page data, never on the wall clock, so rebuilding an
unchanged site produces identical feeds.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    AtomGenerator: Generates an Atom 1.0 feed.
    FeedRegistry: Runs all registered generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from markupsafe import escape

from .content import Page
from .html_utils import join_root_url
from .utils import write_atomic

_EPOCH = "1970-01-01T00:00:00+00:00"


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename, e.g. ``sitemap.xml``."""
        ...

    @abstractmethod
    def generate(self, pages: list[Page], base_url: str) -> str | None:
        """Generate feed content.

        Args:
            pages: Emitted pages of the build.
            base_url: Site base URL.

        Returns:
            Feed content, or None if the feed cannot be generated.
        """
        ...

    def write(self, output_dir: Path, pages: list[Page], base_url: str) -> Path | None:
        """Generate and write the feed into ``output_dir``.

        Returns:
            Path written, or None if skipped.
        """
        content = self.generate(pages, base_url)
        if content is None:
            return None
        output_path = output_dir / self.filename
        write_atomic(output_path, content)
        return output_path


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, pages: list[Page], base_url: str) -> str | None:
        if not base_url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in sorted(pages, key=lambda p: p.route):
            loc = escape(join_root_url(base_url, page.route))
            lastmod = (page.last_updated or page.published or _EPOCH)[:10]
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class AtomGenerator(FeedGenerator):
    """Generates an Atom 1.0 feed, newest pages first.

    The feed's ``updated`` element is the newest page timestamp.
    """

    def __init__(self, title: str = "Weaving Feed"):
        self.title = title

    @property
    def filename(self) -> str:
        return "atom.xml"

    def generate(self, pages: list[Page], base_url: str) -> str | None:
        if not base_url:
            return None
        ordered = sorted(
            pages, key=lambda p: (p.published or _EPOCH, p.route), reverse=True
        )
        site_url = join_root_url(base_url, "/")
        updated = max((p.last_updated or p.published or _EPOCH for p in pages), default=_EPOCH)
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"  <title>{escape(self.title)}</title>",
            f'  <link href="{escape(site_url)}"/>',
            f'  <link rel="self" href="{escape(join_root_url(base_url, "/atom.xml"))}"/>',
            f"  <id>{escape(site_url)}</id>",
            f"  <updated>{escape(updated)}</updated>",
        ]
        for page in ordered:
            link = escape(join_root_url(base_url, page.route))
            summary = page.description or page.excerpt or page.title
            lines.extend(
                [
                    "  <entry>",
                    f"    <title>{escape(page.title)}</title>",
                    f'    <link href="{link}"/>',
                    f"    <id>{link}</id>",
                    f"    <published>{escape(page.published or _EPOCH)}</published>",
                    f"    <updated>{escape(page.last_updated or page.published or _EPOCH)}</updated>",
                    f"    <summary>{escape(summary)}</summary>",
                ]
            )
            lines.extend(f'    <category term="{escape(tag)}"/>' for tag in page.tags)
            lines.append("  </entry>")
        lines.append("</feed>")
        return "\n".join(lines) + "\n"


class FeedRegistry:
    """Registry of feed generators run at the end of a build."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(self, output_dir: Path, pages: Iterable[Page], base_url: str) -> list[Path]:
        """Generate all registered feeds.

        Returns:
            Paths of the feeds that were written.
        """
        pages_list = list(pages)
        written = []
        for generator in self._generators:
            path = generator.write(output_dir, pages_list, base_url)
            if path is not None:
                written.append(path)
        return written


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and Atom generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(AtomGenerator())
    return registry

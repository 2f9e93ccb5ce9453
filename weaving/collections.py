from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from .content import Page
from .errors import OutputCollision


class TagIndex(Mapping[str, frozenset[str]]):
    """Mapping of tag name to the identifiers of pages declaring it.

    Built wholesale from a finished set of pages; never patched in place.
    """

    def __init__(self, pages: Iterable[Page]):
        index: dict[str, set[str]] = {}
        for page in pages:
            for tag in page.tags:
                index.setdefault(tag, set()).add(page.identifier)
        self._mapping = {tag: frozenset(ids) for tag, ids in index.items()}

    def __getitem__(self, key: str) -> frozenset[str]:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def lookup(self, tag: str) -> frozenset[str]:
        """Return identifiers of pages tagged ``tag``; empty for unknown tags."""
        return self._mapping.get(tag, frozenset())

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagIndex({len(self._mapping)} tags)"


class PageRegistry:
    """All pages of one build pass, keyed by identifier.

    Pages are added while scanning; ``freeze`` builds the tag index once all
    pages are in. Iteration follows insertion (content-scan) order.
    """

    def __init__(self, pages: Iterable[Page] = ()):
        self._pages: dict[str, Page] = {}
        self._outputs: dict[str, str] = {}
        self._tag_index: TagIndex | None = None
        for page in pages:
            self.add(page)

    def add(self, page: Page) -> None:
        """Register a page.

        Raises:
            RuntimeError: If the registry has already been frozen.
            OutputCollision: If another page already writes to the same output.
        """
        if self._tag_index is not None:
            raise RuntimeError("cannot add pages to a frozen registry")
        output = page.output_path.as_posix()
        claimed_by = self._outputs.get(output)
        if claimed_by is not None:
            raise OutputCollision(
                f"output path '{output}' is also produced by '{claimed_by}'",
                page.source_path,
            )
        self._outputs[output] = page.identifier
        self._pages[page.identifier] = page

    def freeze(self) -> TagIndex:
        """Build the tag index; no pages may be added afterwards."""
        if self._tag_index is None:
            self._tag_index = TagIndex(self._pages.values())
        return self._tag_index

    @property
    def tag_index(self) -> TagIndex:
        return self.freeze()

    def get(self, identifier: str) -> Page | None:
        return self._pages.get(identifier)

    def by_tag(self, tag: str) -> frozenset[str]:
        return self.tag_index.lookup(tag)

    def pages_with_tag(self, tag: str) -> list[Page]:
        """Return pages tagged ``tag`` sorted by route."""
        ids = self.by_tag(tag)
        return sorted((self._pages[i] for i in ids), key=lambda p: p.route)

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages.values())

    def __len__(self) -> int:
        return len(self._pages)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._pages

    def tags_context(self) -> dict[str, list[dict[str, Any]]]:
        """Return tag -> page summaries, both sorted, for templates."""
        return {
            tag: [page.summary() for page in self.pages_with_tag(tag)]
            for tag in sorted(self.tag_index)
        }

    def content_map(self, exclude_route: str | None = None) -> dict[str, list[dict[str, Any]]]:
        """Group pages by section for templates.

        The section of ``/posts/hello/`` is ``posts``; top-level pages such as
        ``/about/`` form a section of their own keyed by their route's first
        segment. A section's own index page and ``exclude_route`` are left
        out. Sections list pages newest first.

        Args:
            exclude_route: Route of the page being rendered.

        Returns:
            Mapping of section name to page summaries.
        """
        with_children = {
            segments[0]
            for segments in (self._segments(p.route) for p in self._pages.values())
            if len(segments) > 1
        }
        sections: dict[str, list[Page]] = {}
        for page in self._pages.values():
            if page.route == exclude_route:
                continue
            segments = self._segments(page.route)
            if not segments:
                sections.setdefault(page.route, []).append(page)
                continue
            section = segments[0]
            bucket = sections.setdefault(section, [])
            if len(segments) == 1 and section in with_children:
                # Listing page of the section itself.
                continue
            bucket.append(page)
        return {
            name: [
                p.summary()
                for p in sorted(pages, key=lambda p: (p.published or "", p.route), reverse=True)
            ]
            for name, pages in sorted(sections.items())
        }

    @staticmethod
    def _segments(route: str) -> list[str]:
        return [s for s in route.split("/") if s]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageRegistry({len(self._pages)} pages)"

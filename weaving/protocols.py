"""Protocol definitions for Weaving.

These protocols are the seams between the build pipeline and its
collaborators, so the templating engine and the Markdown converter can be
swapped (or faked in tests) without touching the orchestrator.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .renderers import Heading


@runtime_checkable
class TemplateBackend(Protocol):
    """Protocol for templating engines.

    Implementations render a named template from the template search path
    with strict undefined handling and HTML autoescaping.
    """

    @property
    @abstractmethod
    def extension(self) -> str:
        """Return the template file extension, including the leading dot."""
        ...

    @abstractmethod
    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render a template.

        Args:
            name: Template name relative to the search path, with extension.
            context: Variables available to the template.

        Returns:
            Rendered string.
        """
        ...


@runtime_checkable
class MarkdownConverter(Protocol):
    """Protocol for Markdown to HTML conversion."""

    @abstractmethod
    def render(self, source: str) -> tuple[str, list[Heading]]:
        """Convert Markdown to an HTML fragment and its headings."""
        ...

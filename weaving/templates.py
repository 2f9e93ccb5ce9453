"""Template rendering for Weaving.

This module resolves which template a page renders with, assembles the
template context, and renders it through a strict, autoescaping templating
backend: Liquid (python-liquid) by default, or Jinja2.

Key classes:
- TemplateResolver: Maps a page to its template file.
- LiquidBackend / JinjaBackend: TemplateBackend implementations.
- RenderEngine: Produces the final HTML of one page.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import jinja2
import liquid

from .collections import PageRegistry
from .config import SiteConfig, TemplateLang
from .content import Page
from .errors import MarkdownConversionFailure, TemplateNotFoundError, TemplateRenderError
from .filters import FILTERS
from .protocols import MarkdownConverter, TemplateBackend
from .renderers import default_markdown_renderer, highlight_css

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "default"


class TemplateResolver:
    """Resolves the template file for a page.

    Resolution order:
    1. ``template`` from the page's frontmatter
    2. ``default``

    Attributes:
        template_dir: Directory containing templates.
        extension: Template file extension, e.g. ``.liquid``.
    """

    def __init__(self, template_dir: Path, extension: str):
        self.template_dir = template_dir
        self.extension = extension

    def resolve(self, page: Page) -> str:
        """Return the template name for ``page``, relative to the template dir.

        Raises:
            TemplateNotFoundError: If the resolved template file does not exist.
        """
        name = page.template or DEFAULT_TEMPLATE
        if not name.endswith(self.extension):
            name = f"{name}{self.extension}"
        candidate = self.template_dir / name
        if not candidate.is_file():
            raise TemplateNotFoundError(
                f"template '{name}' not found in {self.template_dir}", page.source_path
            )
        return Path(name).as_posix()


class LiquidBackend:
    """Liquid templating via python-liquid, in strict mode with autoescaping."""

    def __init__(self, search_path: Iterable[Path]):
        self.env = liquid.Environment(
            loader=liquid.FileSystemLoader([str(p) for p in search_path]),
            tolerance=liquid.Mode.STRICT,
            undefined=liquid.StrictUndefined,
            autoescape=True,
        )
        for name, func in FILTERS.items():
            self.env.add_filter(name, func)

    @property
    def extension(self) -> str:
        return TemplateLang.LIQUID.extension

    def render(self, name: str, context: dict[str, Any]) -> str:
        return self.env.get_template(name).render(**context)


class JinjaBackend:
    """Jinja2 templating with ``StrictUndefined`` and autoescaping."""

    def __init__(self, search_path: Iterable[Path]):
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader([str(p) for p in search_path]),
            undefined=jinja2.StrictUndefined,
            autoescape=True,
            keep_trailing_newline=True,
        )
        self.env.filters.update(FILTERS)

    @property
    def extension(self) -> str:
        return TemplateLang.JINJA.extension

    def render(self, name: str, context: dict[str, Any]) -> str:
        return self.env.get_template(name).render(**context)


def create_backend(config: SiteConfig) -> TemplateBackend:
    """Create the templating backend selected by ``templating_language``.

    Templates are looked up in the template directory first, then in the
    partials directory.
    """
    search_path = [config.template_dir, config.partials_dir]
    if config.templating_language is TemplateLang.JINJA:
        return JinjaBackend(search_path)
    return LiquidBackend(search_path)


class RenderEngine:
    """Produces final HTML for pages of one build pass.

    Site-wide parts of the context (site, tags, extra_css) are computed once
    per engine; the registry must be frozen before the engine is created.

    Attributes:
        config: Site configuration.
        registry: Frozen page registry of the current build.
        backend: Templating backend.
        resolver: Template resolver.
        markdown: Markdown converter.
    """

    def __init__(
        self,
        config: SiteConfig,
        registry: PageRegistry,
        backend: TemplateBackend | None = None,
        markdown: MarkdownConverter | None = None,
    ):
        self.config = config
        self.registry = registry
        self.backend = backend or create_backend(config)
        self.resolver = TemplateResolver(config.template_dir, self.backend.extension)
        self.markdown = markdown or default_markdown_renderer
        self._site = config.site_globals()
        self._tags = registry.tags_context()
        self._extra_css = highlight_css()

    def build_context(self, page: Page, body: str, toc: Iterable[Any] = ()) -> dict[str, Any]:
        """Assemble the template context for one page.

        Args:
            page: Page being rendered.
            body: Rendered HTML body.
            toc: Headings of the body.

        Returns:
            Mapping with ``page``, ``site``, ``tags``, ``content`` and
            ``extra_css``.
        """
        return {
            "page": page.to_context(body, toc),
            "site": self._site,
            "tags": self._tags,
            "content": self.registry.content_map(exclude_route=page.route),
            "extra_css": self._extra_css,
        }

    def render_page(self, page: Page) -> str:
        """Render a page with its template.

        Args:
            page: Page to render.

        Returns:
            Rendered HTML string.

        Raises:
            TemplateNotFoundError: If no template resolves for the page.
            MarkdownConversionFailure: If the body cannot be converted.
            TemplateRenderError: On template syntax, strict-mode or filter errors.
        """
        template_name = self.resolver.resolve(page)
        try:
            body, toc = self.markdown.render(page.body_source)
        except MarkdownConversionFailure as exc:
            exc.path = page.source_path
            raise
        context = self.build_context(page, body, toc)
        try:
            return self.backend.render(template_name, context)
        except (jinja2.TemplateSyntaxError, liquid.exceptions.LiquidSyntaxError) as exc:
            raise TemplateRenderError(
                f"Template syntax error in {template_name}: {exc}", page.source_path
            ) from exc
        except Exception as exc:
            raise TemplateRenderError(
                f"{template_name}: {_format_error_message(exc)}", page.source_path
            ) from exc


def _format_error_message(exc: Exception) -> str:
    """Format a template exception into a user-friendly message."""
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type in ("TemplateNotFound", "TemplateNotFoundError"):
        return f"Included template not found: {error_msg}"

    return f"{error_type}: {error_msg}"

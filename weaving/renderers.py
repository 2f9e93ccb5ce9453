"""Markdown rendering for Weaving.

Converts a page body to an HTML fragment with mistune. Fenced code blocks
are highlighted with Pygments when the declared language is known and fall
back to a plain ``<pre><code>`` block otherwise. Headings are collected while
rendering so templates can build a table of contents.

Key classes:
- Heading: One entry of a page's table of contents.
- MarkdownRenderer: Renders Markdown to ``(html, headings)``.
"""

from __future__ import annotations

from dataclasses import dataclass

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import MarkdownConversionFailure
from .html_utils import strip_tags
from .utils import slugify

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


@dataclass(frozen=True)
class Heading:
    """A heading extracted from markdown content for TOC generation.

    Attributes:
        depth: Heading level (1-6).
        text: Plain text of the heading.
        slug: GitHub-style anchor slug.
    """

    depth: int
    text: str
    slug: str


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer with Pygments highlighting and heading collection."""

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list[Heading] = []

    def heading(self, text: str, level: int, **attrs) -> str:
        plain = strip_tags(text)
        slug = slugify(plain)
        if slug:
            self.headings.append(Heading(depth=level, text=plain, slug=slug))
        return super().heading(text, level, **attrs)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced code block.

        Args:
            code: The code content.
            info: Info string; its first word is the language name.

        Returns:
            Highlighted HTML, or an escaped ``<pre><code>`` block when the
            language is missing or unknown.
        """
        lang = info.split()[0] if info and info.strip() else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = mistune.escape(code)
        lang_class = f' class="language-{mistune.escape(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    A fresh mistune instance is created per call since the renderer keeps
    per-document heading state.
    """

    def render(self, source: str) -> tuple[str, list[Heading]]:
        """Render Markdown source to HTML.

        Args:
            source: Markdown text.

        Returns:
            Tuple of (HTML fragment, headings in document order).

        Raises:
            MarkdownConversionFailure: If mistune fails on the input.
        """
        renderer = _HighlightRenderer()
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        try:
            html = markdown(source)
        except Exception as exc:
            raise MarkdownConversionFailure(
                f"{type(exc).__name__}: {exc}"
            ) from exc
        return html, renderer.headings


def highlight_css(selector: str = ".highlight") -> str:
    """Return the Pygments stylesheet for highlighted code blocks."""
    return HtmlFormatter().get_style_defs(selector)


default_markdown_renderer = MarkdownRenderer()

"""Frontmatter extraction for Weaving.

A content file starts with a YAML block bounded by ``---`` lines, followed by
the Markdown body:

    ---
    title: Hello
    tags: [intro]
    author: Someone
    ---
    # Hello

Known keys become ``Metadata`` fields; everything else is kept in
``Metadata.user`` as a ``FrontmatterValue`` tree.

Key classes:
- Metadata: Validated frontmatter.
- FrontmatterParser: Splits and validates a raw file.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Union

import yaml

from .errors import MalformedFrontmatter, MissingRequiredField
from .utils import normalize_line_endings

FrontmatterValue = Union[
    str, int, float, bool, None, list["FrontmatterValue"], dict[str, "FrontmatterValue"]
]

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\n(.*?)^---[ \t]*$\n?", re.DOTALL | re.MULTILINE)
_OPENING_RE = re.compile(r"\A---[ \t]*\n")

REQUIRED_FIELDS = ("title", "tags")
KNOWN_FIELDS = frozenset(
    {
        "title",
        "tags",
        "keywords",
        "description",
        "excerpt",
        "template",
        "emit",
        "published",
        "last_updated",
    }
)


@dataclass(frozen=True)
class Metadata:
    """Validated frontmatter of one content file."""

    title: str
    tags: tuple[str, ...]
    keywords: tuple[str, ...] = ()
    description: str | None = None
    excerpt: str | None = None
    template: str | None = None
    emit: bool = True
    published: str | None = None
    last_updated: str | None = None
    user: dict[str, FrontmatterValue] = field(default_factory=dict)


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split raw text into a frontmatter mapping and the body.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (frontmatter dict, body). Files without a leading marker
        return an empty dict and the whole text.

    Raises:
        MalformedFrontmatter: If the block is unterminated, not YAML, or not
            a mapping.
    """
    text = normalize_line_endings(text)
    match = FRONTMATTER_RE.match(text)
    if not match:
        if _OPENING_RE.match(text):
            raise MalformedFrontmatter("frontmatter block is not terminated by '---'")
        return {}, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise MalformedFrontmatter(f"invalid YAML in frontmatter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrontmatter(
            f"frontmatter must be a mapping, got {type(data).__name__}"
        )
    return data, text[match.end() :]


def to_frontmatter_value(value: Any) -> FrontmatterValue:
    """Normalise a parsed YAML value into the ``FrontmatterValue`` tree.

    Dates become ISO strings, mapping keys become strings, and any other
    scalar YAML can produce is stringified.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): to_frontmatter_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_frontmatter_value(v) for v in value]
    return str(value)


class FrontmatterParser:
    """Parses a content file into ``(Metadata, body)``.

    Validation is strict about the two required fields and lenient about
    everything else: unknown keys are preserved for templates.
    """

    def parse(self, text: str, path: Path | None = None) -> tuple[Metadata, str]:
        """Parse raw file text.

        Args:
            text: Raw file content.
            path: Source path, attached to any raised error.

        Returns:
            Tuple of (Metadata, body_source).

        Raises:
            MalformedFrontmatter: If the block cannot be parsed.
            MissingRequiredField: If ``title`` or ``tags`` is absent.
        """
        try:
            data, body = split_frontmatter(text)
        except MalformedFrontmatter as exc:
            exc.path = path
            raise
        for name in REQUIRED_FIELDS:
            if data.get(name) is None:
                raise MissingRequiredField(name, path)

        return (
            Metadata(
                title=str(to_frontmatter_value(data["title"])),
                tags=self._string_list(data, "tags", path),
                keywords=self._string_list(data, "keywords", path),
                description=self._optional_str(data, "description"),
                excerpt=self._optional_str(data, "excerpt"),
                template=self._optional_str(data, "template"),
                emit=self._flag(data, "emit", True, path),
                published=self._optional_str(data, "published"),
                last_updated=self._optional_str(data, "last_updated"),
                user={
                    str(k): to_frontmatter_value(v)
                    for k, v in data.items()
                    if k not in KNOWN_FIELDS
                },
            ),
            body,
        )

    @staticmethod
    def _string_list(data: dict[str, Any], key: str, path: Path | None) -> tuple[str, ...]:
        value = data.get(key)
        if value is None:
            return ()
        if not isinstance(value, list):
            raise MalformedFrontmatter(
                f"'{key}' must be a list, got {type(value).__name__}", path
            )
        return tuple(str(to_frontmatter_value(item)) for item in value)

    @staticmethod
    def _flag(data: dict[str, Any], key: str, default: bool, path: Path | None) -> bool:
        value = data.get(key)
        if value is None:
            return default
        if not isinstance(value, bool):
            raise MalformedFrontmatter(
                f"'{key}' must be true or false, got {type(value).__name__}", path
            )
        return value

    @staticmethod
    def _optional_str(data: dict[str, Any], key: str) -> str | None:
        value = data.get(key)
        if value is None:
            return None
        return str(to_frontmatter_value(value))


def parse_frontmatter(text: str, path: Path | None = None) -> tuple[Metadata, str]:
    """Parse raw file text with the default parser."""
    return default_frontmatter_parser.parse(text, path)


default_frontmatter_parser = FrontmatterParser()

"""Error taxonomy for Weaving.

Every failure the build pipeline can report carries an ``ErrorKind`` so the
CLI and the build report can group diagnostics without inspecting messages.

Page-local errors (frontmatter, templates, markdown) are collected into the
``BuildReport`` and never abort the build. Root-level failures (unreadable
content root, unwritable output, invalid config) propagate and end the run.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    """Kind of a build failure."""

    IO_FAILURE = "IoFailure"
    MALFORMED_FRONTMATTER = "MalformedFrontmatter"
    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    TEMPLATE_NOT_FOUND = "TemplateNotFound"
    TEMPLATE_RENDER_ERROR = "TemplateRenderError"
    MARKDOWN_CONVERSION_FAILURE = "MarkdownConversionFailure"
    CONFIG_INVALID = "ConfigInvalid"


class WeavingError(Exception):
    """Base class for all Weaving errors.

    Attributes:
        kind: Category of the failure.
        path: Source file (or directory) the error refers to, if any.
        message: Human-readable error message.
    """

    kind: ErrorKind = ErrorKind.IO_FAILURE

    def __init__(self, message: str, path: Path | None = None):
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class ConfigInvalid(WeavingError):
    kind = ErrorKind.CONFIG_INVALID


class ScanError(WeavingError):
    """Content root could not be read."""

    kind = ErrorKind.IO_FAILURE


class OutputCollision(WeavingError):
    """Two source files claim the same output path."""

    kind = ErrorKind.IO_FAILURE


class OutputWriteError(WeavingError):
    kind = ErrorKind.IO_FAILURE


class MalformedFrontmatter(WeavingError):
    kind = ErrorKind.MALFORMED_FRONTMATTER


class MissingRequiredField(WeavingError):
    """A required frontmatter field is absent.

    Attributes:
        field: Name of the missing field.
    """

    kind = ErrorKind.MISSING_REQUIRED_FIELD

    def __init__(self, field: str, path: Path | None = None):
        self.field = field
        super().__init__(f"missing required frontmatter field '{field}'", path)


class TemplateNotFoundError(WeavingError):
    kind = ErrorKind.TEMPLATE_NOT_FOUND


class TemplateRenderError(WeavingError):
    kind = ErrorKind.TEMPLATE_RENDER_ERROR


class MarkdownConversionFailure(WeavingError):
    kind = ErrorKind.MARKDOWN_CONVERSION_FAILURE

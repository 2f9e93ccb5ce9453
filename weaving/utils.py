"""Utility functions for Weaving.

This module contains small helpers used throughout the Weaving codebase:
string processing, route derivation, path matching and file output.

Key functions:
    slugify: Convert heading text to a GitHub-style anchor slug.
    route_from_path: Derive the pretty URL route of a content file.
    matches_any: Check a path against watch-exclude glob patterns.
    normalize_line_endings: Convert CRLF to LF.
    write_atomic: Write a file via a temporary sibling and ``os.replace``.
    copy_tree: Copy a directory tree into another directory.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import unicodedata
from collections.abc import Iterable
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath

# Punctuation GitHub turns into dashes when generating heading anchors.
_GFM_PUNCTUATION = set("!\"#$%&()*+,./:;<=>@[\\]^_`{|}~-")


def slugify(text: str) -> str:
    """Convert heading text into a CommonMark/GFM-compatible slug.

    Dashes are neither collapsed nor stripped.

    Args:
        text: Heading text.

    Returns:
        Lowercase slug.

    Examples:
        >>> slugify("Intro - description")
        'intro---description'
    """
    normalized = unicodedata.normalize("NFKD", text).lower()
    slug = []
    for char in normalized:
        if char.isalnum():
            slug.append(char)
        elif char.isspace() or char in _GFM_PUNCTUATION:
            slug.append("-")
    return "".join(slug)


def route_from_path(content_root: Path, path: Path) -> str:
    """Derive the route for a content file.

    ``index.md`` maps to its directory; any other file maps to a directory
    named after its stem. Routes always start and end with a slash.

    Args:
        content_root: Root content directory.
        path: Path of the content file, inside ``content_root``.

    Returns:
        Route such as ``/``, ``/posts/`` or ``/posts/hello/``.

    Raises:
        ValueError: If ``path`` is not inside ``content_root``.

    Examples:
        >>> route_from_path(Path("content"), Path("content/blog/post1.md"))
        '/blog/post1/'
    """
    rel = path.relative_to(content_root)
    parts = list(rel.parent.parts)
    if rel.stem != "index":
        parts.append(rel.stem)
    if not parts:
        return "/"
    return "/" + "/".join(parts) + "/"


def output_path_for_route(route: str) -> PurePosixPath:
    """Return the output file (relative to the build dir) for a route."""
    return PurePosixPath(route.strip("/")) / "index.html"


def matches_any(rel_path: PurePosixPath | Path, patterns: Iterable[str]) -> bool:
    """Check whether a relative path matches any glob pattern.

    A pattern matches when it matches the whole relative path or any single
    path component, so ``node_modules`` excludes the directory at any depth.

    Args:
        rel_path: Path relative to the project or content root.
        patterns: Glob patterns (``fnmatch`` syntax).

    Returns:
        True if the path should be excluded.
    """
    posix = PurePosixPath(*Path(rel_path).parts)
    text = posix.as_posix()
    for pattern in patterns:
        if fnmatch(text, pattern):
            return True
        if any(fnmatch(part, pattern) for part in posix.parts):
            return True
    return False


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n")


def write_atomic(path: Path, content: str) -> None:
    """Write text to ``path`` so readers never observe a partial file.

    Args:
        path: Destination file; parent directories are created.
        content: Text to write as UTF-8.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def copy_tree(src: Path, dest: Path) -> list[Path]:
    """Copy the contents of ``src`` into ``dest``, overwriting existing files.

    Args:
        src: Source directory.
        dest: Destination directory (created if needed).

    Returns:
        List of destination files written.
    """
    copied: list[Path] = []
    for root, dirnames, filenames in os.walk(src):
        dirnames.sort()
        rel = Path(root).relative_to(src)
        target_dir = dest / rel
        target_dir.mkdir(parents=True, exist_ok=True)
        for name in sorted(filenames):
            target = target_dir / name
            shutil.copy2(Path(root) / name, target)
            copied.append(target)
    return copied

"""HTML utility functions for Weaving.

Functions:
    strip_tags: Remove HTML tags from an inline fragment.
    inject_before_body_end: Insert a snippet just before ``</body>``.
    join_root_url: Join a base URL with a path.
"""

from __future__ import annotations

import re

_TAG_RE = re.compile(r"<[^>]+>")
_BODY_END_RE = re.compile(r"</body\s*>", re.IGNORECASE)


def strip_tags(html: str) -> str:
    """Remove tags from an inline HTML fragment, keeping the text."""
    return _TAG_RE.sub("", html)


def inject_before_body_end(html: str, snippet: str) -> str:
    """Insert ``snippet`` before the last closing body tag.

    Documents without a closing body tag get the snippet appended.

    Examples:
        >>> inject_before_body_end("<body><p>x</p></body>", "<script></script>")
        '<body><p>x</p><script></script></body>'
    """
    matches = list(_BODY_END_RE.finditer(html))
    if not matches:
        return html + snippet
    last = matches[-1]
    return html[: last.start()] + snippet + html[last.start() :]


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    A root URL without a scheme (``localhost:8080``) gets ``http://``.

    Examples:
        >>> join_root_url('https://example.com/', '/about/')
        'https://example.com/about/'

        >>> join_root_url('localhost:8080', 'about/')
        'http://localhost:8080/about/'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    if "://" not in base:
        base = f"http://{base}"
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"

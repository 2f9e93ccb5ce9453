"""Custom template filters for Weaving.

The same four filters are installed in both templating backends:

- ``hasKey``: membership test that never trips strict undefined handling.
- ``raw``: marks a value as safe so it is not HTML-escaped. Unsafe by
  nature; meant for trusted built-in content such as ``page.body``.
- ``json``: pretty-printed JSON of a value.
- ``date``: formats an ISO-8601 timestamp with ``strftime``.

Liquid usage: ``{{ page.user | hasKey: "author" }}``.
Jinja usage: ``{{ page.user | hasKey("author") }}``.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

from jinja2 import Undefined as JinjaUndefined
from liquid import Undefined as LiquidUndefined
from markupsafe import Markup

_UNDEFINED_TYPES = (LiquidUndefined, JinjaUndefined)


def has_key(obj: Any, key: Any) -> bool:
    """Return True if ``obj`` is a mapping containing ``key``.

    Undefined inputs return False instead of raising, so the filter can guard
    optional fields under strict mode.
    """
    # Strict undefineds raise on any attribute access, including __class__.
    if issubclass(type(obj), _UNDEFINED_TYPES):
        return False
    if isinstance(obj, Mapping):
        return str(key) in obj
    return False


def raw(value: Any) -> Markup:
    """Return ``value`` as markup that bypasses autoescaping."""
    if isinstance(value, Markup):
        return value
    return Markup(_to_text(value))


def to_json(value: Any) -> str:
    """Serialise ``value`` as indented JSON.

    Raises:
        TypeError: If the value is not JSON serialisable.
    """
    return json.dumps(value, indent=2, ensure_ascii=False)


def format_date(value: Any, fmt: str = "%Y-%m-%d") -> str:
    """Format an ISO-8601 string, date or datetime with ``strftime``.

    Raises:
        ValueError: If ``value`` is a string that is not ISO-8601.
    """
    if isinstance(value, (datetime, date)):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    return parsed.strftime(fmt)


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


FILTERS: dict[str, Callable[..., Any]] = {
    "hasKey": has_key,
    "raw": raw,
    "json": to_json,
    "date": format_date,
}

"""Site configuration for Weaving.

Configuration is read once from ``weaving.toml`` in the project root and
frozen into a ``SiteConfig`` value that is passed explicitly to the build
pipeline and the dev server. Every key is optional; a missing file means
all defaults.

Key functions:
- load_config: Load and validate ``weaving.toml``.
- default_config_toml: The text written by ``weaving config``.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import ConfigInvalid

CONFIG_FILENAME = "weaving.toml"

DEFAULT_WATCH_EXCLUDES = (".git", "node_modules", "site")


class TemplateLang(str, Enum):
    """Templating language used for templates and partials."""

    LIQUID = "liquid"
    JINJA = "jinja"

    @property
    def extension(self) -> str:
        return f".{self.value}"


@dataclass(frozen=True)
class ImageConfig:
    quality: int = 83


@dataclass(frozen=True)
class ServeConfig:
    """Settings used only by ``weaving serve``.

    Attributes:
        watch_excludes: Glob patterns for paths the watcher and scanner ignore.
        npm_build: Run ``npm run build`` before each rebuild.
        address: ``host:port`` the dev server binds to.
    """

    watch_excludes: tuple[str, ...] = DEFAULT_WATCH_EXCLUDES
    npm_build: bool = False
    address: str = "localhost:8080"

    @property
    def host(self) -> str:
        host, _, _ = self.address.rpartition(":")
        return host or "localhost"

    @property
    def port(self) -> int:
        _, _, port = self.address.rpartition(":")
        return int(port)


@dataclass(frozen=True)
class SiteConfig:
    """Validated, immutable site configuration.

    Directory attributes are absolute paths resolved against ``base_dir``.
    """

    base_dir: Path
    content_dir: Path
    partials_dir: Path
    public_dir: Path
    build_dir: Path
    template_dir: Path
    version: str = "1"
    base_url: str = "localhost:8080"
    templating_language: TemplateLang = TemplateLang.LIQUID
    image_config: ImageConfig = field(default_factory=ImageConfig)
    serve_config: ServeConfig = field(default_factory=ServeConfig)

    def site_globals(self) -> dict[str, Any]:
        """Return the subset of the config exposed to templates as ``site``."""
        return {
            "version": self.version,
            "base_url": self.base_url,
            "templating_language": self.templating_language.value,
            "content_dir": self.content_dir.name,
            "build_dir": self.build_dir.name,
            "public_dir": self.public_dir.name,
        }


_DIR_DEFAULTS = {
    "content_dir": "content",
    "partials_dir": "partials",
    "public_dir": "public",
    "build_dir": "site",
    "template_dir": "templates",
}


def default_config_toml() -> str:
    """Return a fully populated ``weaving.toml`` with default values."""
    excludes = ", ".join(f'"{item}"' for item in DEFAULT_WATCH_EXCLUDES)
    return f"""version = 1
content_dir = "content"
base_url = "localhost:8080"
partials_dir = "partials"
public_dir = "public"
build_dir = "site"
template_dir = "templates"
templating_language = "liquid"

[image_config]
quality = 83

[serve_config]
watch_excludes = [{excludes}]
npm_build = false
address = "localhost:8080"
"""


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from ``weaving.toml``.

    Args:
        project_root: Root directory of the project.

    Returns:
        SiteConfig with defaults applied for missing keys.

    Raises:
        ConfigInvalid: If the file is not valid TOML or a key has the wrong type.
    """
    base_dir = project_root.resolve()
    config_path = base_dir / CONFIG_FILENAME
    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigInvalid(f"invalid TOML: {exc}", config_path) from exc
        except OSError as exc:
            raise ConfigInvalid(f"unreadable config: {exc}", config_path) from exc

    dirs = {
        key: base_dir / _expect(raw, key, str, default, config_path)
        for key, default in _DIR_DEFAULTS.items()
    }
    version = raw.get("version", "1")
    if not isinstance(version, (str, int)) or isinstance(version, bool):
        raise ConfigInvalid("'version' must be a string or integer", config_path)

    lang_name = _expect(raw, "templating_language", str, "liquid", config_path)
    try:
        lang = TemplateLang(lang_name.lower())
    except ValueError:
        raise ConfigInvalid(
            f"unsupported templating_language '{lang_name}'", config_path
        ) from None

    image_raw = _expect(raw, "image_config", dict, {}, config_path)
    serve_raw = _expect(raw, "serve_config", dict, {}, config_path)
    excludes = _expect(
        serve_raw, "watch_excludes", list, list(DEFAULT_WATCH_EXCLUDES), config_path
    )
    if not all(isinstance(item, str) for item in excludes):
        raise ConfigInvalid("'watch_excludes' must be a list of strings", config_path)
    serve_config = ServeConfig(
        watch_excludes=tuple(excludes),
        npm_build=_expect(serve_raw, "npm_build", bool, False, config_path),
        address=_expect(serve_raw, "address", str, "localhost:8080", config_path),
    )
    if not serve_config.address.rpartition(":")[2].isdigit():
        raise ConfigInvalid(
            f"'address' must be host:port, got '{serve_config.address}'", config_path
        )

    return SiteConfig(
        base_dir=base_dir,
        version=str(version),
        base_url=_expect(raw, "base_url", str, "localhost:8080", config_path),
        templating_language=lang,
        image_config=ImageConfig(
            quality=_expect(image_raw, "quality", int, 83, config_path)
        ),
        serve_config=serve_config,
        **dirs,
    )


def _expect(raw: dict[str, Any], key: str, kind: type, default: Any, path: Path) -> Any:
    value = raw.get(key, default)
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ConfigInvalid(
            f"'{key}' must be of type {kind.__name__}, got {type(value).__name__}",
            path,
        )
    return value

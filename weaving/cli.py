"""Command-line interface for Weaving.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site into the build directory.
- serve: Run the development server with live reload.
- new: Scaffold a new Weaving site from a starter template.
- config: Write a weaving.toml with default values.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

import click

from . import __version__
from .config import CONFIG_FILENAME, default_config_toml, load_config
from .errors import WeavingError

# Starter sites shipped with the package, one directory per template name
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"

_path_option = click.option(
    "-p",
    "--path",
    "path",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    envvar="WEAVING_BASE_PATH",
    help="Project root directory.",
)


@click.group()
@click.version_option(version=__version__, prog_name="weaving")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool):
    """Weaving static site generator."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@_path_option
def build(path: Path):
    """Build the site into the build directory."""
    from .build import build as build_site

    try:
        config = load_config(path)
        report = build_site(config)
    except WeavingError as exc:
        _echo_failure(exc.path, exc.kind.value, exc.message)
        raise SystemExit(1) from None

    if report.errors:
        click.echo(
            click.style(f"Build finished with {len(report.errors)} error(s):", fg="red", bold=True),
            err=True,
        )
        for error in report.errors:
            click.echo(click.style(f"  File: {error.path}", fg="yellow"), err=True)
            click.echo(click.style(f"  Error: [{error.kind.value}] {error.message}", fg="white"), err=True)
        click.echo(f"Built {report.pages_built} pages into {config.build_dir}")
        raise SystemExit(1)
    click.echo(
        f"Built {report.pages_built} pages into {config.build_dir} in {report.duration:.2f}s"
    )


@cli.command()
@_path_option
def serve(path: Path):
    """Run dev server with live reload."""
    from .server import DevServer

    try:
        config = load_config(path)
    except WeavingError as exc:
        _echo_failure(exc.path, exc.kind.value, exc.message)
        raise SystemExit(1) from None
    click.echo(f"Serving {config.build_dir} at http://{config.serve_config.address}")
    try:
        DevServer(config).run()
    except WeavingError as exc:
        _echo_failure(exc.path, exc.kind.value, exc.message)
        raise SystemExit(1) from None


@cli.command()
@click.option("-n", "--name", default="my-site", show_default=True, help="Name of the new site directory.")
@_path_option
@click.option("-t", "--template", default="default", show_default=True, help="Starter template.")
def new(name: str, path: Path, template: str):
    """Scaffold a new Weaving site."""
    source = _SCAFFOLD_DIR / template
    if not source.is_dir():
        available = ", ".join(sorted(p.name for p in _SCAFFOLD_DIR.iterdir() if p.is_dir()))
        raise click.ClickException(
            f"Unknown template '{template}'. Available templates: {available}"
        )
    target = (path / name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(source, target)
    click.echo(f"New Weaving site created at {target}")


@cli.command()
@_path_option
@click.option("-f", "--force", is_flag=True, help="Overwrite an existing weaving.toml.")
def config(path: Path, force: bool):
    """Write a weaving.toml with default values."""
    target = path / CONFIG_FILENAME
    if target.exists() and not force:
        raise click.ClickException(
            f"{target} already exists; use --force to overwrite it"
        )
    path.mkdir(parents=True, exist_ok=True)
    target.write_text(default_config_toml(), encoding="utf-8")
    click.echo(f"Wrote {target}")


def main():
    """Entry point for the CLI application."""
    cli()


def _echo_failure(path: Path | None, kind: str, message: str) -> None:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if path is not None:
        click.echo(click.style(f"  File: {path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: [{kind}] {message}", fg="white"), err=True)


def _scaffold(source: Path, root: Path) -> None:
    """Copy a starter site into ``root``.

    Args:
        source: Starter template directory.
        root: Root directory for the new project.
    """
    for src_path in sorted(source.rglob("*")):
        if src_path.is_dir():
            continue
        dest_path = root / src_path.relative_to(source)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)

    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("WEAVING_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        # Non-fatal: user can run git init manually
        logging.getLogger(__name__).debug("git init failed: %s", exc)

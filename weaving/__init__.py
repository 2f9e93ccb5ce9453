"""Weaving static site generator.

Weaving turns a directory of Markdown content and Liquid (or Jinja2)
templates into a static site, and serves it with live reload while you edit.

The main entry point is the CLI module, which provides commands for
scaffolding new sites, building them, and running the development server.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"

"""Kiln static site builder.

Kiln builds a static site from a Jekyll-style ``_config.yml``, Markdown and
HTML content, Jinja2 layouts and an asset directory.

The main entry point is the CLI module, whose ``build`` command runs the
pipeline in ``kiln.build``: configuration, content discovery, layout
resolution, rendering, asset digesting, then sitemap and archive pages.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"

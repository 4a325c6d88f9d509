"""Template rendering engine for Kiln.

Layouts are Jinja2 templates under ``_layouts/``. A layout may begin with
front matter whose ``layout`` key names an outer layout, so layouts nest
the way Jekyll layouts do. Includes live under ``_includes/``.

Key class:
- TemplateEngine: Compiles layouts and renders content through them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    Template,
    TemplateError,
    select_autoescape,
)
from markupsafe import Markup

from .asset_resolver import AssetManifest
from .collections import ItemCollection, TaxonomyCollection
from .config import SiteConfig
from .errors import RenderError
from .extractors import FrontMatterError, extract_frontmatter
from .html_utils import absolute_url, relative_url
from .renderers import pygments_css
from .utils import slugify

logger = logging.getLogger(__name__)

LAYOUTS_DIR = "_layouts"
INCLUDES_DIR = "_includes"
LAYOUT_SUFFIXES = (".html", ".html.jinja", ".jinja", ".xml")


class _Layout:
    """A compiled layout and the name of its parent layout, if any."""

    def __init__(self, name: str, template: Template, parent: str | None):
        self.name = name
        self.template = template
        self.parent = parent


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        source_dir: Site source directory.
        config: Site configuration.
        env: Jinja2 environment.
        assets: Manifest used by ``asset_path``.
    """

    def __init__(
        self,
        source_dir: Path,
        config: SiteConfig,
        assets: AssetManifest | None = None,
    ):
        self.source_dir = source_dir
        self.config = config
        self.layout_dir = source_dir / LAYOUTS_DIR
        self.env = Environment(
            loader=FileSystemLoader(
                [source_dir / INCLUDES_DIR, source_dir / LAYOUTS_DIR]
            ),
            autoescape=select_autoescape(["html", "xml"], default_for_string=False),
            enable_async=False,
        )
        self.assets = assets or AssetManifest()
        self.assets.set_url_generator(self.relative_url)
        self.site: dict[str, Any] = config.template_vars()
        self._layouts: dict[str, _Layout | None] = {}
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["site"] = self.site
        self.env.globals["asset_path"] = self.assets.resolve
        self.env.globals["pygments_css"] = pygments_css
        self.env.filters["relative_url"] = self.relative_url
        self.env.filters["absolute_url"] = self.absolute_url
        self.env.filters["asset_path"] = self.assets.resolve
        self.env.filters["slugify"] = slugify
        self.env.filters["date_to_xmlschema"] = _date_to_xmlschema
        self.env.filters["date"] = _format_date

    def relative_url(self, path: str) -> str:
        return relative_url(path, self.config.baseurl)

    def absolute_url(self, path: str) -> str:
        return absolute_url(path, self.config.url, self.config.baseurl)

    def update_collections(
        self,
        pages: Iterable[dict[str, Any]],
        posts: Iterable[dict[str, Any]],
        categories: dict[str, list[dict[str, Any]]],
        tags: dict[str, list[dict[str, Any]]],
    ) -> None:
        """Expose the site-wide collections to templates as ``site.*``."""
        self.site["pages"] = ItemCollection(pages)
        self.site["posts"] = ItemCollection(posts).sorted()
        self.site["categories"] = TaxonomyCollection(categories)
        self.site["tags"] = TaxonomyCollection(tags)

    def has_layout(self, name: str) -> bool:
        return self._load_layout(name) is not None

    def render(self, content: str, layout: str, page: dict[str, Any]) -> str:
        """Render ``content`` through ``layout`` and its parent layouts.

        A missing layout ends the chain; the content rendered so far is
        returned.

        Args:
            content: Rendered body HTML.
            layout: Name of the innermost layout.
            page: Page variables exposed as ``page``.

        Returns:
            Final HTML.

        Raises:
            RenderError: On template errors or a layout cycle.
        """
        seen: list[str] = []
        current: str | None = layout
        output = content
        while current:
            if current in seen:
                chain = " -> ".join(seen + [current])
                raise RenderError(f"Layout cycle: {chain}")
            seen.append(current)
            compiled = self._load_layout(current)
            if compiled is None:
                logger.debug("Layout %r not found; rendering without it", current)
                break
            context = {
                "site": self.site,
                "page": page,
                "layout": {"name": compiled.name},
                "content": Markup(output),
            }
            try:
                output = compiled.template.render(**context)
            except RenderError:
                raise
            except TemplateError as exc:
                raise RenderError(
                    f"Template error in layout '{current}': {exc}", original_error=exc
                ) from exc
            current = compiled.parent
        return output

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        return self.env.from_string(template).render(site=self.site, **context)

    def _load_layout(self, name: str) -> _Layout | None:
        if name in self._layouts:
            return self._layouts[name]
        if "/" in name or "\\" in name or name in (".", ".."):
            raise RenderError(f"Invalid layout name '{name}'")
        compiled: _Layout | None = None
        for suffix in ("",) + LAYOUT_SUFFIXES:
            path = self.layout_dir / f"{name}{suffix}"
            if not path.is_file():
                continue
            text = path.read_text(encoding=self.config.encoding)
            try:
                front_matter, body = extract_frontmatter(text)
            except FrontMatterError as exc:
                raise RenderError(str(exc), path, exc) from exc
            parent = front_matter.get("layout")
            try:
                template = self.env.from_string(body)
            except TemplateError as exc:
                raise RenderError(
                    f"Template syntax error: {exc}", path, exc
                ) from exc
            compiled = _Layout(
                name, template, str(parent) if parent and parent != name else None
            )
            break
        self._layouts[name] = compiled
        return compiled


def _date_to_xmlschema(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%dT%H:%M:%S")
    return str(value)


def _format_date(value: Any, fmt: str = "%b %d, %Y") -> str:
    if isinstance(value, datetime):
        return value.strftime(fmt)
    return str(value)

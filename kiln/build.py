"""Site building for Kiln.

This module runs the whole build as a single linear pass:

1. Load the configuration.
2. Discover content and static files.
3. Build asset bundles, so templates can resolve digested asset names.
4. Resolve each item's layout and permalink, then render it.
5. After every item is rendered, write the sitemap and archive pages.

Per-item and per-bundle failures are collected into the BuildReport
instead of stopping the build. Configuration errors and unreadable source
roots propagate immediately.

Key functions:
- build_site: Build the whole site.
- render_item: Render one content item to a RenderedOutput.
"""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .archives import Archive, ArchiveGenerator
from .assets import AssetBundle, AssetPipeline
from .asset_resolver import AssetManifest
from .config import CONFIG_FILENAME, SiteConfig, load_config
from .content import ContentItem, Discovery, discover
from .errors import ConfigValidationError, KilnError, RenderError
from .feeds import SitemapGenerator
from .layouts import LayoutResolver
from .permalinks import item_url, output_file
from .renderers import RendererRegistry
from .templates import TemplateEngine
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)


@dataclass
class RenderedOutput:
    """The rendered HTML for one content item and where it goes.

    Attributes:
        item: Source content item.
        layout: Layout the item was rendered with.
        url: Root-relative URL.
        output_path: Absolute path of the output file.
        html: Final rendered document.
    """

    item: ContentItem
    layout: str
    url: str
    output_path: Path
    html: str


@dataclass
class BuildReport:
    """Result of a site build.

    Attributes:
        config: Configuration the build used.
        output_dir: Directory the site was written to.
        items: Every discovered content item.
        outputs: Successfully rendered items, in discovery order.
        bundles: Asset bundles that built.
        archives: Archive pages that were written.
        sitemap_path: Path of the sitemap, if written.
        errors: Non-fatal errors collected during the build.
    """

    config: SiteConfig
    output_dir: Path
    items: list[ContentItem] = field(default_factory=list)
    outputs: list[RenderedOutput] = field(default_factory=list)
    bundles: list[AssetBundle] = field(default_factory=list)
    archives: list[Archive] = field(default_factory=list)
    sitemap_path: Path | None = None
    errors: list[KilnError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class SiteBuilder:
    """Renders discovered content for one configuration.

    Attributes:
        config: Site configuration.
        source_dir: Site source directory.
        output_dir: Output directory.
        engine: Template engine.
        resolver: Layout resolver bound to the config's default rules.
        renderers: Markdown/HTML renderer registry.
    """

    def __init__(
        self,
        config: SiteConfig,
        source_dir: Path,
        output_dir: Path,
        assets: AssetManifest | None = None,
    ):
        self.config = config
        self.source_dir = source_dir
        self.output_dir = output_dir
        self.engine = TemplateEngine(source_dir, config, assets)
        self.resolver = LayoutResolver(config.defaults)
        self.renderers = RendererRegistry(config.kramdown)

    def page_vars(self, item: ContentItem, url: str) -> dict[str, Any]:
        """Build the ``page`` variables for an item (without its content)."""
        values = self.resolver.values(item)
        values.update(
            {
                "title": item.title,
                "url": url,
                "date": item.date,
                "categories": list(item.categories),
                "tags": list(item.tags),
                "slug": item.slug,
                "path": item.relative_path,
                "type": item.type,
                "lang": values.get("lang", self.config.default_lang),
            }
        )
        return values

    def prepare(self, items: list[ContentItem]) -> None:
        """Expose every item to templates as ``site.pages``/``site.posts``."""
        pages, posts = [], []
        categories: dict[str, list[dict[str, Any]]] = {}
        tags: dict[str, list[dict[str, Any]]] = {}
        for item in items:
            summary = self.page_vars(item, item_url(item, self.config.permalink))
            if item.is_post:
                posts.append(summary)
                for name in item.categories:
                    categories.setdefault(name, []).append(summary)
                for name in item.tags:
                    tags.setdefault(name, []).append(summary)
            else:
                pages.append(summary)
        self.engine.update_collections(pages, posts, categories, tags)

    def render_item(self, item: ContentItem) -> RenderedOutput:
        """Render one item through its layout.

        Raises:
            RenderError: If the body or layout cannot be rendered.
        """
        layout = self.resolver.resolve(item)
        url = item_url(item, self.config.permalink)
        try:
            output_path = output_file(self.output_dir, url)
        except ValueError as exc:
            raise RenderError(str(exc), item.path, exc) from exc
        renderer = self.renderers.get_renderer(item.path)
        try:
            body = renderer.render(item.body, item.path) if renderer else item.body
            page = self.page_vars(item, url)
            page["content"] = body
            html = self.engine.render(body, layout, page)
        except RenderError as exc:
            if exc.source_path == item.path:
                raise
            raise RenderError(exc.message, item.path, exc) from exc
        except Exception as exc:
            raise RenderError(_format_error_message(exc), item.path, exc) from exc
        return RenderedOutput(
            item=item,
            layout=layout,
            url=url,
            output_path=output_path,
            html=html,
        )

    def render_archive(self, archive: Archive) -> str:
        page = {
            "type": archive.type,
            "title": archive.title,
            "url": archive.url,
            "date": archive.date,
            "layout": archive.layout,
            "posts": [
                self.page_vars(p, item_url(p, self.config.permalink))
                for p in archive.posts
            ],
        }
        return self.engine.render("", archive.layout, page)


def build_site(
    source_dir: Path,
    config: SiteConfig | None = None,
    config_path: Path | None = None,
    output_dir: Path | None = None,
    include_drafts: bool = False,
    jobs: int = 1,
) -> BuildReport:
    """Build the entire static site.

    Args:
        source_dir: Site source directory.
        config: Preloaded configuration; loaded from disk when None.
        config_path: Descriptor path; defaults to ``_config.yml`` in the
            source directory.
        output_dir: Output directory; defaults to the configured
            destination relative to the source directory.
        include_drafts: Whether to render ``_drafts``.
        jobs: Number of threads used to render items.

    Returns:
        BuildReport with outputs and collected errors.

    Raises:
        ConfigParseError / ConfigValidationError: On bad configuration.
        ContentReadError: If the source directory cannot be read.
    """
    if config is None:
        config = load_config(config_path or source_dir / CONFIG_FILENAME)
    output_dir = output_dir or source_dir / config.destination
    target = output_dir.resolve()
    if target == source_dir.resolve() or target in source_dir.resolve().parents:
        raise ConfigValidationError(
            f"Destination {output_dir} would overwrite the source directory"
        )
    report = BuildReport(config=config, output_dir=output_dir)

    exclude = config.excludes + _output_exclude(source_dir, output_dir)
    found: Discovery = discover(
        [source_dir], exclude, include_drafts=include_drafts, encoding=config.encoding
    )
    report.items = found.items
    report.errors.extend(found.errors)

    ensure_clean_dir(output_dir)

    pipeline = AssetPipeline(source_dir, output_dir, config.assets, exclude)
    bundles, manifest, asset_errors = pipeline.run()
    report.bundles = bundles
    report.errors.extend(asset_errors)

    builder = SiteBuilder(config, source_dir, output_dir, manifest)
    builder.prepare(found.items)

    for result in _render_all(builder, found.items, jobs):
        if isinstance(result, RenderError):
            logger.error("Render failed: %s", result)
            report.errors.append(result)
        else:
            report.outputs.append(result)

    # output file -> what wrote it
    written: dict[Path, str] = {}
    for output in list(report.outputs):
        previous = written.get(output.output_path)
        if previous is not None:
            error = RenderError(
                f"Output {output.url} already written by {previous}",
                output.item.path,
            )
            logger.error("%s", error)
            report.errors.append(error)
            report.outputs.remove(output)
            continue
        written[output.output_path] = output.item.relative_path
        _write_output(output)

    for static in found.static_files:
        target = output_dir / static.relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(static.path, target)

    # Barrier: archives and the sitemap read the complete set of outputs
    posts = [o.item for o in report.outputs if o.item.is_post]
    if config.archives.enabled:
        for archive in ArchiveGenerator(config.archives).generate(posts):
            label = f"{archive.type} archive '{archive.title}'"
            try:
                target = _archive_target(output_dir, archive, label, written)
                html = builder.render_archive(archive)
            except RenderError as exc:
                logger.error("Archive %s failed: %s", archive.url, exc)
                report.errors.append(exc)
                continue
            written[target] = label
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(html, encoding="utf-8")
            report.archives.append(archive)

    report.sitemap_path = SitemapGenerator(config).write(
        output_dir, report.outputs, report.archives
    )

    logger.info(
        "Built %d pages, %d archives, %d asset bundles into %s (%d errors)",
        len(report.outputs),
        len(report.archives),
        len(report.bundles),
        output_dir,
        len(report.errors),
    )
    return report


def _render_all(
    builder: SiteBuilder, items: list[ContentItem], jobs: int
) -> list[RenderedOutput | RenderError]:
    """Render items, returning results in item order."""

    def render(item: ContentItem) -> RenderedOutput | RenderError:
        try:
            return builder.render_item(item)
        except RenderError as exc:
            return exc

    if jobs <= 1:
        return [render(item) for item in items]
    with ThreadPoolExecutor(max_workers=jobs) as executor:
        return list(executor.map(render, items))


def _archive_target(
    output_dir: Path, archive: Archive, label: str, written: dict[Path, str]
) -> Path:
    """Return the output file for an archive, refusing unsafe or taken paths."""
    try:
        target = output_file(output_dir, archive.url)
    except ValueError as exc:
        raise RenderError(f"{label}: {exc}", original_error=exc) from exc
    if target in written:
        raise RenderError(
            f"Output {archive.url} for {label} already written by {written[target]}"
        )
    return target


def _write_output(output: RenderedOutput) -> None:
    output.output_path.parent.mkdir(parents=True, exist_ok=True)
    output.output_path.write_text(output.html, encoding="utf-8")


def _output_exclude(source_dir: Path, output_dir: Path) -> tuple[str, ...]:
    """Exclude the output directory when it sits inside the source tree."""
    try:
        rel = output_dir.resolve().relative_to(source_dir.resolve())
    except ValueError:
        return ()
    return (rel.as_posix(),) if rel.parts else ()


def _format_error_message(exc: Exception) -> str:
    """Format an unexpected exception raised while rendering."""
    error_type = type(exc).__name__
    if error_type == "TypeError":
        return f"Type error: {exc}"
    if error_type == "AttributeError":
        return f"Attribute error: {exc}"
    return f"{error_type}: {exc}"

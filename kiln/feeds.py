"""Feed generation for Kiln.

Feeds are written after every item has been rendered, since they read the
full set of outputs.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates the sitemaps.org XML sitemap.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING
from xml.etree.ElementTree import Element, SubElement, tostring

from .config import SiteConfig
from .html_utils import absolute_url
from .permalinks import output_path_for

if TYPE_CHECKING:
    from .archives import Archive
    from .build import RenderedOutput

_SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"

_LASTMOD_KEYS = ("last_modified_at", "lastmod")


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output path relative to the output directory."""
        ...

    @abstractmethod
    def generate(
        self, outputs: Sequence[RenderedOutput], archives: Sequence[Archive]
    ) -> str | None:
        """Generate feed content, or None if there is nothing to write."""
        ...

    def write(
        self,
        output_dir: Path,
        outputs: Sequence[RenderedOutput],
        archives: Sequence[Archive] = (),
    ) -> Path | None:
        """Generate and write the feed.

        Returns:
            The written path, or None if skipped.
        """
        content = self.generate(outputs, archives)
        if content is None:
            return None
        output_path = output_dir / self.filename
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
        return output_path


class SitemapGenerator(FeedGenerator):
    """Generates a sitemap listing every rendered item and archive page.

    Change frequency and priority come from the front matter keys named by
    ``sitemap.change_frequency_name`` and ``sitemap.priority_name``. Pages
    listed in ``sitemap.include_posts`` report the newest post date as
    their last modification. Items with ``sitemap: false`` are left out.
    """

    def __init__(self, config: SiteConfig):
        self.config = config

    @property
    def filename(self) -> str:
        return self.config.sitemap.file.lstrip("/")

    def generate(
        self, outputs: Sequence[RenderedOutput], archives: Sequence[Archive] = ()
    ) -> str:
        settings = self.config.sitemap
        include_posts = {"/" + p.lstrip("/") for p in settings.include_posts}
        post_dates = [o.item.date for o in outputs if o.item.is_post]
        newest_post = max(post_dates) if post_dates else None

        urlset = Element("urlset")
        urlset.set("xmlns", _SITEMAP_NS)
        for output in outputs:
            front_matter = output.item.front_matter
            if front_matter.get("sitemap") is False:
                continue
            lastmod = self._lastmod(output)
            if newest_post is not None and self._listed(output.url, include_posts):
                lastmod = max(lastmod, newest_post)
            self._add_url(
                urlset,
                output.url,
                lastmod,
                front_matter.get(settings.change_frequency_name),
                front_matter.get(settings.priority_name),
            )
        for archive in archives:
            self._add_url(urlset, archive.url, archive.date, None, None)

        xml = tostring(urlset, encoding="unicode")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + xml + "\n"

    def _add_url(
        self,
        urlset: Element,
        url: str,
        lastmod: datetime | None,
        changefreq,
        priority,
    ) -> None:
        entry = SubElement(urlset, "url")
        SubElement(entry, "loc").text = absolute_url(
            url, self.config.url, self.config.baseurl
        )
        if lastmod is not None:
            SubElement(entry, "lastmod").text = lastmod.strftime("%Y-%m-%dT%H:%M:%S")
        if changefreq not in (None, ""):
            SubElement(entry, "changefreq").text = str(changefreq)
        if priority not in (None, ""):
            SubElement(entry, "priority").text = str(priority)

    @staticmethod
    def _lastmod(output: RenderedOutput) -> datetime:
        for key in _LASTMOD_KEYS:
            value = output.item.front_matter.get(key)
            if isinstance(value, str):
                try:
                    parsed = datetime.fromisoformat(value)
                except ValueError:
                    continue
                return parsed.replace(tzinfo=None)
        return output.item.date

    @staticmethod
    def _listed(url: str, include_posts: set[str]) -> bool:
        return url in include_posts or "/" + str(output_path_for(url)) in include_posts

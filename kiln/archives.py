"""Archive pages for Kiln.

Groups posts into year, month, day, category and tag archives. Each
archive is rendered through the configured archive layout at its own
permalink, with the grouped posts available as ``page.posts``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from .config import ArchivesConfig
from .content import ContentItem
from .permalinks import date_values, expand
from .utils import slugify

logger = logging.getLogger(__name__)

# Archive type -> key used in the permalinks mapping
_PERMALINK_KEYS = {
    "year": "year",
    "month": "month",
    "day": "day",
    "categories": "category",
    "tags": "tag",
}


@dataclass
class Archive:
    """One archive page.

    Attributes:
        type: "year", "month", "day", "categories", or "tags".
        title: Display title (the year, date, or category/tag name).
        posts: Posts in the archive, newest first.
        url: Root-relative URL from the archive permalink.
        layout: Layout used to render it.
        date: Newest post date, used as the sitemap lastmod.
    """

    type: str
    title: str
    posts: list[ContentItem] = field(default_factory=list)
    url: str = "/"
    layout: str = "archive"
    date: datetime | None = None


class ArchiveGenerator:
    """Builds Archive records from the site's posts."""

    def __init__(self, config: ArchivesConfig):
        self.config = config

    def generate(self, posts: Sequence[ContentItem]) -> list[Archive]:
        """Group posts into archives for every enabled archive type.

        Returns:
            Archives ordered by type (in ``enabled`` order), then key.
        """
        archives: list[Archive] = []
        for kind in self.config.enabled:
            groups, names = self._group(kind, posts)
            for key in sorted(groups):
                archives.append(self._archive(kind, key, names.get(key), groups[key]))
        logger.debug("Generated %d archive pages", len(archives))
        return archives

    def _group(self, kind: str, posts: Sequence[ContentItem]) -> tuple[dict, dict]:
        """Group posts by date tuple or by category/tag slug.

        Names that slugify alike (``Haskell`` and ``haskell``) share one
        archive, titled with the first spelling seen.
        """
        groups: dict = {}
        names: dict[str, str] = {}
        for post in posts:
            if kind == "year":
                keys = [(post.date.year,)]
            elif kind == "month":
                keys = [(post.date.year, post.date.month)]
            elif kind == "day":
                keys = [(post.date.year, post.date.month, post.date.day)]
            else:
                labels = post.categories if kind == "categories" else post.tags
                keys = []
                for label in labels:
                    key = slugify(label)
                    names.setdefault(key, label)
                    keys.append(key)
            for key in keys:
                group = groups.setdefault(key, [])
                if not group or group[-1] is not post:
                    group.append(post)
        return groups, names

    def _archive(
        self, kind: str, key, name: str | None, posts: list[ContentItem]
    ) -> Archive:
        ordered = sorted(posts, key=lambda p: (p.date, p.relative_path), reverse=True)
        if kind in ("year", "month", "day"):
            first = datetime(*(tuple(key) + (1,) * (3 - len(key))))
            values = date_values(first)
            title = {
                "year": first.strftime("%Y"),
                "month": first.strftime("%B %Y"),
                "day": first.strftime("%B %d, %Y"),
            }[kind]
        else:
            values = {"name": key}
            title = name or key
        template = self.config.permalinks[_PERMALINK_KEYS[kind]]
        return Archive(
            type=kind,
            title=title,
            posts=ordered,
            url=expand(template, values),
            layout=self.config.layout,
            date=ordered[0].date if ordered else None,
        )

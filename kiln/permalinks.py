"""Permalink expansion for Kiln.

Turns permalink templates such as ``/blog/:title/`` into URLs and output
file paths.

Key functions:
- expand: Substitute placeholders in a template.
- item_url: Compute the URL of a content item.
- output_path_for: Map a URL to a file path inside the output directory.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path, PurePosixPath

from .content import ContentItem
from .utils import slugify, strip_date_prefix

# Named permalink styles
STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}

_PLACEHOLDER_RE = re.compile(r":([a-z_]+)")


def expand(template: str, values: dict[str, str]) -> str:
    """Substitute ``:name`` placeholders and normalize slashes.

    Unknown placeholders are left as written.

    Examples:
        >>> expand("/blog/:title/", {"title": "folding"})
        '/blog/folding/'
    """
    template = STYLES.get(template, template)

    def repl(match: re.Match) -> str:
        key = match.group(1)
        return values[key] if key in values else match.group(0)

    url = _PLACEHOLDER_RE.sub(repl, template)
    url = re.sub(r"/{2,}", "/", "/" + url.lstrip("/"))
    return url


def date_values(date: datetime) -> dict[str, str]:
    return {
        "year": f"{date.year:04d}",
        "short_year": f"{date.year % 100:02d}",
        "month": f"{date.month:02d}",
        "i_month": str(date.month),
        "day": f"{date.day:02d}",
        "i_day": str(date.day),
        "y_day": f"{date.timetuple().tm_yday:03d}",
    }


def item_url(item: ContentItem, site_permalink: str) -> str:
    """Compute the URL for a content item.

    Front matter ``permalink`` wins. Posts and drafts use the site
    permalink; pages keep their source path, ``about.md`` serving at
    ``/about/`` and ``index.md`` at its directory.

    Args:
        item: Content item.
        site_permalink: Site-wide permalink template or style name.

    Returns:
        Root-relative URL.
    """
    rel = PurePosixPath(item.relative_path)
    values = {
        "title": _title_slug(item),
        "slug": item.slug,
        "name": item.slug,
        "categories": "/".join(slugify(c) for c in item.categories),
        "path": rel.with_suffix("").as_posix(),
        "basename": rel.stem,
        "output_ext": ".html",
    }
    values.update(date_values(item.date))

    override = item.front_matter.get("permalink")
    if isinstance(override, str) and override:
        return expand(override, values)
    if item.is_post:
        return expand(site_permalink, values)

    parent = rel.parent.as_posix()
    parent = "" if parent == "." else parent
    if rel.stem == "index":
        return f"/{parent}/" if parent else "/"
    if item.source_type == "html":
        return expand(f"/{parent}/{rel.stem}.html", values)
    return expand(f"/{parent}/{rel.stem}/", values)


def output_path_for(url: str) -> PurePosixPath:
    """Map a URL to a relative output file path.

    Raises:
        ValueError: If the URL has a ``.`` or ``..`` segment.

    Examples:
        >>> output_path_for("/blog/folding/")
        PurePosixPath('blog/folding/index.html')

        >>> output_path_for("/about")
        PurePosixPath('about.html')
    """
    if any(segment in (".", "..") for segment in url.split("/")):
        raise ValueError(f"URL {url!r} escapes the output directory")
    if url.endswith("/"):
        return PurePosixPath(url.strip("/") or ".") / "index.html"
    path = PurePosixPath(url.strip("/"))
    if not path.suffix:
        path = path.with_suffix(".html")
    return path


def output_file(output_dir: Path, url: str) -> Path:
    """Return the absolute output file for a URL."""
    return output_dir / Path(*output_path_for(url).parts)


def _title_slug(item: ContentItem) -> str:
    explicit = item.front_matter.get("slug")
    if explicit:
        return slugify(str(explicit))
    title = item.front_matter.get("title")
    if isinstance(title, str) and title.strip():
        return slugify(title)
    return slugify(strip_date_prefix(item.path.stem))

"""Escaping and URL joining used by the renderers and template filters.

Functions:
    escape_html: Escape text for element content and attribute values.
    join_root_url: Glue a site root onto a path with exactly one slash.
    relative_url: Prefix a path with the site's baseurl.
    absolute_url: Prefix a path with the site's url and baseurl.
"""

from __future__ import annotations

_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
)


def escape_html(text: str) -> str:
    """Escape ``&``, ``<``, ``>`` and double quotes for HTML output.

    Examples:
        >>> escape_html('a < b && "c"')
        'a &lt; b &amp;&amp; &quot;c&quot;'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Glue a site root onto a path with exactly one slash between them.

    Args:
        root_url: Site url or baseurl, possibly empty or slash-terminated.
        path: Site path, leading slash optional.

    Returns:
        The joined URL; a root-relative path when ``root_url`` is empty.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    path = "/" + path.lstrip("/")
    return root_url.rstrip("/") + path


def relative_url(path: str, baseurl: str = "") -> str:
    """Prefix a site path with ``baseurl``; external URLs pass through."""
    if not path:
        path = "/"
    if path.startswith(_URL_SKIP_PREFIXES):
        return path
    return join_root_url(baseurl, path)


def absolute_url(path: str, url: str, baseurl: str = "") -> str:
    """Prefix a site path with the site ``url`` and ``baseurl``."""
    if path and path.startswith(_URL_SKIP_PREFIXES):
        return path
    return join_root_url(url, relative_url(path, baseurl))

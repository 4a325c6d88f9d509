"""Utility functions for Kiln.

String processing, path matching and date helpers shared by the rest of
the package.

Key functions:
    slugify: Convert titles and filenames to URL slugs.
    titleize: Turn a post or page filename into a display title.
    extract_date_from_name: Extract date from a YYYY-MM-DD filename prefix.
    strip_date_prefix: Drop a YYYY-MM-DD- prefix from a filename stem.
    is_excluded: Match a relative path against exclude globs.
    is_markdown / is_html: Content type checks.
    ensure_clean_dir: Empty (or create) the output directory.
"""

from __future__ import annotations

import re
import shutil
import unicodedata
from collections.abc import Iterable
from datetime import datetime
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath

MARKDOWN_EXTENSIONS = (".md", ".markdown")
HTML_EXTENSIONS = (".html", ".htm")


def slugify(name: str) -> str:
    """Convert a title or filename stem to a URL slug.

    Non-ASCII characters are transliterated where possible, everything that
    is not alphanumeric collapses into single hyphens.

    Args:
        name: Title or filename stem.

    Returns:
        URL-friendly slug, or "index" if nothing usable remains.

    Examples:
        >>> slugify("Folding")
        'folding'

        >>> slugify("Foldable & Traversable!")
        'foldable-traversable'
    """
    normalized = unicodedata.normalize("NFKD", name)
    cleaned = normalized.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def strip_date_prefix(stem: str) -> str:
    """Drop a leading YYYY-MM-DD- from a filename stem."""
    parts = stem.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        return "-".join(parts[3:])
    return stem


def titleize(filename: str) -> str:
    """Derive a display title from a content filename.

    The extension and any post date prefix are dropped, separators become
    spaces and each word is capitalized.

    Args:
        filename: Content filename, extension optional.

    Returns:
        Title text, "Untitled" when the name has no words.

    Examples:
        >>> titleize("2024-01-15-right-folds.md")
        'Right Folds'
    """
    base = strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Read the YYYY-MM-DD prefix of a post filename stem.

    Args:
        name: Stem such as ``2021-03-07-folds``.

    Returns:
        Midnight of that day, or None without a valid calendar date.
    """
    parts = name.split("-")
    if len(parts) >= 3 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def is_excluded(rel_path: str, patterns: Iterable[str]) -> bool:
    """Check a POSIX relative path against exclude globs.

    A pattern matches the full path or any of its leading directories, so
    ``vendor`` excludes everything below ``vendor/``.

    Args:
        rel_path: Path relative to the source root, POSIX separators.
        patterns: fnmatch-style glob patterns.

    Returns:
        True if any pattern matches.
    """
    parts = PurePosixPath(rel_path).parts
    prefixes = ["/".join(parts[: i + 1]) for i in range(len(parts))]
    for pattern in patterns:
        cleaned = pattern.strip("/")
        if not cleaned:
            continue
        for prefix in prefixes:
            if fnmatch(prefix, cleaned):
                return True
    return False


def is_markdown(path: Path) -> bool:
    """True for .md and .markdown files."""
    return path.suffix.lower() in MARKDOWN_EXTENSIONS


def is_html(path: Path) -> bool:
    """True for .html and .htm files."""
    return path.suffix.lower() in HTML_EXTENSIONS


def is_content(path: Path) -> bool:
    """Check if a path is a renderable content file."""
    return is_markdown(path) or is_html(path)


def ensure_clean_dir(path: Path) -> None:
    """Leave ``path`` as an existing, empty directory.

    Args:
        path: Output directory; parents are created as needed.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # rmtree can leave entries behind on some filesystems
            leftovers = sorted(path.rglob("*"), key=lambda p: len(p.parts), reverse=True)
            for leftover in leftovers:
                if leftover.is_dir():
                    leftover.rmdir()
                else:
                    leftover.unlink()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)


def as_list(value) -> list[str]:
    """Normalize a front matter string-or-list value into a list of strings.

    Strings are split on whitespace, the way Jekyll treats
    ``categories: haskell folds``.

    Args:
        value: None, a string, or a list of scalars.

    Returns:
        List of non-empty strings, order preserved, duplicates removed.
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw = value.split()
    elif isinstance(value, list):
        raw = [str(v) for v in value if v is not None]
    else:
        raw = [str(value)]
    seen: list[str] = []
    for entry in raw:
        if entry and entry not in seen:
            seen.append(entry)
    return seen

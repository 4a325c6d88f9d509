"""Content discovery for Kiln.

This module walks the source tree, decides which files are content (pages,
posts, drafts) and which are static files, and builds ContentItem objects
from the content files.

Key classes:
- ContentItem: Dataclass representing one page or post.
- FileContentLoader: Finds content and static files under the source roots.
- DefaultItemBuilder: Builds ContentItem objects from source files.
- ContentRepository: Facade combining both; ``discover`` wraps it.

Conventions:
- Files and directories starting with ``_`` or ``.`` are internal and
  skipped, except ``_posts`` (posts) and ``_drafts`` (drafts, opt-in).
- Exclude patterns win unconditionally.
- A single unreadable file is recorded as a ContentReadError and skipped;
  an unreadable source root raises.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .errors import ContentReadError
from .extractors import (
    CompositeMetadataExtractor,
    FrontMatter,
    FrontMatterError,
    default_metadata_extractor,
)
from .utils import as_list, is_content, is_excluded, is_markdown, slugify, strip_date_prefix

logger = logging.getLogger(__name__)

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"


@dataclass
class ContentItem:
    """Represents a site page or post.

    Attributes:
        type: "pages", "posts", or "drafts".
        path: Absolute path to the source file.
        relative_path: POSIX path relative to its source root.
        front_matter: Parsed front matter mapping.
        body: Raw body text after the front matter block.
        title: Human-readable title.
        date: Publication date (posts) or file date (pages).
        slug: URL slug derived from front matter or filename.
        categories: Category names.
        tags: Tag names.
        source_type: "markdown" or "html".
    """

    type: str
    path: Path
    relative_path: str
    front_matter: FrontMatter
    body: str
    title: str
    date: datetime
    slug: str
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    source_type: str = "markdown"

    @property
    def is_post(self) -> bool:
        return self.type in ("posts", "drafts")

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class StaticFile:
    """A non-content file copied verbatim into the output."""

    path: Path
    relative_path: str


@dataclass
class Discovery:
    """Result of one discovery pass.

    Attributes:
        items: Content items in deterministic (sorted path) order.
        static_files: Files to copy verbatim.
        errors: Per-file read errors; discovery continued past them.
    """

    items: list[ContentItem] = field(default_factory=list)
    static_files: list[StaticFile] = field(default_factory=list)
    errors: list[ContentReadError] = field(default_factory=list)

    @property
    def posts(self) -> list[ContentItem]:
        return [item for item in self.items if item.is_post]

    @property
    def pages(self) -> list[ContentItem]:
        return [item for item in self.items if not item.is_post]


class FileContentLoader:
    """Finds content and static files below a source root.

    Attributes:
        root: Source root directory.
        exclude: Exclude glob patterns.
        include_drafts: Whether ``_drafts`` is scanned.
    """

    def __init__(
        self, root: Path, exclude: Iterable[str] = (), include_drafts: bool = False
    ):
        self.root = root
        self.exclude = tuple(exclude)
        self.include_drafts = include_drafts

    def iter_files(self) -> list[tuple[Path, str | None]]:
        """List files under the root with their content type.

        Returns:
            Sorted list of (path, type) where type is "pages", "posts",
            "drafts", or None for static files.

        Raises:
            ContentReadError: If the root is missing or unreadable.
        """
        if not self.root.is_dir():
            raise ContentReadError("Source root is not a readable directory", self.root)
        try:
            candidates = sorted(self.root.rglob("*"))
        except OSError as exc:
            raise ContentReadError(
                f"Cannot scan source root: {exc}", self.root, exc
            ) from exc

        files: list[tuple[Path, str | None]] = []
        for path in candidates:
            if path.is_dir():
                continue
            rel = path.relative_to(self.root).as_posix()
            if is_excluded(rel, self.exclude):
                continue
            kind = self._classify(path.relative_to(self.root))
            if kind == "skip":
                continue
            files.append((path, kind))
        return files

    def _classify(self, rel: Path) -> str | None:
        parts = rel.parts
        kind: str | None = None
        for part in parts[:-1]:
            if part == POSTS_DIR:
                kind = "posts"
            elif part == DRAFTS_DIR and self.include_drafts:
                kind = "drafts"
            elif part.startswith(("_", ".")):
                return "skip"
        if parts[-1].startswith(("_", ".")):
            return "skip"
        if not is_content(rel):
            # Static files inside _posts/_drafts are assets of those posts
            return None
        return kind or "pages"


class DefaultItemBuilder:
    """Builds ContentItem objects from source files.

    Attributes:
        root: Source root the relative paths are computed from.
        encoding: Text encoding of content files.
        metadata_extractor: Composite metadata extractor.
    """

    def __init__(
        self,
        root: Path,
        encoding: str = "utf-8",
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        self.root = root
        self.encoding = encoding
        self.metadata_extractor = metadata_extractor or default_metadata_extractor

    def build(self, path: Path, kind: str) -> ContentItem:
        """Build a ContentItem from a source file.

        Raises:
            ContentReadError: If the file cannot be read or its front
                matter is malformed.
        """
        rel = path.relative_to(self.root)
        try:
            raw = path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentReadError(f"Cannot read file: {exc}", path, exc) from exc
        try:
            metadata = self.metadata_extractor.extract(raw, path)
        except FrontMatterError as exc:
            raise ContentReadError(str(exc), path, exc) from exc

        front_matter: FrontMatter = metadata.get("frontmatter", {})
        categories = list(metadata.get("categories", []))
        if kind in ("posts", "drafts"):
            categories = list(
                dict.fromkeys(self._directory_categories(rel, kind) + categories)
            )
        slug_source = front_matter.get("slug")
        slug = slugify(
            str(slug_source) if slug_source else strip_date_prefix(path.stem)
        )
        return ContentItem(
            type=kind,
            path=path,
            relative_path=rel.as_posix(),
            front_matter=front_matter,
            body=metadata.get("body", raw),
            title=metadata.get("title", ""),
            date=metadata["date"],
            slug=slug,
            categories=categories,
            tags=as_list(metadata.get("tags")),
            source_type="markdown" if is_markdown(path) else "html",
        )

    def _directory_categories(self, rel: Path, kind: str) -> list[str]:
        marker = POSTS_DIR if kind == "posts" else DRAFTS_DIR
        parts = rel.parts
        index = parts.index(marker) if marker in parts else 0
        return [p for p in parts[:index] if not p.startswith(("_", "."))]


class ContentRepository:
    """Facade discovering content across one or more source roots."""

    def __init__(
        self,
        roots: Iterable[Path],
        exclude: Iterable[str] = (),
        include_drafts: bool = False,
        encoding: str = "utf-8",
    ):
        self.roots = list(roots)
        self.exclude = tuple(exclude)
        self.include_drafts = include_drafts
        self.encoding = encoding

    def discover(self) -> Discovery:
        """Scan all roots from disk.

        Each call rescans, so results never share identity with a
        previous pass.

        Raises:
            ContentReadError: If a root cannot be read.
        """
        result = Discovery()
        for root in self.roots:
            loader = FileContentLoader(root, self.exclude, self.include_drafts)
            builder = DefaultItemBuilder(root, self.encoding)
            for path, kind in loader.iter_files():
                rel = path.relative_to(root).as_posix()
                if kind is None:
                    result.static_files.append(StaticFile(path=path, relative_path=rel))
                    continue
                try:
                    item = builder.build(path, kind)
                except ContentReadError as exc:
                    logger.warning("Skipping %s: %s", rel, exc.message)
                    result.errors.append(exc)
                    continue
                result.items.append(item)
        logger.info(
            "Discovered %d items and %d static files",
            len(result.items),
            len(result.static_files),
        )
        return result


def discover(
    root_paths: Iterable[Path],
    exclude_patterns: Iterable[str] = (),
    include_drafts: bool = False,
    encoding: str = "utf-8",
) -> Discovery:
    """Discover content items below ``root_paths``.

    Args:
        root_paths: Source roots to scan.
        exclude_patterns: Glob patterns excluded unconditionally.
        include_drafts: Whether to include ``_drafts``.
        encoding: Text encoding of content files.

    Returns:
        A fresh Discovery.
    """
    repository = ContentRepository(root_paths, exclude_patterns, include_drafts, encoding)
    return repository.discover()

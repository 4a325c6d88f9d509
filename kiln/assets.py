"""Asset pipeline for Kiln.

Builds one AssetBundle per configured asset source directory. Stylesheets
and scripts are concatenated in path order and minified into a single
file; images, fonts and other files are processed one by one. With digests
enabled every output filename carries a content hash, so unchanged
content keeps its name across builds and any change produces a new one.

Key components:
- AssetBundle: One bundle's sources and digested outputs.
- AssetPipeline: Builds, writes and records bundles for a site.
- digest_name: Insert a content digest into a filename.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .asset_processors import (
    AssetProcessorRegistry,
    create_default_registry,
    minify_css,
    minify_js,
)
from .asset_resolver import AssetManifest
from .config import AssetsConfig
from .errors import AssetCompileError
from .utils import is_excluded

logger = logging.getLogger(__name__)

OUTPUT_PREFIX = "assets"
DIGEST_LENGTH = 16

_CATEGORY_ALIASES = {
    "stylesheets": "stylesheets",
    "styles": "stylesheets",
    "css": "stylesheets",
    "sass": "stylesheets",
    "javascripts": "javascripts",
    "scripts": "javascripts",
    "js": "javascripts",
    "images": "images",
    "img": "images",
    "fonts": "fonts",
}

STYLESHEET_EXTENSIONS = {".css", ".scss", ".sass"}
SCRIPT_EXTENSIONS = {".js"}


def category_for(directory: str) -> str:
    """Infer a bundle category from a source directory name."""
    name = PurePosixPath(directory.rstrip("/")).name.lower()
    return _CATEGORY_ALIASES.get(name, "files")


def content_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()[:DIGEST_LENGTH]


def digest_name(rel_path: str, data: bytes) -> str:
    """Insert the content digest before a path's extension.

    Examples:
        >>> digest_name("images/logo.png", b"x")[:12]
        'images/logo-'
    """
    path = PurePosixPath(rel_path)
    return path.with_name(f"{path.stem}-{content_digest(data)}{path.suffix}").as_posix()


@dataclass
class AssetBundle:
    """A named, ordered group of asset sources and their outputs.

    Attributes:
        name: Bundle name (``application`` for the first stylesheet or
            script bundle, otherwise the source directory name).
        category: "stylesheets", "javascripts", "images", "fonts", "files".
        sources: Source files in the order they were combined.
        outputs: Logical name to root-relative URL.
        digest: Digest of the combined output for concatenated bundles,
            None for per-file bundles or when digests are disabled.
        files: Output path (relative to the output dir) to content.
    """

    name: str
    category: str
    sources: tuple[Path, ...]
    outputs: dict[str, str] = field(default_factory=dict)
    digest: str | None = None
    files: dict[str, bytes] = field(default_factory=dict, repr=False)


class AssetPipeline:
    """Builds the site's asset bundles.

    Attributes:
        source_root: Site source directory the asset dirs are relative to.
        output_dir: Directory where processed assets are written.
        config: Asset settings.
        exclude: Exclude globs applied to asset sources.
        processor_registry: Registry of per-file asset processors.
    """

    def __init__(
        self,
        source_root: Path,
        output_dir: Path,
        config: AssetsConfig,
        exclude: tuple[str, ...] = (),
        processor_registry: AssetProcessorRegistry | None = None,
    ):
        self.source_root = source_root
        self.output_dir = output_dir
        self.config = config
        self.exclude = exclude
        self.processor_registry = processor_registry or create_default_registry(
            source_root
        )

    def bundle(
        self, source_dirs: tuple[str, ...] | None = None
    ) -> tuple[list[AssetBundle], list[AssetCompileError]]:
        """Build bundles in memory, one per source directory.

        A failing bundle is reported and skipped; the others still build.

        Args:
            source_dirs: Directories relative to the source root; defaults
                to the configured sources.

        Returns:
            Tuple of (bundles, errors).
        """
        dirs = self.config.sources if source_dirs is None else source_dirs
        bundles: list[AssetBundle] = []
        errors: list[AssetCompileError] = []
        claimed: set[str] = set()
        for directory in dirs:
            root = self.source_root / directory
            if not root.is_dir():
                logger.warning("Asset source %s does not exist; skipping", directory)
                continue
            category = category_for(directory)
            name = self._bundle_name(category, root, claimed)
            if name == "application":
                claimed.add(category)
            try:
                if category in ("stylesheets", "javascripts"):
                    built = self._build_concatenated(name, category, root)
                else:
                    built = self._build_files(name, category, root)
            except AssetCompileError as exc:
                logger.error("Asset bundle %r failed: %s", name, exc)
                errors.append(exc)
                continue
            bundles.append(built)
        return bundles, errors

    def run(self) -> tuple[list[AssetBundle], AssetManifest, list[AssetCompileError]]:
        """Build, write and record all bundles.

        Returns:
            Tuple of (bundles, manifest, errors).
        """
        bundles, errors = self.bundle()
        manifest = AssetManifest()
        for built in bundles:
            self.write(built)
            manifest.update(built.outputs)
        if bundles:
            manifest.write(self.output_dir)
        logger.info("Built %d asset bundles", len(bundles))
        return bundles, manifest, errors

    def write(self, built: AssetBundle) -> None:
        for rel, data in sorted(built.files.items()):
            target = self.output_dir / Path(*PurePosixPath(rel).parts)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

    def _sources(self, root: Path, extensions: set[str] | None = None) -> list[Path]:
        sources: list[Path] = []
        for path in sorted(root.rglob("*")):
            if not path.is_file() or path.name.startswith("."):
                continue
            rel = path.relative_to(self.source_root).as_posix()
            if is_excluded(rel, self.exclude):
                continue
            if extensions is not None and path.suffix.lower() not in extensions:
                continue
            sources.append(path)
        return sources

    def _build_concatenated(self, name: str, category: str, root: Path) -> AssetBundle:
        if category == "stylesheets":
            extensions, ext = STYLESHEET_EXTENSIONS, ".css"
        else:
            extensions, ext = SCRIPT_EXTENSIONS, ".js"
        # Sass partials are only pulled in through @import
        sources = [
            p for p in self._sources(root, extensions) if not p.name.startswith("_")
        ]
        parts = [self.processor_registry.process(p).decode("utf-8") for p in sources]
        if category == "stylesheets":
            text = minify_css("\n".join(parts), self.config.compress_css)
        else:
            text = minify_js(";\n".join(parts), self.config.compress_js)
        data = text.encode("utf-8")

        logical = f"{name}{ext}"
        rel = f"{OUTPUT_PREFIX}/{logical}"
        digest = None
        if self.config.digest:
            digest = content_digest(data)
            rel = digest_name(rel, data)
        return AssetBundle(
            name=name,
            category=category,
            sources=tuple(sources),
            outputs={logical: f"/{rel}"},
            digest=digest,
            files={rel: data},
        )

    def _build_files(self, name: str, category: str, root: Path) -> AssetBundle:
        sources = self._sources(root)
        built = AssetBundle(name=name, category=category, sources=tuple(sources))
        for path in sources:
            data = self.processor_registry.process(path)
            logical = f"{root.name}/{path.relative_to(root).as_posix()}"
            rel = f"{OUTPUT_PREFIX}/{logical}"
            if self.config.digest:
                rel = digest_name(rel, data)
            built.outputs[logical] = f"/{rel}"
            built.files[rel] = data
        return built

    @staticmethod
    def _bundle_name(category: str, root: Path, claimed: set[str]) -> str:
        if category in ("stylesheets", "javascripts") and category not in claimed:
            return "application"
        return root.name

"""Asset processors for Kiln.

Each processor turns one source asset file into output bytes. The asset
pipeline picks a processor per file from a priority-ordered registry and
then concatenates, minifies and digests the results per bundle.

Key classes:
- ImageProcessor: Re-encodes images with Pillow's optimizer.
- SassProcessor: Compiles .scss/.sass with the ``sass`` executable.
- TextAssetProcessor: Reads CSS and JavaScript sources as text.
- StaticAssetProcessor: Copies anything else byte for byte.
- AssetProcessorRegistry: Registry for managing asset processors.

Minification:
- minify_css: rcssmin.
- minify_js: rjsmin.
"""

from __future__ import annotations

import io
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

import rcssmin
import rjsmin
from PIL import Image, UnidentifiedImageError

from .errors import AssetCompileError

if TYPE_CHECKING:
    from .protocols import AssetProcessor

logger = logging.getLogger(__name__)


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Find an executable in PATH or the project's node_modules/.bin.

    Args:
        name: Name of the executable (e.g., 'sass').
        project_root: Optional project root for a local npm install.

    Returns:
        Full path to the executable if found, None otherwise.
    """
    found = shutil.which(name)
    if found:
        return found
    if project_root is not None:
        local = project_root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)
    return None


class BaseAssetProcessor(ABC):
    """Base class for per-file asset transforms.

    Subclasses handle one kind of source file and return its processed
    bytes; they never write output themselves.
    """

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        """Check if this processor can handle the given asset."""
        ...

    @abstractmethod
    def process(self, source: Path) -> bytes:
        """Return the output bytes for one asset source.

        Args:
            source: Source asset path.

        Returns:
            Processed content.

        Raises:
            AssetCompileError: If the asset cannot be processed.
        """
        ...

    def read_bytes(self, source: Path) -> bytes:
        try:
            return source.read_bytes()
        except OSError as exc:
            raise AssetCompileError(f"Cannot read asset: {exc}", source, exc) from exc


class ImageProcessor(BaseAssetProcessor):
    """Optimizes PNG, JPEG and WebP images with Pillow.

    Files Pillow cannot decode are passed through unchanged. JPEGs keep
    their original quality tables so re-encoding does not degrade them.
    """

    SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}

    @property
    def priority(self) -> int:
        return 100

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() in self.SUPPORTED_EXTENSIONS

    def process(self, source: Path) -> bytes:
        original = self.read_bytes(source)
        try:
            with Image.open(io.BytesIO(original)) as img:
                options = {"optimize": True}
                if img.format == "JPEG":
                    options["quality"] = "keep"
                buffer = io.BytesIO()
                img.save(buffer, format=img.format, **options)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            logger.debug("Image optimization skipped for %s: %s", source, exc)
            return original
        optimized = buffer.getvalue()
        return optimized if len(optimized) < len(original) else original


class SassProcessor(BaseAssetProcessor):
    """Compiles Sass sources using the ``sass`` CLI.

    The executable is looked up on PATH, then in the project's
    ``node_modules/.bin``.
    """

    SUPPORTED_EXTENSIONS = {".scss", ".sass"}

    def __init__(self, project_root: Path | None = None):
        self.project_root = project_root

    @property
    def priority(self) -> int:
        return 95

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() in self.SUPPORTED_EXTENSIONS

    def process(self, source: Path) -> bytes:
        sass_bin = find_executable("sass", self.project_root)
        if not sass_bin:
            raise AssetCompileError(
                "Sass compiler not found; install it with `npm install -g sass`",
                source,
            )
        cmd = [
            sass_bin,
            "--no-source-map",
            "--style=expanded",
            "--load-path",
            str(source.parent),
            str(source),
        ]
        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise AssetCompileError(
                f"Sass compilation failed: {result.stderr.strip()}", source
            )
        return result.stdout.encode("utf-8")


class TextAssetProcessor(BaseAssetProcessor):
    """Reads plain CSS and JavaScript sources, normalizing line endings."""

    SUPPORTED_EXTENSIONS = {".css", ".js"}

    @property
    def priority(self) -> int:
        return 90

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() in self.SUPPORTED_EXTENSIONS

    def process(self, source: Path) -> bytes:
        data = self.read_bytes(source)
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise AssetCompileError(
                "Asset is not valid UTF-8", source, exc
            ) from exc
        return text.replace("\r\n", "\n").encode("utf-8")


class StaticAssetProcessor(BaseAssetProcessor):
    """Fallback processor returning file contents unchanged."""

    @property
    def priority(self) -> int:
        return 0

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path) -> bytes:
        return self.read_bytes(source)


class AssetProcessorRegistry:
    """Registry for managing asset processors, highest priority first."""

    def __init__(self):
        self._processors: list[AssetProcessor] = []

    def register(self, processor: AssetProcessor) -> None:
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> AssetProcessor | None:
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path) -> bytes:
        """Process an asset using the first matching processor.

        Raises:
            AssetCompileError: If no processor accepts the file or the
                chosen processor fails.
        """
        processor = self.get_processor(source)
        if processor is None:
            raise AssetCompileError("No processor for asset", source)
        return processor.process(source)


def minify_css(text: str, compressor: str | None) -> str:
    """Minify CSS when a compressor is configured."""
    if not compressor:
        return text
    logger.debug("Minifying CSS (compressor: %s)", compressor)
    return rcssmin.cssmin(text)


def minify_js(text: str, compressor: str | None) -> str:
    """Minify JavaScript when a compressor is configured."""
    if not compressor:
        return text
    logger.debug("Minifying JavaScript (compressor: %s)", compressor)
    return rjsmin.jsmin(text)


def create_default_registry(project_root: Path | None = None) -> AssetProcessorRegistry:
    """Create a registry with the default processors."""
    registry = AssetProcessorRegistry()
    registry.register(ImageProcessor())
    registry.register(SassProcessor(project_root))
    registry.register(TextAssetProcessor())
    registry.register(StaticAssetProcessor())
    return registry

"""Protocol definitions for Kiln.

Registries accept any object satisfying these protocols, so new content
formats and metadata sources can be plugged in without touching the
built-in implementations.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ContentRenderer(Protocol):
    """Converts the body of one kind of source file into HTML."""

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file."""
        ...

    @abstractmethod
    def render(self, content: str, path: Path | None = None) -> str:
        """Render a body to HTML.

        Raises:
            RenderError: If the body cannot be rendered.
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown', 'html')."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Extracts one kind of metadata from a content file."""

    @abstractmethod
    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Extract metadata from raw file content."""
        ...


@runtime_checkable
class AssetProcessor(Protocol):
    """Turns one asset source file into output bytes."""

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        ...

    @abstractmethod
    def process(self, source: Path) -> bytes:
        ...

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

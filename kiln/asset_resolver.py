"""Asset path resolver for Kiln.

Templates refer to assets by logical name (``application.css``,
``images/logo.png``); the resolver maps those names to the digested URLs
produced by the asset pipeline.

Key classes:
- AssetManifest: Logical name to public URL mapping for one build.
- AssetNotFoundError: Raised when a template asks for an unknown asset.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

from .errors import RenderError

MANIFEST_PATH = "assets/manifest.json"


class AssetNotFoundError(RenderError):
    """Error raised when a template references an asset that was not built.

    Attributes:
        asset_name: The logical name that was requested.
        known: Logical names that were available.
    """

    def __init__(self, asset_name: str, known: Iterable[str] = ()):
        self.asset_name = asset_name
        self.known = sorted(known)
        super().__init__(f"asset '{asset_name}' not found")


class AssetManifest:
    """Resolves logical asset names to URLs.

    A name resolves if it matches a logical name exactly, or if it matches
    the part of a logical name after its category directory, so both
    ``images/logo.png`` and ``logo.png`` find the same file.

    Attributes:
        entries: Logical name to root-relative URL.
    """

    def __init__(
        self,
        entries: Mapping[str, str] | None = None,
        url_generator: Callable[[str], str] | None = None,
    ):
        self.entries: dict[str, str] = dict(entries or {})
        self._url_generator = url_generator or (lambda x: x)

    def set_url_generator(self, url_generator: Callable[[str], str]) -> None:
        self._url_generator = url_generator

    def add(self, logical: str, url: str) -> None:
        self.entries[logical] = url

    def update(self, entries: Mapping[str, str]) -> None:
        self.entries.update(entries)

    def resolve(self, name: str) -> str:
        """Resolve a logical asset name to its URL.

        Raises:
            AssetNotFoundError: If no built asset has that name.
        """
        key = name.lstrip("/")
        if key.startswith("assets/"):
            key = key[len("assets/") :]
        if key in self.entries:
            return self._url_generator(self.entries[key])
        for logical in sorted(self.entries):
            _, _, short = logical.partition("/")
            if short == key:
                return self._url_generator(self.entries[logical])
        raise AssetNotFoundError(name, self.entries)

    def write(self, output_dir: Path) -> Path:
        """Write the manifest as JSON into the output directory."""
        target = output_dir / MANIFEST_PATH
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            json.dumps(self.entries, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return target

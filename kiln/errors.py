"""Error hierarchy for Kiln.

All Kiln-specific errors inherit from KilnError so callers can catch the
whole family at once. Each error may carry the path of the source file it
concerns, which the CLI uses when reporting failures.

Fatal errors:
- ConfigParseError / ConfigValidationError: raised before any build work.
- ContentReadError: when a declared source root cannot be read.

Non-fatal errors (collected into the build report):
- ContentReadError: a single unreadable content file.
- RenderError: one item failed to render.
- AssetCompileError: one asset bundle failed to build.
"""

from __future__ import annotations

from pathlib import Path


class KilnError(Exception):
    """Base error for all Kiln operations.

    Attributes:
        message: Human-readable error message.
        source_path: Optional path to the file that caused the error.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        source_path: Path | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.source_path = source_path
        self.original_error = original_error
        if source_path is not None:
            super().__init__(f"{source_path}: {message}")
        else:
            super().__init__(message)


class ConfigError(KilnError):
    """Invalid or unusable site configuration."""


class ConfigParseError(ConfigError):
    """The configuration descriptor is not well-formed YAML mapping."""


class ConfigValidationError(ConfigError):
    """The configuration parsed but a value has the wrong shape."""


class ContentReadError(KilnError):
    """A content file or source root could not be read or parsed."""


class RenderError(KilnError):
    """A content item could not be rendered."""


class AssetCompileError(KilnError):
    """An asset bundle could not be compiled."""

"""Site configuration for Kiln.

Parses a Jekyll-style ``_config.yml`` descriptor into an immutable
SiteConfig. Validation is lenient: missing keys take built-in defaults,
only values of the wrong shape are rejected.

Key objects:
- SiteConfig: Frozen record of all site-wide settings for one build.
- DefaultRule / Scope: Ordered front matter defaults keyed by scope.
- load_config: Load the descriptor from disk.
- parse_config: Parse descriptor text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigParseError, ConfigValidationError
from .extractors import FrontMatter, FrontMatterError, coerce_mapping

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "_config.yml"

DEFAULT_PERMALINK = "/:categories/:year/:month/:day/:title/"

BUILTIN_EXCLUDES = ("_site", ".git", ".sass-cache", "node_modules", "_config.yml")

ARCHIVE_TYPES = ("year", "month", "day", "categories", "tags")

# Archive permalinks are keyed by singular names in jekyll-archives
DEFAULT_ARCHIVE_PERMALINKS = {
    "year": "/:year/",
    "month": "/:year/:month/",
    "day": "/:year/:month/:day/",
    "category": "/category/:name/",
    "tag": "/tag/:name/",
}

MARKDOWN_INPUTS = ("GFM", "kramdown")
SYNTAX_HIGHLIGHTERS = ("rouge", "pygments", "none")

_KNOWN_KEYS = {
    "name",
    "url",
    "baseurl",
    "permalink",
    "default_lang",
    "exclude_from_localization",
    "encoding",
    "plugins",
    "markdown",
    "kramdown",
    "exclude",
    "assets",
    "sitemap",
    "jekyll-archives",
    "archives",
    "defaults",
    "source",
    "destination",
}


@dataclass(frozen=True)
class Scope:
    """Predicate selecting the content items a DefaultRule applies to.

    Attributes:
        path: Path prefix relative to the source root; empty matches all.
        type: Content type ("pages", "posts", "drafts"); None matches all.
    """

    path: str = ""
    type: str | None = None


@dataclass(frozen=True)
class DefaultRule:
    """A (scope, values) pair from the ``defaults`` list."""

    scope: Scope
    values: FrontMatter

    @property
    def layout(self) -> str | None:
        value = self.values.get("layout")
        return str(value) if value not in (None, "") else None


@dataclass(frozen=True)
class MarkdownOptions:
    input: str = "GFM"
    syntax_highlighter: str = "rouge"


@dataclass(frozen=True)
class AssetsConfig:
    """Asset pipeline settings.

    Attributes:
        compress_css: CSS compressor id, or None to leave CSS unminified.
        compress_js: JS compressor id, or None to leave JS unminified.
        digest: Whether output filenames carry a content digest.
        sources: Asset source directories, in declaration order.
    """

    compress_css: str | None = None
    compress_js: str | None = None
    digest: bool = False
    sources: tuple[str, ...] = ()


@dataclass(frozen=True)
class SitemapConfig:
    file: str = "/sitemap.xml"
    include_posts: tuple[str, ...] = ()
    change_frequency_name: str = "change_frequency"
    priority_name: str = "priority"


@dataclass(frozen=True)
class ArchivesConfig:
    """Archive page settings.

    Attributes:
        enabled: Archive types to generate, from ARCHIVE_TYPES.
        layout: Layout used for every archive page.
        permalinks: Permalink template per singular archive type.
    """

    enabled: tuple[str, ...] = ()
    layout: str = "archive"
    permalinks: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_ARCHIVE_PERMALINKS)
    )


@dataclass(frozen=True)
class SiteConfig:
    """Immutable record of site-wide settings for a single build."""

    name: str = ""
    url: str = ""
    baseurl: str = ""
    permalink: str = DEFAULT_PERMALINK
    default_lang: str = "en"
    exclude_from_localization: tuple[str, ...] = ()
    encoding: str = "utf-8"
    plugins: tuple[str, ...] = ()
    markdown: str = "kramdown"
    kramdown: MarkdownOptions = field(default_factory=MarkdownOptions)
    exclude: tuple[str, ...] = ()
    assets: AssetsConfig = field(default_factory=AssetsConfig)
    sitemap: SitemapConfig = field(default_factory=SitemapConfig)
    archives: ArchivesConfig = field(default_factory=ArchivesConfig)
    defaults: tuple[DefaultRule, ...] = ()
    source: str = "."
    destination: str = "_site"
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def excludes(self) -> tuple[str, ...]:
        """User excludes plus the built-in ones."""
        return tuple(dict.fromkeys(self.exclude + BUILTIN_EXCLUDES))

    def has_plugin(self, name: str) -> bool:
        return name in self.plugins

    def with_overrides(self, **overrides: Any) -> SiteConfig:
        """Return a copy with the given non-None fields replaced."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def template_vars(self) -> dict[str, Any]:
        """Flatten the config into the mapping templates see as ``site``."""
        data: dict[str, Any] = dict(self.extra)
        data.update(
            {
                "name": self.name,
                "title": self.extra.get("title", self.name),
                "url": self.url,
                "baseurl": self.baseurl,
                "permalink": self.permalink,
                "default_lang": self.default_lang,
                "lang": self.default_lang,
                "encoding": self.encoding,
                "plugins": list(self.plugins),
                "markdown": self.markdown,
            }
        )
        return data


def load_config(path: Path) -> SiteConfig:
    """Load site configuration from a descriptor file.

    A missing file yields the built-in defaults.

    Args:
        path: Path to ``_config.yml``.

    Returns:
        Parsed SiteConfig.

    Raises:
        ConfigParseError: If the file is unreadable or malformed.
        ConfigValidationError: If a value has the wrong shape.
    """
    if not path.exists():
        logger.info("No configuration at %s; using defaults", path)
        return SiteConfig()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigParseError(
            f"Cannot read configuration: {exc}", path, exc
        ) from exc
    return parse_config(text, path)


def parse_config(text: str, path: Path | None = None) -> SiteConfig:
    """Parse descriptor text into a SiteConfig.

    Args:
        text: YAML document.
        path: Optional source path for error messages.

    Returns:
        Parsed SiteConfig.

    Raises:
        ConfigParseError: On malformed YAML (including impossible dates) or
            a non-mapping document.
        ConfigValidationError: If a value has the wrong shape.
    """
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" (line {mark.line + 1}, column {mark.column + 1})" if mark else ""
        raise ConfigParseError(f"Malformed YAML{where}", path, exc) from exc
    except ValueError as exc:
        raise ConfigParseError(f"Malformed YAML: {exc}", path, exc) from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigParseError("Configuration must be a mapping", path)

    kramdown = _mapping(raw, "kramdown", path)
    assets = _mapping(raw, "assets", path)
    compress = _mapping(assets, "compress", path, prefix="assets.")
    sitemap = _mapping(raw, "sitemap", path)
    archive_key = "jekyll-archives" if "jekyll-archives" in raw else "archives"
    archives = _mapping(raw, archive_key, path)

    markdown_input = _string(kramdown, "input", "GFM", path, prefix="kramdown.")
    if markdown_input.lower() not in {m.lower() for m in MARKDOWN_INPUTS}:
        raise ConfigValidationError(
            f"kramdown.input must be one of {', '.join(MARKDOWN_INPUTS)}, "
            f"got {markdown_input!r}",
            path,
        )
    highlighter = kramdown.get("syntax_highlighter", "rouge")
    if highlighter in (None, False):
        highlighter = "none"
    highlighter = str(highlighter).lower()
    if highlighter not in SYNTAX_HIGHLIGHTERS:
        raise ConfigValidationError(
            f"kramdown.syntax_highlighter must be one of "
            f"{', '.join(SYNTAX_HIGHLIGHTERS)}, got {highlighter!r}",
            path,
        )

    digest = assets.get("digest", False)
    if not isinstance(digest, bool):
        raise ConfigValidationError("assets.digest must be a boolean", path)

    config = SiteConfig(
        name=_string(raw, "name", "", path),
        url=_string(raw, "url", "", path).rstrip("/"),
        baseurl=_string(raw, "baseurl", "", path).rstrip("/"),
        permalink=_string(raw, "permalink", DEFAULT_PERMALINK, path),
        default_lang=_string(raw, "default_lang", "en", path),
        exclude_from_localization=_strings(raw, "exclude_from_localization", path),
        encoding=_string(raw, "encoding", "utf-8", path),
        plugins=_strings(raw, "plugins", path),
        markdown=_string(raw, "markdown", "kramdown", path),
        kramdown=MarkdownOptions(
            input="kramdown" if markdown_input.lower() == "kramdown" else "GFM",
            syntax_highlighter=highlighter,
        ),
        exclude=_strings(raw, "exclude", path),
        assets=AssetsConfig(
            compress_css=_optional_string(compress, "css"),
            compress_js=_optional_string(compress, "js"),
            digest=digest,
            sources=_strings(assets, "sources", path, prefix="assets."),
        ),
        sitemap=SitemapConfig(
            file="/" + _string(sitemap, "file", "/sitemap.xml", path).lstrip("/"),
            include_posts=_strings(sitemap, "include_posts", path, prefix="sitemap."),
            change_frequency_name=_string(
                sitemap, "change_frequency_name", "change_frequency", path
            ),
            priority_name=_string(sitemap, "priority_name", "priority", path),
        ),
        archives=_parse_archives(archives, archive_key, path),
        defaults=_parse_defaults(raw.get("defaults"), path),
        source=_string(raw, "source", ".", path),
        destination=_string(raw, "destination", "_site", path),
        extra={k: v for k, v in raw.items() if k not in _KNOWN_KEYS},
    )
    logger.debug(
        "Loaded configuration: %d plugins, %d default rules",
        len(config.plugins),
        len(config.defaults),
    )
    return config


def _parse_archives(
    block: dict[str, Any], key: str, path: Path | None
) -> ArchivesConfig:
    enabled = _strings(block, "enabled", path, prefix=f"{key}.")
    for kind in enabled:
        if kind not in ARCHIVE_TYPES:
            raise ConfigValidationError(
                f"{key}.enabled: unknown archive type {kind!r}", path
            )
    permalinks = dict(DEFAULT_ARCHIVE_PERMALINKS)
    for name, template in _mapping(block, "permalinks", path, prefix=f"{key}.").items():
        if not isinstance(template, str):
            raise ConfigValidationError(
                f"{key}.permalinks.{name} must be a string", path
            )
        permalinks[str(name)] = template
    return ArchivesConfig(
        enabled=enabled,
        layout=_string(block, "layout", "archive", path, prefix=f"{key}."),
        permalinks=permalinks,
    )


def _parse_defaults(entries: Any, path: Path | None) -> tuple[DefaultRule, ...]:
    if entries is None:
        return ()
    if not isinstance(entries, list):
        raise ConfigValidationError("defaults must be a sequence", path)
    rules: list[DefaultRule] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigValidationError(f"defaults[{index}] must be a mapping", path)
        scope = entry.get("scope") or {}
        values = entry.get("values")
        if not isinstance(scope, dict):
            raise ConfigValidationError(
                f"defaults[{index}].scope must be a mapping", path
            )
        if not isinstance(values, dict):
            raise ConfigValidationError(
                f"defaults[{index}].values must be a mapping", path
            )
        scope_type = scope.get("type")
        try:
            coerced = coerce_mapping(values)
        except FrontMatterError as exc:
            raise ConfigValidationError(
                f"defaults[{index}].values: {exc}", path, exc
            ) from exc
        rules.append(
            DefaultRule(
                scope=Scope(
                    path=str(scope.get("path") or "").strip("/"),
                    type=str(scope_type) if scope_type else None,
                ),
                values=coerced,
            )
        )
    return tuple(rules)


def _mapping(
    raw: dict[str, Any], key: str, path: Path | None, prefix: str = ""
) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigValidationError(f"{prefix}{key} must be a mapping", path)
    return value


def _string(
    raw: dict[str, Any], key: str, default: str, path: Path | None, prefix: str = ""
) -> str:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigValidationError(f"{prefix}{key} must be a string", path)
    return str(value)


def _optional_string(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value in (None, False, ""):
        return None
    return str(value)


def _strings(
    raw: dict[str, Any], key: str, path: Path | None, prefix: str = ""
) -> tuple[str, ...]:
    value = raw.get(key)
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        raise ConfigValidationError(f"{prefix}{key} must be a sequence", path)
    return tuple(str(v) for v in value if v is not None)

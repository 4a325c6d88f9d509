"""Front matter parsing and metadata extractors for Kiln.

Front matter values form a closed union: strings, numbers, booleans,
None, lists of values, and string-keyed mappings of values. YAML dates are
normalized to ISO-8601 strings at parse time so nothing outside the union
reaches the rest of the pipeline.

Key objects:
- extract_frontmatter: Split a source file into (front matter, body).
- coerce_value / coerce_mapping: Validate raw YAML into the value union.
- TitleExtractor, DateExtractor, TaxonomyExtractor: Per-field extractors.
- CompositeMetadataExtractor: Runs all extractors and merges their output.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

import yaml

from .utils import as_list, extract_date_from_name, titleize

if TYPE_CHECKING:
    from .protocols import MetadataExtractor

FrontMatterValue = Union[
    str,
    int,
    float,
    bool,
    None,
    list["FrontMatterValue"],
    dict[str, "FrontMatterValue"],
]
FrontMatter = dict[str, FrontMatterValue]

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


class FrontMatterError(ValueError):
    """Front matter is malformed or holds a value outside the union."""


def coerce_value(value: Any, key: str = "") -> FrontMatterValue:
    """Validate a raw YAML value into the front matter value union.

    Args:
        value: Value produced by ``yaml.safe_load``.
        key: Dotted key path, used in error messages.

    Returns:
        The value, with dates converted to ISO-8601 strings.

    Raises:
        FrontMatterError: If the value has an unsupported type.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list):
        return [coerce_value(v, f"{key}[{i}]") for i, v in enumerate(value)]
    if isinstance(value, dict):
        return coerce_mapping(value, key)
    raise FrontMatterError(
        f"unsupported value for {key or 'front matter'}: {type(value).__name__}"
    )


def coerce_mapping(raw: dict[Any, Any], prefix: str = "") -> FrontMatter:
    """Validate a raw YAML mapping into a front matter mapping."""
    result: FrontMatter = {}
    for k, v in raw.items():
        name = str(k)
        result[name] = coerce_value(v, f"{prefix}.{name}" if prefix else name)
    return result


def extract_frontmatter(text: str) -> tuple[FrontMatter, str]:
    """Extract YAML front matter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front matter dict, remaining body). Files without a
        leading ``---`` block return an empty mapping and the full text.

    Raises:
        FrontMatterError: If the block is not valid YAML or not a mapping.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1) or "")
    except (yaml.YAMLError, ValueError) as exc:
        # PyYAML reports impossible timestamps as a plain ValueError
        raise FrontMatterError(f"invalid front matter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError("front matter must be a mapping")
    return coerce_mapping(data), text[match.end() :]


class FrontmatterExtractor:
    """Splits YAML front matter from the body."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, body = extract_frontmatter(content)
        return {"frontmatter": frontmatter, "body": body}


class TitleExtractor:
    """Extracts the title.

    Front matter ``title`` wins, then the first level-1 heading in the
    body, then the titleized filename.
    """

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, body = extract_frontmatter(content)
        title = frontmatter.get("title")
        if title not in (None, ""):
            return {"title": str(title)}
        for line in body.splitlines():
            stripped = line.strip()
            if stripped.startswith("# "):
                return {"title": stripped[2:].strip()}
        return {"title": titleize(path.name)}


class DateExtractor:
    """Extracts the date from front matter, filename prefix, or mtime."""

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, _ = extract_frontmatter(content)
        raw = frontmatter.get("date")
        if isinstance(raw, str):
            parsed = _parse_date(raw)
            if parsed is not None:
                return {"date": parsed}
        found = extract_date_from_name(path.stem)
        if found is None:
            found = datetime.fromtimestamp(int(path.stat().st_mtime))
        return {"date": found}


class TaxonomyExtractor:
    """Extracts categories and tags from front matter.

    Accepts both plural and singular keys (``categories``/``category``,
    ``tags``/``tag``), as strings split on whitespace or as lists.
    """

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        frontmatter, _ = extract_frontmatter(content)
        categories = as_list(frontmatter.get("categories")) + as_list(
            frontmatter.get("category")
        )
        tags = as_list(frontmatter.get("tags")) + as_list(frontmatter.get("tag"))
        return {
            "categories": list(dict.fromkeys(categories)),
            "tags": list(dict.fromkeys(tags)),
        }


class CompositeMetadataExtractor:
    """Runs a chain of extractors, later results overriding earlier ones."""

    def __init__(self, extractors: list[MetadataExtractor] | None = None):
        if extractors is None:
            self._extractors = [
                FrontmatterExtractor(),
                TitleExtractor(),
                DateExtractor(),
                TaxonomyExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor: MetadataExtractor) -> None:
        self._extractors.append(extractor)

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Merge the metadata of every extractor in the chain.

        Raises:
            FrontMatterError: If the front matter block is malformed.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(content, path))
        return result


def _parse_date(value: str) -> datetime | None:
    text = value.strip()
    for fmt in (
        "%Y-%m-%d %H:%M:%S%z",
        "%Y-%m-%d %H:%M:%S %z",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d %H:%M",
        "%Y-%m-%d",
    ):
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


default_metadata_extractor = CompositeMetadataExtractor()

"""Layout and front matter default resolution for Kiln.

Rules from the ``defaults`` list are tried in declaration order and the
first one whose scope matches wins. There is no most-specific-match
ranking: when two rules both match, the earlier one is used.

Key objects:
- scope_matches: Test a single rule scope against an item.
- resolve: Pick the layout name for an item.
- resolve_values: Merge an item's front matter over its matching defaults.
- LayoutResolver: Binds a rule list and fallback for repeated use.
"""

from __future__ import annotations

from collections.abc import Sequence

from .config import DefaultRule, Scope
from .content import ContentItem
from .extractors import FrontMatter

FALLBACK_LAYOUT = "default"


def scope_matches(scope: Scope, item: ContentItem) -> bool:
    """Check whether a rule scope selects ``item``.

    The path matches if it is empty or a leading run of whole path
    segments of the item's relative path. The type matches if it is unset
    or equal to the item's type.
    """
    if scope.type and scope.type != item.type:
        return False
    prefix = scope.path.strip("/")
    if not prefix:
        return True
    rel = item.relative_path
    return rel == prefix or rel.startswith(prefix + "/")


def resolve(
    item: ContentItem,
    rules: Sequence[DefaultRule],
    fallback: str = FALLBACK_LAYOUT,
) -> str:
    """Resolve the layout for a content item.

    A ``layout`` in the item's own front matter wins. Otherwise the first
    matching rule that sets a layout is used, else ``fallback``.

    Args:
        item: Content item to resolve.
        rules: Default rules in declaration order.
        fallback: Layout used when nothing matches.

    Returns:
        Exactly one layout name.
    """
    override = item.front_matter.get("layout")
    if isinstance(override, str) and override:
        return override
    for rule in rules:
        if rule.layout and scope_matches(rule.scope, item):
            return rule.layout
    return fallback


def resolve_values(
    item: ContentItem,
    rules: Sequence[DefaultRule],
    fallback: str = FALLBACK_LAYOUT,
) -> FrontMatter:
    """Return the item's front matter merged over the first matching rule."""
    merged: FrontMatter = {}
    for rule in rules:
        if scope_matches(rule.scope, item):
            merged.update(rule.values)
            break
    merged.update(item.front_matter)
    merged["layout"] = resolve(item, rules, fallback)
    return merged


class LayoutResolver:
    """Resolves layouts against a fixed rule list.

    Attributes:
        rules: Default rules in declaration order.
        fallback: Layout used when no rule matches.
    """

    def __init__(self, rules: Sequence[DefaultRule], fallback: str = FALLBACK_LAYOUT):
        self.rules = tuple(rules)
        self.fallback = fallback

    def resolve(self, item: ContentItem) -> str:
        return resolve(item, self.rules, self.fallback)

    def values(self, item: ContentItem) -> FrontMatter:
        return resolve_values(item, self.rules, self.fallback)

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import datetime
from typing import Any

PageVars = dict[str, Any]


class ItemCollection(Sequence[PageVars]):
    """Lightweight helper for working with lists of page variables in templates."""

    def __init__(self, items: Iterable[PageVars]):
        self._items = list(items)

    def __iter__(self) -> Iterator[PageVars]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, item):
        return self._items[item]

    def with_tag(self, tag: str) -> ItemCollection:
        return ItemCollection(p for p in self._items if tag in p.get("tags", []))

    def in_category(self, category: str) -> ItemCollection:
        return ItemCollection(
            p for p in self._items if category in p.get("categories", [])
        )

    def sorted(self, reverse: bool = True) -> ItemCollection:
        """Sort by date, then URL, newest first unless ``reverse`` is False.

        The URL tie-break keeps same-day posts in a stable order across builds.
        """

        def sort_key(p: PageVars):
            date = p.get("date")
            return (date if isinstance(date, datetime) else datetime.min, p.get("url", ""))

        return ItemCollection(sorted(self._items, key=sort_key, reverse=reverse))

    def latest(self, count: int = 5) -> ItemCollection:
        return ItemCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"ItemCollection({len(self._items)} items)"


class TaxonomyCollection(Mapping[str, ItemCollection]):
    """Mapping of category or tag name to its posts, newest first."""

    def __init__(self, mapping: Mapping[str, Iterable[PageVars]]):
        self._mapping = {
            k: ItemCollection(v).sorted() for k, v in sorted(mapping.items())
        }

    def __getitem__(self, key: str) -> ItemCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TaxonomyCollection({len(self._mapping)} names)"

"""
Search index over the searchable geographic units.

Built once from the raw ``[id, name, minLng, minLat, maxLng, maxLat]`` rows
of the search configuration, then read-only.
"""

from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from lode.configs.logging_init import logger
from lode.core.events import SEARCH_SELECTED, Evented
from lode.models.search import SearchItem


class SearchIndex(Evented):
    def __init__(self, rows: Iterable[Sequence[Any]]):
        super().__init__()
        items: dict[str, SearchItem] = {}
        skipped = 0
        for row in rows:
            try:
                item = SearchItem.from_row(row)
            except ValueError as e:
                skipped += 1
                logger.warning(f"Skipping invalid search row {row!r}: {e}")
                continue
            items[item.id] = item
        self._items = items
        logger.debug(f"Search index built with {len(items)} items ({skipped} skipped)")

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[SearchItem]:
        return iter(self._items.values())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> SearchItem | None:
        return self._items.get(str(item_id))

    def find(self, text: str, limit: int = 10) -> list[SearchItem]:
        """Typeahead lookup: ids starting with ``text`` first, then label matches."""
        needle = text.strip().casefold()
        if not needle:
            return []
        by_id = [item for item in self._items.values() if item.id.casefold().startswith(needle)]
        seen = {item.id for item in by_id}
        by_label = [
            item
            for item in self._items.values()
            if item.id not in seen and needle in item.label.casefold()
        ]
        return (by_id + by_label)[:limit]

    def select(self, item_id: str) -> SearchItem | None:
        """Resolve ``item_id`` and raise ``SearchSelected`` when it exists."""
        item = self.get(item_id)
        if item is None:
            logger.warning(f"Search selection ignored: unknown item '{item_id}'")
            return None
        self.emit(SEARCH_SELECTED, item)
        return item

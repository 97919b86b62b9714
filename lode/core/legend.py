"""
Legend controller.

Holds the enabled/color state of the legend entries of the active map only.
Every toggle raises ``LegendChanged`` with a full snapshot of the entries so
that downstream styling is always recomputed from the total state.
"""

from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Any

from lode.configs.logging_init import logger
from lode.core.events import LEGEND_CHANGED, Evented
from lode.models.map_definition import LegendItemSpec
from lode.models.styling import RGBA


@dataclass(frozen=True)
class LegendEntry:
    id: int
    label: str
    color: RGBA
    value: Any = None
    enabled: bool = True


class LegendController(Evented):
    def __init__(self, spec: Sequence[LegendItemSpec] = (), title: str = "", subtitle: str = ""):
        super().__init__()
        self.title = title
        self.subtitle = subtitle
        self._entries: tuple[LegendEntry, ...] = ()
        self._load(spec)

    @property
    def entries(self) -> tuple[LegendEntry, ...]:
        return self._entries

    def _load(self, spec: Sequence[LegendItemSpec]) -> None:
        self._entries = tuple(
            LegendEntry(id=i, label=item.label, color=item.color, value=item.value)
            for i, item in enumerate(spec)
        )

    def reload(self, spec: Sequence[LegendItemSpec], title: str = "", subtitle: str = "") -> None:
        """Replace every entry with a fresh, all-enabled set built from ``spec``."""
        self.title = title
        self.subtitle = subtitle
        self._load(spec)
        logger.debug(f"Legend reloaded with {len(self._entries)} entries ('{title}')")

    def toggle(self, entry_id: int) -> tuple[LegendEntry, ...]:
        """Flip one entry and emit the full state snapshot."""
        entry = self._get(entry_id)
        return self.set_enabled(entry_id, not entry.enabled)

    def set_enabled(self, entry_id: int, enabled: bool) -> tuple[LegendEntry, ...]:
        entry = self._get(entry_id)
        if entry.enabled != enabled:
            self._entries = tuple(
                replace(e, enabled=enabled) if e.id == entry_id else e for e in self._entries
            )
            self.emit(LEGEND_CHANGED, self._entries)
        return self._entries

    def _get(self, entry_id: int) -> LegendEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise KeyError(f"Legend entry not found: {entry_id}")

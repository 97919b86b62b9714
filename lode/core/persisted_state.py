"""
Persisted view state.

The session view (active map, center, zoom, opacity) survives reloads through
a key/value store. ``PersistedViewState`` is the only writer: each typed
setter writes through to the store immediately.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from lode.configs.logging_init import logger
from lode.models.view_state import ViewState

ACTIVE_MAP_ID = "activeMapId"
CENTER_LAT = "centerLat"
CENTER_LNG = "centerLng"
ZOOM_LEVEL = "zoomLevel"
OPACITY_LEVEL = "opacityLevel"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """Non-durable store, used in tests and when no state file is configured."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def as_dict(self) -> dict[str, Any]:
        return dict(self._data)


class JsonFileStore:
    """Store backed by a JSON file, rewritten atomically on every ``set``."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._data = self._read()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable view state file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring view state file {self.path}: expected a JSON object")
            return {}
        return data

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise


class PersistedViewState:
    """Typed access to the five persisted view keys, with per-key defaults."""

    def __init__(
        self,
        store: KeyValueStore,
        default_center: tuple[float, float] = (60.0, -96.0),
        default_zoom: float = 3.0,
        default_opacity: float = 0.75,
    ):
        self._store = store
        self._default_lat, self._default_lng = default_center
        self._default_zoom = default_zoom
        self._default_opacity = default_opacity

    def _number(self, key: str, default: float) -> float:
        value = self._store.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(f"Persisted '{key}' is not a number ({value!r}); using {default}")
            return default

    @property
    def active_map_id(self) -> str | None:
        value = self._store.get(ACTIVE_MAP_ID)
        return str(value) if value is not None else None

    @active_map_id.setter
    def active_map_id(self, map_id: str) -> None:
        self._store.set(ACTIVE_MAP_ID, map_id)

    @property
    def center(self) -> tuple[float, float]:
        """``(lat, lng)`` of the last settled pan."""
        return (
            self._number(CENTER_LAT, self._default_lat),
            self._number(CENTER_LNG, self._default_lng),
        )

    @center.setter
    def center(self, lat_lng: tuple[float, float]) -> None:
        lat, lng = lat_lng
        self._store.set(CENTER_LAT, float(lat))
        self._store.set(CENTER_LNG, float(lng))

    @property
    def zoom_level(self) -> float:
        return self._number(ZOOM_LEVEL, self._default_zoom)

    @zoom_level.setter
    def zoom_level(self, level: float) -> None:
        self._store.set(ZOOM_LEVEL, float(level))

    @property
    def opacity_level(self) -> float:
        return min(max(self._number(OPACITY_LEVEL, self._default_opacity), 0.0), 1.0)

    @opacity_level.setter
    def opacity_level(self, level: float) -> None:
        self._store.set(OPACITY_LEVEL, min(max(float(level), 0.0), 1.0))

    def snapshot(self) -> ViewState:
        lat, lng = self.center
        return ViewState(
            active_map_id=self.active_map_id,
            center_lat=lat,
            center_lng=lng,
            zoom_level=self.zoom_level,
            opacity_level=self.opacity_level,
        )

"""
Test doubles: a two-map catalog, a recording render engine whose style
loads are completed by the test, and a dataset fetcher whose responses are
released by the test.
"""

import asyncio
from collections.abc import Sequence
from typing import Any

from lode.core.legend import LegendController
from lode.core.map_controller import Feature, MapController, MapPoint
from lode.core.nls import NlsCatalog
from lode.core.persisted_state import MemoryStore, PersistedViewState
from lode.core.search_index import SearchIndex
from lode.core.table_binding import TableBinding
from lode.core.view_sync import ViewSyncController
from lode.models.map_definition import MapConfigCatalog
from lode.models.search import SearchConfig
from lode.models.styling import StylingDirective

# ============================================================================
# Configuration
# ============================================================================

CSD_GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "id": "2410",
            "properties": {"csduid": "2410", "name": "Sample", "income": 72000},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-74, 45], [-73, 45], [-73, 46], [-74, 46], [-74, 45]]],
            },
        },
        {
            "type": "Feature",
            "id": "2411",
            "properties": {"csduid": "2411", "name": "Other", "income": 45000},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-73, 45], [-72, 45], [-72, 46], [-73, 46], [-73, 45]]],
            },
        },
    ],
}

RAW_MAPS = {
    "A": {
        "title": "Income",
        "subtitle": "2021",
        "style": "style-a",
        "dataSources": [{"name": "csd", "data": {"type": "geojson", "data": CSD_GEOJSON}}],
        "layers": [{"id": "csd-fill", "type": "fill", "source": "csd"}],
        "legend": [
            {"label": "Low", "color": [255, 237, 160, 1], "value": ["<", ["get", "income"], 60000]},
            {"label": "High", "color": [240, 59, 32, 1], "value": [">=", ["get", "income"], 60000]},
        ],
        "fields": [{"id": "name", "label": "Name"}],
        "clickableLayers": ["csd-fill"],
        "tableUrl": "a.json",
    },
    "B": {
        "title": "Growth",
        "style": "style-b",
        "dataSources": [{"name": "csd", "data": {"type": "geojson", "data": CSD_GEOJSON}}],
        "layers": [
            {"id": "csd-fill", "type": "fill", "source": "csd"},
            {"id": "csd-line", "type": "line", "source": "csd"},
        ],
        "legend": [
            {"label": "Decline", "color": [44, 123, 182, 1], "value": ["<", ["get", "growth"], 0]},
            {"label": "Growth", "color": [215, 25, 28, 1], "value": [">=", ["get", "growth"], 0]},
            {"label": "No data", "color": [189, 189, 189, 1]},
        ],
        "clickableLayers": ["csd-fill"],
        "tableUrl": "b.json",
    },
}

SEARCH_ROWS = [
    ["2410", "Sample", -74, 45, -73, 46],
    ["2411", "Other", -73, 45, -72, 46],
]


# ============================================================================
# Render engine double
# ============================================================================


class RecordingEngine:
    """Render engine double: records calls; style loads complete on demand."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.pending_styles: list[tuple[str, Any, Any]] = []
        self.sources: dict[str, dict[str, Any]] = {}
        self.layers: list[str] = []
        self.colors: dict[str, StylingDirective] = {}
        self.opacity: dict[str, float] = {}
        self.popup: tuple[tuple[float, float], str] | None = None
        self.features: list[Feature] = []

    def load_style(self, style_ref, on_loaded, on_error) -> None:
        self.calls.append(("load_style", style_ref))
        self.sources.clear()
        self.layers.clear()
        self.colors.clear()
        self.opacity.clear()
        self.pending_styles.append((style_ref, on_loaded, on_error))

    def complete_style(self, index: int = -1) -> None:
        _, on_loaded, _ = self.pending_styles.pop(index)
        on_loaded()

    def fail_style(self, error: Exception, index: int = -1) -> None:
        _, _, on_error = self.pending_styles.pop(index)
        on_error(error)

    def set_camera(self, center, zoom) -> None:
        self.calls.append(("set_camera", (center, zoom)))

    def set_max_bounds(self, extent) -> None:
        self.calls.append(("set_max_bounds", extent))

    def add_source(self, name, data) -> None:
        self.calls.append(("add_source", name))
        self.sources[name] = data

    def add_cluster_overlay(self, source_name) -> None:
        self.calls.append(("add_cluster_overlay", source_name))

    def add_layer(self, layer) -> None:
        self.calls.append(("add_layer", layer["id"]))
        self.layers.append(layer["id"])

    def has_layer(self, layer_id) -> bool:
        return layer_id in self.layers

    def set_layer_colors(self, layer_id, directive) -> None:
        self.calls.append(("set_layer_colors", (layer_id, directive)))
        self.colors[layer_id] = directive

    def set_layer_opacity(self, layer_id, level) -> None:
        self.calls.append(("set_layer_opacity", (layer_id, level)))
        self.opacity[layer_id] = level

    def fit_bounds(self, extent, padding, animate) -> None:
        self.calls.append(("fit_bounds", (extent, padding, animate)))

    def query_rendered_features(self, point: MapPoint, layer_ids: Sequence[str]) -> list[Feature]:
        self.calls.append(("query_rendered_features", (point, tuple(layer_ids))))
        return [f for f in self.features if f.layer_id in layer_ids]

    def show_popup(self, lng_lat, html) -> None:
        self.calls.append(("show_popup", (lng_lat, html)))
        self.popup = (lng_lat, html)

    def hide_popup(self) -> None:
        self.calls.append(("hide_popup", None))
        self.popup = None

    def calls_named(self, name: str) -> list[Any]:
        return [args for call, args in self.calls if call == name]


# ============================================================================
# Dataset fetcher double
# ============================================================================


class GatedFetcher:
    """Dataset fetcher whose responses are released by the test."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, asyncio.Future]] = []

    async def fetch(self, url: str) -> Any:
        future = asyncio.get_running_loop().create_future()
        self.requests.append((url, future))
        return await future

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.requests]

    def resolve(self, index: int, payload: Any) -> None:
        self.requests[index][1].set_result(payload)

    def fail(self, index: int, error: Exception) -> None:
        self.requests[index][1].set_exception(error)


async def settle(turns: int = 5) -> None:
    """Let pending loop callbacks and tasks run."""
    for _ in range(turns):
        await asyncio.sleep(0)


# ============================================================================
# Controller wiring
# ============================================================================


class ViewHarness:
    """A ``ViewSyncController`` wired to doubles, as ``LodeApp`` would wire it."""

    def __init__(
        self,
        catalog: MapConfigCatalog,
        search_config: SearchConfig,
        engine: RecordingEngine,
        fetcher: GatedFetcher,
        store: MemoryStore | None = None,
        with_map: bool = True,
        ui=None,
    ):
        self.store = store or MemoryStore()
        self.engine = engine
        self.fetcher = fetcher
        self.view_state = PersistedViewState(self.store)
        self.legend = LegendController()
        self.search = SearchIndex(search_config.items)
        self.table = TableBinding(fetcher, key_field=search_config.field, nls=NlsCatalog())
        self.map = MapController(engine, center=(-96.0, 60.0), zoom=3) if with_map else None
        self.view = ViewSyncController(
            catalog=catalog,
            view_state=self.view_state,
            legend=self.legend,
            table=self.table,
            search=self.search,
            search_config=search_config,
            map_controller=self.map,
            ui=ui,
        )


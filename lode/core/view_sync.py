"""
View sync controller.

The single authority deciding what the render surface shows for the active
map. It reacts to map selection, style readiness, legend and opacity
changes, search picks, pan/zoom and feature clicks, recomputes the styling
directive and pushes it to the map controller, and decides whether the
table is reloaded or only focused.

Handlers run to completion on one event loop thread. The two asynchronous
boundaries, style loading and table fetching, are tagged with the
generation counter bumped on every map switch; completions carrying an
older generation are ignored.
"""

from typing import Protocol

from lode.configs.logging_init import logger
from lode.core.events import (
    CLICKED,
    LEGEND_CHANGED,
    PAN_SETTLED,
    SEARCH_SELECTED,
    STYLE_READY,
    TABLE_CHANGED,
    ZOOM_SETTLED,
)
from lode.core.legend import LegendController, LegendEntry
from lode.core.map_controller import MapController, MapPoint
from lode.core.nls import NlsCatalog
from lode.core.persisted_state import PersistedViewState
from lode.core.popup import htmlize, normalize_properties
from lode.core.search_index import SearchIndex
from lode.core.styling import build_search_directive, compute_styling_directive
from lode.core.table_binding import TableBinding, TableStatus
from lode.models.map_definition import MapConfigCatalog, MapDefinition
from lode.models.search import SearchConfig, SearchItem
from lode.models.styling import StylingDirective

MAPS_POPUP = "maps"
BOOKMARKS_POPUP = "bookmarks"


class UiSurface(Protocol):
    """Commands the controllers dispatch to the outer UI."""

    def hide_popup(self, name: str) -> None: ...

    def show_help(self) -> None: ...


class ViewSyncController:
    def __init__(
        self,
        catalog: MapConfigCatalog,
        view_state: PersistedViewState,
        legend: LegendController,
        table: TableBinding,
        search: SearchIndex,
        search_config: SearchConfig,
        map_controller: MapController | None = None,
        ui: UiSurface | None = None,
        nls: NlsCatalog | None = None,
        search_padding: int = 30,
    ):
        self._catalog = catalog
        self._view_state = view_state
        self._legend = legend
        self._table = table
        self._search_config = search_config
        self._map = map_controller
        self._ui = ui
        self._nls = nls or NlsCatalog()
        self.search_padding = search_padding

        self._generation = 0
        self._search_selection: SearchItem | None = None
        self._last_directive: StylingDirective | None = None

        persisted_id = view_state.active_map_id
        self._current = catalog.resolve(persisted_id)
        if persisted_id != self._current.id:
            if persisted_id is not None:
                logger.warning(
                    f"Persisted map '{persisted_id}' is not in the catalog; "
                    f"falling back to '{self._current.id}'"
                )
            view_state.active_map_id = self._current.id

        legend.reload(self._current.legend, self._current.display_title, self._current.subtitle)

        legend.on(LEGEND_CHANGED, self.on_legend_changed)
        search.on(SEARCH_SELECTED, self.on_search_selected)
        table.on(TABLE_CHANGED, self.on_table_changed)
        if map_controller is not None:
            map_controller.on(STYLE_READY, self.on_style_ready)
            map_controller.on(PAN_SETTLED, self.on_pan_settled)
            map_controller.on(ZOOM_SETTLED, self.on_zoom_settled)
            map_controller.on(CLICKED, self.on_feature_clicked)

    @property
    def current(self) -> MapDefinition:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def search_selection(self) -> SearchItem | None:
        return self._search_selection

    @property
    def last_directive(self) -> StylingDirective | None:
        """The legend directive most recently pushed to the map."""
        return self._last_directive

    def _ready_map(self) -> MapController | None:
        """The map controller once the current style has loaded."""
        if self._map is not None and self._map.is_style_ready:
            return self._map
        return None

    def start(self) -> None:
        """Load the style and table of the restored map. Must run on the event loop."""
        logger.info(f"Starting view on map '{self._current.id}'")
        if self._map is not None:
            self._map.set_style(self._current.style, self._generation)
        self._reload_table()

    def _reload_table(self) -> None:
        self._table.reload(
            self._current.table_url, self._generation, self._current.table_columns
        )

    # Triggers

    def on_map_selected(self, new_id: str) -> None:
        if new_id not in self._catalog:
            logger.warning(f"Map selection ignored: '{new_id}' is not in the catalog")
            return

        if self._ui is not None:
            self._ui.hide_popup(MAPS_POPUP)
        if self._map is not None:
            self._map.hide_popup()

        self._view_state.active_map_id = new_id
        self._generation += 1
        self._current = self._catalog[new_id]
        self._search_selection = None
        self._last_directive = None
        logger.debug(f"Map selected: '{new_id}' (generation {self._generation})")

        if self._map is not None:
            self._map.set_style(self._current.style, self._generation)
        self._reload_table()
        self._legend.reload(
            self._current.legend, self._current.display_title, self._current.subtitle
        )

    def on_style_ready(self, generation: int) -> None:
        map_controller = self._map
        if generation != self._generation or map_controller is None:
            logger.debug(
                f"Discarded StyleReady of generation {generation} "
                f"(current generation is {self._generation})"
            )
            return

        map_controller.set_clickable(True)

        added_sources = set()
        for source in self._current.data_sources:
            map_controller.add_source(source.name, source.data)
            if source.is_clustered:
                map_controller.add_cluster_overlay(source.name)
            added_sources.add(source.name)

        for layer in self._current.layers:
            if layer.source in added_sources:
                map_controller.add_layer(layer)
            else:
                logger.debug(f"Layer '{layer.id}' skipped: source '{layer.source}' not added")

        self._apply_legend_styling(map_controller, self._legend.entries)

        if self._search_selection is not None:
            self._apply_search_highlight(map_controller, self._search_selection)

    def on_legend_changed(self, entries: tuple[LegendEntry, ...]) -> None:
        map_controller = self._ready_map()
        if map_controller is None:
            logger.debug("Legend changed while the style loads; styling deferred to StyleReady")
            return
        self._apply_legend_styling(map_controller, entries)

    def on_opacity_changed(self, level: float) -> None:
        self._view_state.opacity_level = level
        map_controller = self._ready_map()
        if map_controller is None:
            logger.debug("Opacity changed while the style loads; styling deferred to StyleReady")
            return
        self._apply_legend_styling(map_controller, self._legend.entries)

    def on_search_selected(self, item: SearchItem) -> None:
        logger.debug(f"Search selected: {item.label}")
        self._search_selection = item
        self._table.focus_row(item)
        if self._map is None:
            return
        map_controller = self._ready_map()
        if map_controller is not None:
            self._apply_search_highlight(map_controller, item)
        self._map.fit_bounds(item.extent, padding=self.search_padding, animate=False)

    def on_table_changed(self, table: TableBinding) -> None:
        if table.status is TableStatus.FAILED:
            logger.warning(
                f"Table of map '{self._current.id}' is unavailable: {table.message}"
            )

    def on_pan_settled(self, center: tuple[float, float]) -> None:
        self._view_state.center = center

    def on_zoom_settled(self, level: float) -> None:
        self._view_state.zoom_level = level

    def on_feature_clicked(self, point: MapPoint) -> None:
        if self._map is None:
            return
        features = self._map.query_features_at(point, self._current.clickable_layers)
        if not features:
            return

        feature = features[0]
        properties = normalize_properties(feature.properties)
        html = htmlize(properties, self._current.fields, self._nls("Map_Not_Available"))

        location = point.lng_lat or feature.anchor
        if location is None:
            logger.debug(f"Feature '{feature.id}' clicked without a location; popup skipped")
            return
        self._map.show_popup(location, html)

    # Styling

    def _styled_layer_ids(self, map_controller: MapController) -> list[str]:
        """Layers of the active map that are attached to the render surface."""
        return [lid for lid in self._current.layer_ids if map_controller.has_layer(lid)]

    def _apply_legend_styling(
        self, map_controller: MapController, entries: tuple[LegendEntry, ...]
    ) -> None:
        opacity = self._view_state.opacity_level
        directive = compute_styling_directive(entries, opacity)
        layer_ids = self._styled_layer_ids(map_controller)
        map_controller.apply_styling(layer_ids, directive)
        map_controller.set_opacity(layer_ids, opacity)
        self._last_directive = directive

    def _apply_search_highlight(self, map_controller: MapController, item: SearchItem) -> None:
        layer_id = self._search_config.layer
        if not map_controller.has_layer(layer_id):
            logger.debug(f"Search layer '{layer_id}' is not part of map '{self._current.id}'")
            return
        directive = build_search_directive(
            item, self._search_config.field, self._search_config.color
        )
        map_controller.apply_styling([layer_id], directive)

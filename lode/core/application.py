"""
Application bootstrap.

Builds every collaborator from the loaded viewer configuration, restores the
persisted view, and wires them into a ``ViewSyncController``. A
configuration error while creating the map (e.g. a missing access token) is
logged and the application keeps running without a live map: search, legend
and table still work.
"""

from collections.abc import Callable

from lode.configs.logging_init import logger
from lode.configs.settings_models import ViewerConfig
from lode.core.exceptions import ConfigurationError
from lode.core.legend import LegendController
from lode.core.map_controller import MapController, RenderEngine
from lode.core.nls import NlsCatalog
from lode.core.persisted_state import KeyValueStore, PersistedViewState
from lode.core.search_index import SearchIndex
from lode.core.table_binding import DatasetFetcher, TableBinding
from lode.core.view_sync import BOOKMARKS_POPUP, UiSurface, ViewSyncController
from lode.models.search import Bookmark, Extent
from lode.models.viewer_config import ViewerConfiguration

EngineFactory = Callable[[str], RenderEngine]


class LodeApp:
    def __init__(
        self,
        config: ViewerConfiguration,
        viewer: ViewerConfig,
        store: KeyValueStore,
        fetcher: DatasetFetcher,
        engine_factory: EngineFactory,
        ui: UiSurface | None = None,
    ):
        self.config = config
        self.viewer = viewer
        self.ui = ui
        self.nls = NlsCatalog(viewer.locale, config.nls)

        self.view_state = PersistedViewState(
            store,
            default_center=(viewer.default_center_lat, viewer.default_center_lng),
            default_zoom=viewer.default_zoom,
            default_opacity=viewer.default_opacity,
        )
        self.search = SearchIndex(config.search.items)
        self.legend = LegendController()
        self.table = TableBinding(
            fetcher,
            root_url=viewer.root_url,
            key_field=config.search.table_field or config.search.field,
            nls=self.nls,
        )
        self.map = self._create_map(engine_factory)

        self.view = ViewSyncController(
            catalog=config.maps,
            view_state=self.view_state,
            legend=self.legend,
            table=self.table,
            search=self.search,
            search_config=config.search,
            map_controller=self.map,
            ui=ui,
            nls=self.nls,
            search_padding=viewer.search_padding,
        )

    def _create_map(self, engine_factory: EngineFactory) -> MapController | None:
        try:
            token = self.config.access_token
            if not token:
                raise ConfigurationError(
                    "Mapbox access token must be provided in credentials to generate a map"
                )
            lat, lng = self.view_state.center
            return MapController(
                engine_factory(token),
                center=(lng, lat),
                zoom=self.view_state.zoom_level,
                max_extent=_extent(self.viewer.max_extent),
            )
        except ConfigurationError as e:
            logger.error(f"Map unavailable: {e}")
            return None

    @property
    def map_available(self) -> bool:
        return self.map is not None

    def start(self) -> None:
        logger.info(self.view_state.snapshot())
        self.view.start()

    # Menu commands

    def on_home(self) -> None:
        if self.map is not None:
            self.map.fit_bounds(_extent(self.viewer.home_extent))

    def on_bookmark_selected(self, bookmark: Bookmark) -> None:
        if self.ui is not None:
            self.ui.hide_popup(BOOKMARKS_POPUP)
        if self.map is not None:
            self.map.fit_bounds(bookmark.extent, animate=False)

    def on_help(self) -> None:
        if self.ui is not None:
            self.ui.show_help()


def _extent(value: list[list[float]]) -> Extent:
    (min_lng, min_lat), (max_lng, max_lat) = value
    return (min_lng, min_lat), (max_lng, max_lat)

"""
Map controller: adapter over the render engine.

Owns the live render surface and turns engine callbacks and UI notifications
into ``StyleReady``, ``PanSettled``, ``ZoomSettled`` and ``Clicked`` events.

Each ``set_style`` call opens a new style generation. Sources, layers and
paint can only be attached once the style of the current generation has
finished loading: calls issued before that are rejected with
``StyleNotReadyError``. A load completion belonging to an older generation
is discarded, so a rapid double map switch never leaves a partially
populated surface behind.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Protocol

from lode.configs.logging_init import logger
from lode.core.events import CLICKED, PAN_SETTLED, STYLE_READY, ZOOM_SETTLED, Evented
from lode.core.exceptions import StyleNotReadyError
from lode.models.map_definition import LayerSpec
from lode.models.search import Extent
from lode.models.styling import StylingDirective

LngLat = tuple[float, float]


@dataclass(frozen=True)
class MapPoint:
    """A click on the render surface.

    ``lng``/``lat`` locate the click; surfaces that already know which
    feature is under the pointer also report its layer and feature id.
    """

    lng: float | None = None
    lat: float | None = None
    layer_id: str | None = None
    feature_id: str | None = None

    @property
    def lng_lat(self) -> LngLat | None:
        if self.lng is None or self.lat is None:
            return None
        return self.lng, self.lat


@dataclass
class Feature:
    """A rendered feature returned by hit-testing."""

    layer_id: str
    id: str | None
    properties: dict[str, Any] = field(default_factory=dict)
    anchor: LngLat | None = None


class RenderEngine(Protocol):
    """Narrow interface of the external map rendering engine."""

    def load_style(
        self,
        style_ref: str,
        on_loaded: Callable[[], None],
        on_error: Callable[[Exception], None],
    ) -> None: ...

    def set_camera(self, center: LngLat, zoom: float) -> None: ...

    def set_max_bounds(self, extent: Extent) -> None: ...

    def add_source(self, name: str, data: dict[str, Any]) -> None: ...

    def add_cluster_overlay(self, source_name: str) -> None: ...

    def add_layer(self, layer: dict[str, Any]) -> None: ...

    def has_layer(self, layer_id: str) -> bool: ...

    def set_layer_colors(self, layer_id: str, directive: StylingDirective) -> None: ...

    def set_layer_opacity(self, layer_id: str, level: float) -> None: ...

    def fit_bounds(self, extent: Extent, padding: int, animate: bool) -> None: ...

    def query_rendered_features(
        self, point: MapPoint, layer_ids: Sequence[str]
    ) -> list[Feature]: ...

    def show_popup(self, lng_lat: LngLat, html: str) -> None: ...

    def hide_popup(self) -> None: ...


class MapController(Evented):
    def __init__(
        self,
        engine: RenderEngine,
        center: LngLat,
        zoom: float,
        max_extent: Extent | None = None,
    ):
        super().__init__()
        self.engine = engine
        self._style_ref: str | None = None
        self._generation: int | None = None
        self._ready = False
        self._clickable = False

        if max_extent is not None:
            engine.set_max_bounds(max_extent)
        engine.set_camera(center, zoom)

    @property
    def is_style_ready(self) -> bool:
        return self._ready

    @property
    def style_ref(self) -> str | None:
        return self._style_ref

    @property
    def clickable(self) -> bool:
        return self._clickable

    def set_style(self, style_ref: str, generation: int) -> None:
        """Start loading ``style_ref``; ``StyleReady(generation)`` fires once it has loaded."""
        self._style_ref = style_ref
        self._generation = generation
        self._ready = False
        self._clickable = False
        logger.debug(f"Loading style '{style_ref}' (generation {generation})")
        self.engine.load_style(
            style_ref,
            on_loaded=partial(self._on_style_loaded, generation),
            on_error=partial(self._on_style_error, generation, style_ref),
        )

    def _on_style_loaded(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug(
                f"Discarded style load of generation {generation} "
                f"(current generation is {self._generation})"
            )
            return
        self._ready = True
        self.emit(STYLE_READY, generation)

    def _on_style_error(self, generation: int, style_ref: str, error: Exception) -> None:
        if generation != self._generation:
            return
        logger.error(f"Style '{style_ref}' failed to load: {error}")

    def _require_ready(self, operation: str) -> None:
        if not self._ready:
            raise StyleNotReadyError(operation, self._style_ref)

    def set_clickable(self, enabled: bool = True) -> None:
        self._clickable = enabled

    def add_source(self, name: str, data: dict[str, Any]) -> None:
        self._require_ready(f"add source '{name}'")
        self.engine.add_source(name, data)

    def add_cluster_overlay(self, source_name: str) -> None:
        self._require_ready(f"add cluster overlay for '{source_name}'")
        self.engine.add_cluster_overlay(source_name)

    def add_layer(self, layer: LayerSpec) -> None:
        self._require_ready(f"add layer '{layer.id}'")
        self.engine.add_layer(layer.to_engine())

    def has_layer(self, layer_id: str) -> bool:
        return self._ready and self.engine.has_layer(layer_id)

    def apply_styling(self, layer_ids: Sequence[str], directive: StylingDirective) -> None:
        self._require_ready("apply styling")
        for layer_id in layer_ids:
            self.engine.set_layer_colors(layer_id, directive)

    def set_opacity(self, layer_ids: Sequence[str], level: float) -> None:
        self._require_ready("set opacity")
        for layer_id in layer_ids:
            self.engine.set_layer_opacity(layer_id, level)

    def fit_bounds(self, extent: Extent, padding: int = 0, animate: bool = True) -> None:
        self.engine.fit_bounds(extent, padding=padding, animate=animate)

    def query_features_at(self, point: MapPoint, layer_ids: Sequence[str]) -> list[Feature]:
        """Features under ``point`` on ``layer_ids``, topmost first."""
        if not self._ready:
            return []
        return self.engine.query_rendered_features(point, layer_ids)

    def show_popup(self, lng_lat: LngLat, html: str) -> None:
        self.engine.show_popup(lng_lat, html)

    def hide_popup(self) -> None:
        self.engine.hide_popup()

    # Notifications from the UI surface

    def notify_pan_settled(self, lat: float, lng: float) -> None:
        self.emit(PAN_SETTLED, (lat, lng))

    def notify_zoom_settled(self, level: float) -> None:
        self.emit(ZOOM_SETTLED, level)

    def notify_clicked(self, point: MapPoint) -> None:
        if not self._clickable:
            logger.debug("Click ignored: map is not clickable while its style loads")
            return
        self.emit(CLICKED, point)

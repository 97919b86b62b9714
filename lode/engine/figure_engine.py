"""
Plotly render engine.

Implements the ``RenderEngine`` interface on top of a Plotly ``map`` figure
(MapLibre). The engine keeps the render state (style, sources, layers,
per-layer paint, camera, popup) and turns it into a ``go.Figure`` on demand:

- ``fill`` layers become ``go.Choroplethmap`` traces, one per resolved color;
- ``circle`` layers become marker ``go.Scattermap`` traces;
- ``line`` layers become line ``go.Scattermap`` traces, one per resolved color;
- cluster overlays become a clustered ``go.Scattermap`` trace.

Built-in style names load on the next loop turn. ``mapbox://`` and http(s)
style references are downloaded with httpx, so loading is asynchronous in
both cases: the ``on_loaded`` callback never runs inside ``load_style``.
"""

import asyncio
import copy
from collections.abc import Callable, Sequence
from typing import Any

import httpx
import plotly.graph_objects as go

from lode.configs.logging_init import logger
from lode.core.exceptions import ExpressionError
from lode.core.expressions import matches
from lode.core.map_controller import Feature, LngLat, MapPoint
from lode.engine.geometry import anchor, degrees_per_pixel, fit_extent, geometry_contains
from lode.models.search import Extent
from lode.models.styling import TRANSPARENT, StylingDirective, parse_color, to_css

MAPBOX_API = "https://api.mapbox.com"
DEFAULT_COLOR = "rgba(0,0,0,0.5)"
DEFAULT_CIRCLE_RADIUS = 6
HIT_TOLERANCE_PX = 3

_PAINT_COLOR_KEYS = {"fill": "fill-color", "line": "line-color", "circle": "circle-color"}
_OUTLINE_KEYS = {"fill": "fill-outline-color"}


def resolve_mapbox_url(url: str, access_token: str) -> str:
    """Turn a ``mapbox://`` URL (style, source, sprite or glyphs) into an API URL."""
    if not url.startswith("mapbox://"):
        return url
    path = url.removeprefix("mapbox://")
    if path.startswith("styles/"):
        resolved = f"{MAPBOX_API}/styles/v1/{path.removeprefix('styles/')}"
    elif path.startswith("sprites/"):
        resolved = f"{MAPBOX_API}/styles/v1/{path.removeprefix('sprites/')}/sprite"
    elif path.startswith("fonts/"):
        resolved = f"{MAPBOX_API}/fonts/v1/{path.removeprefix('fonts/')}"
    else:
        resolved = f"{MAPBOX_API}/v4/{path}.json?secure"
    separator = "&" if "?" in resolved else "?"
    return f"{resolved}{separator}access_token={access_token}"


def _resolve_style_urls(style: dict[str, Any], access_token: str) -> dict[str, Any]:
    """Rewrite the ``mapbox://`` references of a downloaded style document."""
    style = copy.deepcopy(style)
    for source in (style.get("sources") or {}).values():
        if isinstance(source.get("url"), str):
            source["url"] = resolve_mapbox_url(source["url"], access_token)
        if isinstance(source.get("tiles"), list):
            source["tiles"] = [resolve_mapbox_url(t, access_token) for t in source["tiles"]]
    for key in ("sprite", "glyphs"):
        if isinstance(style.get(key), str):
            style[key] = resolve_mapbox_url(style[key], access_token)
    return style


def _is_remote(style_ref: str) -> bool:
    return style_ref.startswith(("mapbox://", "http://", "https://"))


def _paint_color(value: Any) -> str | None:
    """CSS color of a constant paint value; None for data-driven expressions."""
    if isinstance(value, str):
        return value
    try:
        return to_css(parse_color(value))
    except ValueError:
        return None


class FigureEngine:
    def __init__(
        self,
        access_token: str,
        width: int = 1000,
        height: int = 600,
        timeout: float = 30.0,
    ):
        self.access_token = access_token
        self.width = width
        self.height = height
        self.timeout = timeout

        self.style_ref: str | None = None
        self.style: str | dict[str, Any] | None = None
        self._style_task: asyncio.Task | None = None
        self._load_token = 0

        self._sources: dict[str, dict[str, Any]] = {}
        self._clusters: dict[str, str] = {}
        self._layers: list[dict[str, Any]] = []
        self._colors: dict[str, StylingDirective] = {}
        self._opacity: dict[str, float] = {}

        self.center: LngLat = (0.0, 0.0)
        self.zoom = 1.0
        self.max_bounds: Extent | None = None
        self.animate_camera = False
        self.popup: tuple[LngLat, str] | None = None
        self.trace_layers: list[str] = []

        # Bumped on every change of the figure / of the engine-driven camera
        self.revision = 0
        self.camera_revision = 0

    def _touch(self) -> None:
        self.revision += 1

    # Style

    def load_style(
        self,
        style_ref: str,
        on_loaded: Callable[[], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        self.style_ref = style_ref
        self._load_token += 1
        self._sources.clear()
        self._clusters.clear()
        self._layers.clear()
        self._colors.clear()
        self._opacity.clear()
        self._touch()

        if self._style_task is not None and not self._style_task.done():
            self._style_task.cancel()

        loop = asyncio.get_running_loop()
        if not _is_remote(style_ref):
            self.style = style_ref
            loop.call_soon(on_loaded)
            return
        self._style_task = loop.create_task(
            self._fetch_style(style_ref, self._load_token, on_loaded, on_error)
        )

    async def _fetch_style(
        self,
        style_ref: str,
        token: int,
        on_loaded: Callable[[], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        url = resolve_mapbox_url(style_ref, self.access_token)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
                document = response.json()
        except (httpx.HTTPError, ValueError) as e:
            if token == self._load_token:
                on_error(e)
            return

        if token != self._load_token:
            logger.debug(f"Style '{style_ref}' downloaded after a newer style load; ignored")
            return
        self.style = _resolve_style_urls(document, self.access_token)
        self._touch()
        on_loaded()

    # Sources and layers

    def add_source(self, name: str, data: dict[str, Any]) -> None:
        if name in self._sources:
            raise ValueError(f"Source '{name}' already exists")
        payload = data.get("data")
        if isinstance(payload, str):
            logger.warning(f"Source '{name}' references unresolved data {payload}; drawn empty")
            payload = None
        if isinstance(payload, dict) and payload.get("type") == "Feature":
            payload = {"type": "FeatureCollection", "features": [payload]}

        promote_id = data.get("promoteId")
        features = []
        for index, feature in enumerate((payload or {}).get("features") or []):
            properties = feature.get("properties") or {}
            feature_id = feature.get("id")
            if feature_id is None and promote_id:
                feature_id = properties.get(promote_id)
            if feature_id is None:
                feature_id = index
            features.append({**feature, "id": str(feature_id), "properties": properties})

        self._sources[name] = {"type": "FeatureCollection", "features": features}
        self._touch()

    def add_cluster_overlay(self, source_name: str) -> None:
        if source_name not in self._sources:
            raise KeyError(f"Unknown source '{source_name}'")
        self._clusters[f"{source_name}-clusters"] = source_name
        self._touch()

    def add_layer(self, layer: dict[str, Any]) -> None:
        layer_id = layer["id"]
        if self.has_layer(layer_id):
            raise ValueError(f"Layer '{layer_id}' already exists")
        if layer.get("source") not in self._sources:
            raise KeyError(f"Layer '{layer_id}' references unknown source '{layer.get('source')}'")
        self._layers.append(dict(layer))
        self._touch()

    def has_layer(self, layer_id: str) -> bool:
        return any(layer["id"] == layer_id for layer in self._layers)

    @property
    def layer_ids(self) -> list[str]:
        return [layer["id"] for layer in self._layers]

    @property
    def cluster_overlays(self) -> list[str]:
        return list(self._clusters)

    def _layer(self, layer_id: str) -> dict[str, Any]:
        for layer in self._layers:
            if layer["id"] == layer_id:
                return layer
        raise KeyError(f"Unknown layer '{layer_id}'")

    # Paint

    def set_layer_colors(self, layer_id: str, directive: StylingDirective) -> None:
        self._layer(layer_id)
        self._colors[layer_id] = directive
        self._touch()

    def set_layer_opacity(self, layer_id: str, level: float) -> None:
        self._layer(layer_id)
        self._opacity[layer_id] = level
        self._touch()

    def layer_colors(self, layer_id: str) -> StylingDirective | None:
        return self._colors.get(layer_id)

    def layer_opacity(self, layer_id: str) -> float:
        return self._opacity.get(layer_id, 1.0)

    def feature_color(self, layer: dict[str, Any], properties: dict[str, Any]) -> str:
        """CSS color of a feature: the first matching rule of the layer's directive."""
        directive = self._colors.get(layer["id"])
        if directive is None:
            paint_key = _PAINT_COLOR_KEYS.get(layer.get("type", "fill"), "fill-color")
            return _paint_color((layer.get("paint") or {}).get(paint_key)) or DEFAULT_COLOR
        for rule in directive.rules:
            if rule.is_fallback or matches(rule.filter, properties):
                return rule.css()
        return to_css(TRANSPARENT)

    # Camera

    def set_camera(self, center: LngLat, zoom: float) -> None:
        self.center = center
        self.zoom = zoom
        self.animate_camera = False
        self.camera_revision += 1
        self._touch()

    def set_max_bounds(self, extent: Extent) -> None:
        self.max_bounds = extent
        self._touch()

    def fit_bounds(self, extent: Extent, padding: int = 0, animate: bool = True) -> None:
        self.center, self.zoom = fit_extent(extent, self.width, self.height, padding)
        self.animate_camera = animate
        self.camera_revision += 1
        self._touch()

    def track_view(self, center: LngLat, zoom: float) -> None:
        """Record a camera move made by the user on the rendered figure."""
        self.center = center
        self.zoom = zoom

    # Hit-testing

    def _layer_features(self, layer: dict[str, Any]) -> list[dict[str, Any]]:
        source = self._sources.get(layer.get("source"), {})
        try:
            return [
                f
                for f in source.get("features", [])
                if matches(layer.get("filter"), f["properties"])
            ]
        except ExpressionError as e:
            logger.warning(f"Layer '{layer['id']}' filter cannot be evaluated: {e}")
            return []

    def query_rendered_features(
        self, point: MapPoint, layer_ids: Sequence[str]
    ) -> list[Feature]:
        wanted = set(layer_ids)
        found: list[Feature] = []
        # Topmost layer first
        for layer in reversed(self._layers):
            if layer["id"] not in wanted:
                continue
            tolerance = self._hit_tolerance(layer)
            for feature in self._layer_features(layer):
                if self._hit(layer["id"], feature, point, tolerance):
                    found.append(
                        Feature(
                            layer_id=layer["id"],
                            id=feature["id"],
                            properties=dict(feature["properties"]),
                            anchor=anchor(feature.get("geometry")),
                        )
                    )
        return found

    def _hit_tolerance(self, layer: dict[str, Any]) -> float:
        pixels = HIT_TOLERANCE_PX
        if layer.get("type") == "circle":
            radius = (layer.get("paint") or {}).get("circle-radius", DEFAULT_CIRCLE_RADIUS)
            if isinstance(radius, int | float):
                pixels += radius
        return pixels * degrees_per_pixel(self.zoom)

    @staticmethod
    def _hit(layer_id: str, feature: dict[str, Any], point: MapPoint, tolerance: float) -> bool:
        if point.layer_id == layer_id and point.feature_id is not None:
            return feature["id"] == str(point.feature_id)
        lng_lat = point.lng_lat
        if lng_lat is None:
            return False
        return geometry_contains(feature.get("geometry"), lng_lat[0], lng_lat[1], tolerance)

    # Popup

    def show_popup(self, lng_lat: LngLat, html: str) -> None:
        self.popup = (lng_lat, html)
        self._touch()

    def hide_popup(self) -> None:
        if self.popup is not None:
            self.popup = None
            self._touch()

    # Figure

    def figure(self) -> go.Figure:
        """Build the Plotly figure of the current render state."""
        fig = go.Figure()
        # Layer id of every trace, indexed like clickData's curveNumber
        self.trace_layers = []
        for layer in self._layers:
            try:
                traces = self._layer_traces(layer)
            except ExpressionError as e:
                logger.warning(f"Layer '{layer['id']}' skipped: {e}")
                continue
            for trace in traces:
                fig.add_trace(trace)
                self.trace_layers.append(layer["id"])

        for overlay_id, source_name in self._clusters.items():
            fig.add_trace(self._cluster_trace(overlay_id, source_name))
            self.trace_layers.append(overlay_id)

        map_layout: dict[str, Any] = {
            "style": self.style or "basic",
            "center": {"lon": self.center[0], "lat": self.center[1]},
            "zoom": self.zoom,
            # Changing uirevision lets engine-driven camera moves override the user's view
            "uirevision": f"camera-{self.camera_revision}",
        }
        if self.max_bounds is not None:
            (west, south), (east, north) = self.max_bounds
            map_layout["bounds"] = {"west": west, "east": east, "south": south, "north": north}

        fig.update_layout(
            map=map_layout,
            margin={"l": 0, "r": 0, "t": 0, "b": 0},
            paper_bgcolor="rgba(0,0,0,0)",
            showlegend=False,
            clickmode="event",
        )
        return fig

    def _grouped_by_color(
        self, layer: dict[str, Any]
    ) -> dict[str, list[dict[str, Any]]]:
        groups: dict[str, list[dict[str, Any]]] = {}
        for feature in self._layer_features(layer):
            color = self.feature_color(layer, feature["properties"])
            groups.setdefault(color, []).append(feature)
        return groups

    def _layer_traces(self, layer: dict[str, Any]) -> list[Any]:
        layer_type = layer.get("type", "fill")
        if layer_type == "fill":
            return self._fill_traces(layer)
        if layer_type == "line":
            return self._line_traces(layer)
        if layer_type == "circle":
            return [self._circle_trace(layer)]
        logger.debug(f"Layer '{layer['id']}' of type '{layer_type}' is not drawn")
        return []

    def _fill_traces(self, layer: dict[str, Any]) -> list[go.Choroplethmap]:
        outline = _paint_color(
            (layer.get("paint") or {}).get(_OUTLINE_KEYS["fill"])
        ) or "rgba(255,255,255,1)"
        opacity = self.layer_opacity(layer["id"])
        traces = []
        for color, features in self._grouped_by_color(layer).items():
            traces.append(
                go.Choroplethmap(
                    name=layer["id"],
                    meta={"layer": layer["id"]},
                    geojson={"type": "FeatureCollection", "features": features},
                    featureidkey="id",
                    locations=[f["id"] for f in features],
                    z=[1] * len(features),
                    colorscale=[[0, color], [1, color]],
                    showscale=False,
                    marker={"line": {"color": outline, "width": 0.5}, "opacity": opacity},
                    hoverinfo="none",
                )
            )
        return traces

    def _line_traces(self, layer: dict[str, Any]) -> list[go.Scattermap]:
        width = (layer.get("paint") or {}).get("line-width", 1)
        traces = []
        for color, features in self._grouped_by_color(layer).items():
            lons: list[float | None] = []
            lats: list[float | None] = []
            ids: list[str | None] = []
            for feature in features:
                geometry = feature.get("geometry") or {}
                lines = geometry.get("coordinates") or []
                if geometry.get("type") == "LineString":
                    lines = [lines]
                for line in lines:
                    lons.extend([p[0] for p in line] + [None])
                    lats.extend([p[1] for p in line] + [None])
                    ids.extend([feature["id"]] * len(line) + [None])
            traces.append(
                go.Scattermap(
                    name=layer["id"],
                    meta={"layer": layer["id"]},
                    mode="lines",
                    lon=lons,
                    lat=lats,
                    customdata=ids,
                    line={"color": color, "width": width},
                    opacity=self.layer_opacity(layer["id"]),
                    hoverinfo="none",
                )
            )
        return traces

    def _circle_trace(self, layer: dict[str, Any]) -> go.Scattermap:
        radius = (layer.get("paint") or {}).get("circle-radius", DEFAULT_CIRCLE_RADIUS)
        if not isinstance(radius, int | float):
            radius = DEFAULT_CIRCLE_RADIUS
        lons, lats, ids, colors = [], [], [], []
        for feature in self._layer_features(layer):
            position = anchor(feature.get("geometry"))
            if position is None:
                continue
            lons.append(position[0])
            lats.append(position[1])
            ids.append(feature["id"])
            colors.append(self.feature_color(layer, feature["properties"]))
        return go.Scattermap(
            name=layer["id"],
            meta={"layer": layer["id"]},
            mode="markers",
            lon=lons,
            lat=lats,
            customdata=ids,
            marker={"color": colors, "size": radius * 2},
            opacity=self.layer_opacity(layer["id"]),
            hoverinfo="none",
        )

    def _cluster_trace(self, overlay_id: str, source_name: str) -> go.Scattermap:
        lons, lats = [], []
        for feature in self._sources[source_name]["features"]:
            position = anchor(feature.get("geometry"))
            if position is not None:
                lons.append(position[0])
                lats.append(position[1])
        return go.Scattermap(
            name=overlay_id,
            meta={"layer": overlay_id},
            mode="markers",
            lon=lons,
            lat=lats,
            marker={"size": 10, "color": "rgba(81,187,214,0.8)"},
            cluster={"enabled": True, "color": "rgba(81,187,214,0.8)"},
            hoverinfo="none",
        )

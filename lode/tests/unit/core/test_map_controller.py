"""
Tests for the map controller.

Covers:
- StyleReady is raised once per style generation, never for a stale one
- sources, layers and paint are rejected until the style is ready
- clicks are ignored while the style loads
- pan/zoom notifications
"""

from unittest.mock import MagicMock

import pytest

from lode.core.events import CLICKED, PAN_SETTLED, STYLE_READY, ZOOM_SETTLED
from lode.core.exceptions import StyleNotReadyError
from lode.core.map_controller import Feature, MapController, MapPoint
from lode.models.map_definition import LayerSpec
from lode.models.styling import StylingDirective


@pytest.fixture
def controller(engine) -> MapController:
    return MapController(
        engine, center=(-96.0, 60.0), zoom=3, max_extent=((-162.0, 41.0), (-32.0, 83.5))
    )


class TestConstruction:
    def test_camera_and_bounds_set_on_engine(self, engine, controller):
        assert engine.calls_named("set_max_bounds") == [((-162.0, 41.0), (-32.0, 83.5))]
        assert engine.calls_named("set_camera") == [((-96.0, 60.0), 3)]
        assert not controller.is_style_ready


class TestStyleGenerations:
    def test_style_ready_emitted_with_generation(self, engine, controller):
        handler = MagicMock()
        controller.on(STYLE_READY, handler)

        controller.set_style("style-a", generation=4)
        handler.assert_not_called()
        engine.complete_style()

        handler.assert_called_once_with(4)
        assert controller.is_style_ready
        assert controller.style_ref == "style-a"

    def test_stale_load_is_discarded(self, engine, controller):
        handler = MagicMock()
        controller.on(STYLE_READY, handler)

        controller.set_style("style-a", generation=1)
        controller.set_style("style-b", generation=2)
        engine.complete_style(index=0)

        handler.assert_not_called()
        assert not controller.is_style_ready

        engine.complete_style(index=0)
        handler.assert_called_once_with(2)

    def test_new_style_resets_readiness(self, engine, controller):
        controller.set_style("style-a", generation=1)
        engine.complete_style()
        controller.set_clickable(True)

        controller.set_style("style-b", generation=2)

        assert not controller.is_style_ready
        assert not controller.clickable

    def test_style_error_is_logged_not_raised(self, engine, controller):
        handler = MagicMock()
        controller.on(STYLE_READY, handler)
        controller.set_style("style-a", generation=1)

        engine.fail_style(RuntimeError("404"))

        handler.assert_not_called()
        assert not controller.is_style_ready


class TestReadinessGuard:
    @pytest.mark.parametrize(
        "operation",
        [
            lambda c: c.add_source("csd", {"type": "geojson", "data": {}}),
            lambda c: c.add_cluster_overlay("csd"),
            lambda c: c.add_layer(LayerSpec(id="csd-fill", source="csd")),
            lambda c: c.apply_styling(["csd-fill"], StylingDirective()),
            lambda c: c.set_opacity(["csd-fill"], 0.5),
        ],
    )
    def test_rejected_before_style_ready(self, engine, controller, operation):
        controller.set_style("style-a", generation=1)

        with pytest.raises(StyleNotReadyError) as excinfo:
            operation(controller)

        assert excinfo.value.style_ref == "style-a"
        assert not engine.calls_named("add_source")
        assert not engine.calls_named("set_layer_colors")

    def test_accepted_after_style_ready(self, engine, controller):
        controller.set_style("style-a", generation=1)
        engine.complete_style()

        controller.add_source("csd", {"type": "geojson", "data": {}})
        controller.add_layer(LayerSpec(id="csd-fill", source="csd"))
        controller.apply_styling(["csd-fill"], StylingDirective())

        assert controller.has_layer("csd-fill")
        assert engine.calls_named("add_layer") == ["csd-fill"]
        assert engine.calls_named("set_layer_colors") == [("csd-fill", StylingDirective())]

    def test_layers_absent_while_loading(self, engine, controller):
        controller.set_style("style-a", generation=1)
        engine.complete_style()
        controller.add_source("csd", {})
        controller.add_layer(LayerSpec(id="csd-fill", source="csd"))

        controller.set_style("style-b", generation=2)

        assert not controller.has_layer("csd-fill")

    def test_camera_and_popup_do_not_need_style(self, engine, controller):
        controller.set_style("style-a", generation=1)

        controller.fit_bounds(((-74, 45), (-73, 46)), padding=30, animate=False)
        controller.show_popup((-73.5, 45.5), "<ul></ul>")
        controller.hide_popup()

        assert engine.calls_named("fit_bounds") == [(((-74, 45), (-73, 46)), 30, False)]
        assert engine.popup is None


class TestNotifications:
    def test_clicks_ignored_until_clickable(self, controller):
        handler = MagicMock()
        controller.on(CLICKED, handler)
        point = MapPoint(lng=-73.5, lat=45.5)

        controller.notify_clicked(point)
        handler.assert_not_called()

        controller.set_clickable(True)
        controller.notify_clicked(point)
        handler.assert_called_once_with(point)

    def test_pan_and_zoom(self, controller):
        pan, zoom = MagicMock(), MagicMock()
        controller.on(PAN_SETTLED, pan)
        controller.on(ZOOM_SETTLED, zoom)

        controller.notify_pan_settled(45.5, -73.6)
        controller.notify_zoom_settled(8.5)

        pan.assert_called_once_with((45.5, -73.6))
        zoom.assert_called_once_with(8.5)

    def test_query_returns_nothing_while_loading(self, engine, controller):
        engine.features = [Feature(layer_id="csd-fill", id="2410")]
        controller.set_style("style-a", generation=1)

        assert controller.query_features_at(MapPoint(lng=0, lat=0), ["csd-fill"]) == []

        engine.complete_style()
        assert [f.id for f in controller.query_features_at(MapPoint(), ["csd-fill"])] == ["2410"]


class TestMapPoint:
    def test_lng_lat(self):
        assert MapPoint(lng=1.0, lat=2.0).lng_lat == (1.0, 2.0)
        assert MapPoint(layer_id="x", feature_id="1").lng_lat is None

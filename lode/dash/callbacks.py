"""
Callback registration for the viewer page.

Input callbacks translate browser events into controller calls executed on
the runtime loop, then bump the action store. The refresh callback, fired by
the action store and by the polling interval, compares the revisions of the
controllers with those already rendered and only re-renders what changed,
so asynchronous completions (style loaded, table fetched) reach the page
without a user action.
"""

from typing import Any

from dash import ALL, Input, Output, State, ctx, no_update
from dash.exceptions import PreventUpdate

from lode.configs.logging_init import logger
from lode.core.application import LodeApp
from lode.core.map_controller import MapPoint
from lode.core.view_sync import BOOKMARKS_POPUP, MAPS_POPUP
from lode.dash.layout import (
    ACTION_STORE_ID,
    BOOKMARK_ITEM_TYPE,
    BOOKMARKS_BUTTON_ID,
    BOOKMARKS_POPOVER_ID,
    HELP_ID,
    HELP_MODAL_ID,
    HOME_ID,
    LEGEND_ENTRY_TYPE,
    LEGEND_ID,
    MAP_ID,
    MAP_ITEM_TYPE,
    MAPS_BUTTON_ID,
    MAPS_POPOVER_ID,
    OPACITY_ID,
    POPUP_CLOSE_ID,
    POPUP_CONTENT_ID,
    POPUP_ID,
    POPUP_STYLE,
    REFRESH_ID,
    REVISIONS_STORE_ID,
    SEARCH_ID,
    SUBTITLE_ID,
    TABLE_ID,
    TABLE_STATUS_ID,
    TITLE_ID,
    column_defs,
    create_legend,
    create_popup_content,
)
from lode.dash.runtime import LoopRuntime
from lode.dash.surface import DashUiSurface

# Order of the refresh callback outputs
UPDATE_KEYS = (
    "figure",
    "popup_content",
    "popup_style",
    "legend",
    "title",
    "subtitle",
    "search_value",
    "row_data",
    "column_defs",
    "table_status",
    "maps_opened",
    "bookmarks_opened",
    "help_opened",
)


def point_from_click(click_data: dict | None, trace_layers: list[str]) -> MapPoint | None:
    """Build a ``MapPoint`` from Plotly ``clickData``."""
    points = (click_data or {}).get("points") or []
    if not points:
        return None
    point = points[0]
    curve = point.get("curveNumber")
    layer_id = None
    if isinstance(curve, int) and 0 <= curve < len(trace_layers):
        layer_id = trace_layers[curve]
    feature_id = point.get("location", point.get("customdata"))
    return MapPoint(
        lng=point.get("lon"),
        lat=point.get("lat"),
        layer_id=layer_id,
        feature_id=None if feature_id is None else str(feature_id),
    )


def view_from_relayout(
    relayout_data: dict | None,
) -> tuple[tuple[float, float] | None, float | None]:
    """Extract ``((lat, lng), zoom)`` from Plotly ``relayoutData`` of a map subplot."""
    relayout_data = relayout_data or {}
    center = relayout_data.get("map.center")
    zoom = relayout_data.get("map.zoom")
    lat_lng = None
    if isinstance(center, dict) and "lat" in center and "lon" in center:
        lat_lng = (float(center["lat"]), float(center["lon"]))
    return lat_lng, None if zoom is None else float(zoom)


def collect_updates(
    lode_app: LodeApp, surface: DashUiSurface, seen: dict[str, Any]
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Render what changed since the revisions in ``seen``. Runs on the loop thread."""
    updates: dict[str, Any] = {}
    view = lode_app.view
    revisions: dict[str, Any] = {
        "generation": view.generation,
        "legend": [view.generation, [e.enabled for e in lode_app.legend.entries]],
        "table": lode_app.table.revision,
        "surface": surface.revision,
    }

    if lode_app.map is not None:
        engine = lode_app.map.engine
        revisions["map"] = engine.revision
        if seen.get("map") != engine.revision:
            updates["figure"] = engine.figure()
            popup = engine.popup
            updates["popup_content"] = create_popup_content(popup[1] if popup else None)
            updates["popup_style"] = {**POPUP_STYLE, "display": "block" if popup else "none"}

    if seen.get("generation") != revisions["generation"]:
        current = view.current
        updates["title"] = current.display_title
        updates["subtitle"] = current.subtitle or ""
        if seen:
            updates["search_value"] = None

    if seen.get("legend") != revisions["legend"]:
        updates["legend"] = create_legend(lode_app.legend.entries)

    if seen.get("table") != revisions["table"]:
        table = lode_app.table
        updates["row_data"] = table.rows()
        updates["column_defs"] = column_defs(table.columns)
        updates["table_status"] = table.message or ""

    if seen.get("surface") != revisions["surface"]:
        updates["maps_opened"] = surface.open_popup == MAPS_POPUP
        updates["bookmarks_opened"] = surface.open_popup == BOOKMARKS_POPUP
        if seen.get("help", 0) != surface.help_requests:
            updates["help_opened"] = True
    revisions["help"] = surface.help_requests

    return updates, revisions


def register_callbacks(
    app, runtime: LoopRuntime, lode_app: LodeApp, surface: DashUiSurface
) -> None:
    """Register every callback of the viewer page on ``app``."""

    def _bump(action: int | None) -> int:
        return (action or 0) + 1

    @app.callback(
        [Output(component, prop) for component, prop in _refresh_outputs()]
        + [Output(REVISIONS_STORE_ID, "data")],
        Input(REFRESH_ID, "n_intervals"),
        Input(ACTION_STORE_ID, "data"),
        State(REVISIONS_STORE_ID, "data"),
    )
    def refresh_view(n_intervals, action, seen):
        updates, revisions = runtime.call(collect_updates, lode_app, surface, seen or {})
        if not updates and revisions == seen:
            raise PreventUpdate
        return [updates.get(key, no_update) for key in UPDATE_KEYS] + [revisions]

    @app.callback(
        Output(SEARCH_ID, "options"),
        Input(SEARCH_ID, "search_value"),
        State(SEARCH_ID, "value"),
    )
    def update_search_options(search_value, value):
        items = lode_app.search.find(search_value or "")
        selected = lode_app.search.get(value) if value else None
        if selected is not None and selected not in items:
            items = [selected, *items]
        return [{"label": item.label, "value": item.id} for item in items]

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input(SEARCH_ID, "value"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def select_search_item(value, action):
        if not value:
            raise PreventUpdate
        runtime.call(lode_app.search.select, value)
        return _bump(action)

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input({"type": LEGEND_ENTRY_TYPE, "index": ALL}, "checked"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def toggle_legend_entry(checked_values, action):
        triggered = ctx.triggered_id
        if not isinstance(triggered, dict):
            raise PreventUpdate
        enabled = bool(ctx.triggered[0]["value"])

        def _set_enabled():
            try:
                lode_app.legend.set_enabled(triggered["index"], enabled)
            except KeyError as e:
                # Checkbox of a legend replaced by a map switch
                logger.debug(f"Stale legend toggle ignored: {e}")

        runtime.call(_set_enabled)
        return _bump(action)

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input(OPACITY_ID, "value"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def change_opacity(value, action):
        if value is None:
            raise PreventUpdate
        runtime.call(lode_app.view.on_opacity_changed, float(value) / 100)
        return _bump(action)

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input(MAP_ID, "clickData"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def click_map(click_data, action):
        if lode_app.map is None:
            raise PreventUpdate

        def _click():
            point = point_from_click(click_data, lode_app.map.engine.trace_layers)
            if point is not None:
                lode_app.map.notify_clicked(point)

        runtime.call(_click)
        return _bump(action)

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input(MAP_ID, "relayoutData"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def move_map(relayout_data, action):
        if lode_app.map is None:
            raise PreventUpdate
        center, zoom = view_from_relayout(relayout_data)
        if center is None and zoom is None:
            raise PreventUpdate

        def _settle():
            engine = lode_app.map.engine
            lat, lng = center if center is not None else (engine.center[1], engine.center[0])
            engine.track_view((lng, lat), zoom if zoom is not None else engine.zoom)
            if center is not None:
                lode_app.map.notify_pan_settled(lat, lng)
            if zoom is not None:
                lode_app.map.notify_zoom_settled(zoom)

        runtime.call(_settle)
        # Camera moves do not change the rendered state
        raise PreventUpdate

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input(POPUP_CLOSE_ID, "n_clicks"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def close_popup(n_clicks, action):
        if not n_clicks or lode_app.map is None:
            raise PreventUpdate
        runtime.call(lode_app.map.hide_popup)
        return _bump(action)

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input(HOME_ID, "n_clicks"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def go_home(n_clicks, action):
        if not n_clicks:
            raise PreventUpdate
        runtime.call(lode_app.on_home)
        return _bump(action)

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input(HELP_ID, "n_clicks"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def open_help(n_clicks, action):
        if not n_clicks:
            raise PreventUpdate
        runtime.call(lode_app.on_help)
        return _bump(action)

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input(MAPS_BUTTON_ID, "n_clicks"),
        Input(BOOKMARKS_BUTTON_ID, "n_clicks"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def toggle_menu(maps_clicks, bookmarks_clicks, action):
        popup = {MAPS_BUTTON_ID: MAPS_POPUP, BOOKMARKS_BUTTON_ID: BOOKMARKS_POPUP}.get(
            ctx.triggered_id
        )
        if popup is None:
            raise PreventUpdate
        runtime.call(surface.toggle_popup, popup)
        return _bump(action)

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input({"type": MAP_ITEM_TYPE, "index": ALL}, "n_clicks"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def select_map(n_clicks, action):
        triggered = ctx.triggered_id
        if not isinstance(triggered, dict) or not any(n_clicks or []):
            raise PreventUpdate
        runtime.call(lode_app.view.on_map_selected, triggered["index"])
        return _bump(action)

    @app.callback(
        Output(ACTION_STORE_ID, "data", allow_duplicate=True),
        Input({"type": BOOKMARK_ITEM_TYPE, "index": ALL}, "n_clicks"),
        State(ACTION_STORE_ID, "data"),
        prevent_initial_call=True,
    )
    def select_bookmark(n_clicks, action):
        triggered = ctx.triggered_id
        if not isinstance(triggered, dict) or not any(n_clicks or []):
            raise PreventUpdate
        bookmark = lode_app.config.bookmarks[triggered["index"]]
        runtime.call(lode_app.on_bookmark_selected, bookmark)
        return _bump(action)

    logger.info("Viewer callbacks registered")


def _refresh_outputs() -> list[tuple[str, str]]:
    return [
        (MAP_ID, "figure"),
        (POPUP_CONTENT_ID, "children"),
        (POPUP_ID, "style"),
        (LEGEND_ID, "children"),
        (TITLE_ID, "children"),
        (SUBTITLE_ID, "children"),
        (SEARCH_ID, "value"),
        (TABLE_ID, "rowData"),
        (TABLE_ID, "columnDefs"),
        (TABLE_STATUS_ID, "children"),
        (MAPS_POPOVER_ID, "opened"),
        (BOOKMARKS_POPOVER_ID, "opened"),
        (HELP_MODAL_ID, "opened"),
    ]

"""
Layout of the viewer page.

    +-----------------------------------------------------------+
    | title / subtitle            search      home maps bkm help |
    +---------------+-------------------------------------------+
    | legend        | map                                       |
    | opacity       |                          feature popup    |
    +---------------+-------------------------------------------+
    | table                                                      |
    +-----------------------------------------------------------+
"""

from collections.abc import Sequence
from typing import Any

import dash_ag_grid as dag
import dash_mantine_components as dmc
from dash import dcc, html
from dash_iconify import DashIconify

from lode.core.application import LodeApp
from lode.core.legend import LegendEntry
from lode.models.map_definition import FieldSpec
from lode.models.styling import to_css

# Component ids
SEARCH_ID = "lode-search"
MAP_ID = "lode-map"
LEGEND_ID = "lode-legend"
LEGEND_ENTRY_TYPE = "lode-legend-entry"
OPACITY_ID = "lode-opacity"
TITLE_ID = "lode-title"
SUBTITLE_ID = "lode-subtitle"
HOME_ID = "lode-home"
MAPS_BUTTON_ID = "lode-maps-button"
MAPS_POPOVER_ID = "lode-maps-popover"
MAP_ITEM_TYPE = "lode-map-item"
BOOKMARKS_BUTTON_ID = "lode-bookmarks-button"
BOOKMARKS_POPOVER_ID = "lode-bookmarks-popover"
BOOKMARK_ITEM_TYPE = "lode-bookmark-item"
HELP_ID = "lode-help"
HELP_MODAL_ID = "lode-help-modal"
POPUP_ID = "lode-popup"
POPUP_CONTENT_ID = "lode-popup-content"
POPUP_CLOSE_ID = "lode-popup-close"
TABLE_ID = "lode-table"
TABLE_STATUS_ID = "lode-table-status"
UNAVAILABLE_ID = "lode-map-unavailable"
REFRESH_ID = "lode-refresh"
ACTION_STORE_ID = "lode-action"
REVISIONS_STORE_ID = "lode-revisions"

_NUMERIC_FIELD_TYPES = {"number", "percent", "currency"}

POPUP_STYLE = {
    "position": "absolute",
    "top": 10,
    "right": 10,
    "maxWidth": 320,
    "zIndex": 10,
}


def _menu_button(component_id: str, icon: str, title: str) -> dmc.ActionIcon:
    return dmc.ActionIcon(
        DashIconify(icon=icon, width=22),
        id=component_id,
        variant="subtle",
        color="gray",
        size="lg",
        title=title,
    )


def create_legend(entries: Sequence[LegendEntry]) -> list[Any]:
    """One checkbox per legend entry, with the entry color as a swatch."""
    return [
        dmc.Group(
            [
                dmc.Checkbox(
                    id={"type": LEGEND_ENTRY_TYPE, "index": entry.id},
                    checked=entry.enabled,
                    size="xs",
                ),
                dmc.ColorSwatch(color=to_css(entry.color), size=14),
                dmc.Text(entry.label, size="sm"),
            ],
            gap="xs",
            wrap="nowrap",
        )
        for entry in entries
    ]


def column_defs(columns: Sequence[FieldSpec]) -> list[dict[str, Any]]:
    defs = []
    for column in columns:
        col: dict[str, Any] = {"field": column.id, "headerName": column.label}
        if column.type in _NUMERIC_FIELD_TYPES:
            col["type"] = "numericColumn"
            col["filter"] = "agNumberColumnFilter"
        defs.append(col)
    return defs


def create_popup_content(html_content: str | None) -> Any:
    if not html_content:
        return None
    # Popup HTML is sanitized with bleach before it reaches the layout
    return dcc.Markdown(html_content, dangerously_allow_html=True)


def _create_header(lode_app: LodeApp) -> dmc.Group:
    nls = lode_app.nls
    current = lode_app.view.current

    maps_menu = dmc.Popover(
        [
            dmc.PopoverTarget(
                _menu_button(MAPS_BUTTON_ID, "mdi:layers-outline", nls("Maps_Title"))
            ),
            dmc.PopoverDropdown(
                dmc.Stack(
                    [
                        dmc.Button(
                            definition.title,
                            id={"type": MAP_ITEM_TYPE, "index": map_id},
                            variant="subtle",
                            justify="flex-start",
                            size="compact-sm",
                        )
                        for map_id, definition in lode_app.config.maps.items()
                    ],
                    gap=2,
                )
            ),
        ],
        id=MAPS_POPOVER_ID,
        opened=False,
        position="bottom-end",
        shadow="md",
    )

    bookmarks_menu = dmc.Popover(
        [
            dmc.PopoverTarget(
                _menu_button(BOOKMARKS_BUTTON_ID, "mdi:bookmark-outline", nls("Bookmarks_Title"))
            ),
            dmc.PopoverDropdown(
                dmc.Stack(
                    [
                        dmc.Button(
                            bookmark.label,
                            id={"type": BOOKMARK_ITEM_TYPE, "index": i},
                            variant="subtle",
                            justify="flex-start",
                            size="compact-sm",
                        )
                        for i, bookmark in enumerate(lode_app.config.bookmarks)
                    ],
                    gap=2,
                )
            ),
        ],
        id=BOOKMARKS_POPOVER_ID,
        opened=False,
        position="bottom-end",
        shadow="md",
    )

    return dmc.Group(
        [
            dmc.Stack(
                [
                    dmc.Title(current.display_title, id=TITLE_ID, order=3),
                    dmc.Text(current.subtitle or "", id=SUBTITLE_ID, size="sm", c="dimmed"),
                ],
                gap=0,
            ),
            dmc.Group(
                [
                    dcc.Dropdown(
                        id=SEARCH_ID,
                        placeholder=nls("Search_Placeholder"),
                        searchable=True,
                        clearable=True,
                        options=[],
                        style={"width": 360},
                    ),
                    _menu_button(HOME_ID, "mdi:home-outline", nls("Home_Title")),
                    maps_menu,
                    bookmarks_menu,
                    _menu_button(HELP_ID, "mdi:help-circle-outline", nls("Help_Title")),
                ],
                gap="xs",
            ),
        ],
        justify="space-between",
        p="sm",
    )


def _create_map_panel(lode_app: LodeApp) -> html.Div:
    nls = lode_app.nls
    unavailable = None
    if not lode_app.map_available:
        unavailable = dmc.Alert(
            nls("Map_Unavailable"),
            id=UNAVAILABLE_ID,
            color="red",
            icon=DashIconify(icon="mdi:alert-circle-outline"),
        )

    return html.Div(
        [
            unavailable,
            dcc.Graph(
                id=MAP_ID,
                config={"scrollZoom": True, "displayModeBar": False},
                style={"height": "100%"},
            ),
            dmc.Paper(
                [
                    dmc.Group(
                        dmc.CloseButton(id=POPUP_CLOSE_ID, size="sm"),
                        justify="flex-end",
                    ),
                    html.Div(id=POPUP_CONTENT_ID),
                ],
                id=POPUP_ID,
                shadow="md",
                p="xs",
                withBorder=True,
                style={**POPUP_STYLE, "display": "none"},
            ),
        ],
        style={"position": "relative", "height": "60vh", "flex": 1},
    )


def _create_toc(lode_app: LodeApp) -> dmc.Stack:
    nls = lode_app.nls
    return dmc.Stack(
        [
            html.Div(create_legend(lode_app.legend.entries), id=LEGEND_ID),
            dmc.Divider(),
            dmc.Text(nls("Toc_Opacity_Label"), size="sm", fw=500, title=nls("Toc_Opacity_Title")),
            dmc.Slider(
                id=OPACITY_ID,
                value=round(lode_app.view_state.opacity_level * 100),
                min=0,
                max=100,
                step=5,
                size="sm",
            ),
        ],
        gap="sm",
        p="sm",
        style={"width": 260},
    )


def _create_table_panel() -> dmc.Stack:
    return dmc.Stack(
        [
            dmc.Text(id=TABLE_STATUS_ID, size="sm", c="dimmed"),
            dag.AgGrid(
                id=TABLE_ID,
                rowData=[],
                columnDefs=[],
                defaultColDef={
                    "flex": 1,
                    "minWidth": 120,
                    "sortable": True,
                    "resizable": True,
                    "filter": True,
                },
                dashGridOptions={"pagination": True, "enableCellTextSelection": True},
                style={"width": "100%", "height": "30vh"},
                className="ag-theme-alpine",
            ),
        ],
        gap="xs",
        p="sm",
    )


def create_layout(lode_app: LodeApp, refresh_interval_ms: int = 500) -> dmc.MantineProvider:
    nls = lode_app.nls
    return dmc.MantineProvider(
        [
            dcc.Store(id=ACTION_STORE_ID, storage_type="memory", data=0),
            dcc.Store(id=REVISIONS_STORE_ID, storage_type="memory", data={}),
            dcc.Interval(id=REFRESH_ID, interval=refresh_interval_ms, n_intervals=0),
            dmc.Modal(
                dmc.Text(nls("Help_Content")),
                id=HELP_MODAL_ID,
                title=nls("Help_Title"),
                opened=False,
            ),
            _create_header(lode_app),
            dmc.Group(
                [_create_toc(lode_app), _create_map_panel(lode_app)],
                align="stretch",
                wrap="nowrap",
                gap=0,
            ),
            _create_table_panel(),
        ],
        forceColorScheme="light",
    )

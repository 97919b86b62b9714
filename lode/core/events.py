"""
Event emitter used by the viewer collaborators.

Each collaborator (map, legend, table, search) inherits from ``Evented`` and
raises its events with ``emit``. The view sync controller subscribes once at
construction.
"""

from collections.abc import Callable
from typing import Any

from lode.configs.logging_init import logger

# Map events
STYLE_READY = "StyleReady"
PAN_SETTLED = "PanSettled"
ZOOM_SETTLED = "ZoomSettled"
CLICKED = "Clicked"

# Legend / table / search events
LEGEND_CHANGED = "LegendChanged"
TABLE_CHANGED = "TableChanged"
SEARCH_SELECTED = "SearchSelected"

Handler = Callable[..., Any]


class Evented:
    """Minimal synchronous event emitter."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> Handler:
        """Register ``handler`` for ``event`` and return it (usable as a decorator)."""
        self._handlers.setdefault(event, []).append(handler)
        return handler

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def has_handlers(self, event: str) -> bool:
        return bool(self._handlers.get(event))

    def emit(self, event: str, *args: Any) -> None:
        """Call every handler of ``event`` in registration order.

        A failing handler is logged and does not prevent delivery to the others.
        """
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception as e:
                logger.error(
                    f"{type(self).__name__}: handler for '{event}' failed: {e}", exc_info=True
                )

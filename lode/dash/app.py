"""
Factory module for creating and configuring the viewer Dash application.
"""

from dataclasses import dataclass

import dash

from lode.configs.loader import load_viewer_config
from lode.configs.logging_init import logger
from lode.configs.settings_models import Settings
from lode.core.application import LodeApp
from lode.core.persisted_state import JsonFileStore, KeyValueStore, MemoryStore
from lode.core.table_binding import HttpDatasetFetcher
from lode.dash.callbacks import register_callbacks
from lode.dash.layout import create_layout
from lode.dash.runtime import LoopRuntime
from lode.dash.surface import DashUiSurface
from lode.engine.figure_engine import FigureEngine


@dataclass
class ViewerServer:
    app: dash.Dash
    runtime: LoopRuntime
    lode_app: LodeApp
    surface: DashUiSurface

    def run(self, host: str, port: int, debug: bool = False) -> None:
        try:
            # The loop thread holds the controllers: one process, no reloader
            self.app.run(host=host, port=port, debug=debug, use_reloader=False)
        finally:
            self.runtime.stop()


def _create_store(settings: Settings) -> KeyValueStore:
    if settings.viewer.state_file is None:
        return MemoryStore()
    logger.info(f"Persisting view state to {settings.viewer.state_file}")
    return JsonFileStore(settings.viewer.state_file)


def create_dash_app(settings: Settings) -> ViewerServer:
    """
    Create and configure the viewer application.

    Loads the viewer configuration, builds the controllers on a dedicated
    event loop thread, starts the initial style and table loads, and
    registers the page layout and callbacks.

    Args:
        settings: Application settings

    Returns:
        ViewerServer: Dash application with its runtime and controllers

    Raises:
        ConfigurationError: If the viewer configuration cannot be loaded
    """
    viewer = settings.viewer
    config = load_viewer_config(viewer.config_dir, timeout=viewer.request_timeout)

    runtime = LoopRuntime(timeout=viewer.request_timeout)
    runtime.start()

    surface = DashUiSurface()
    lode_app = LodeApp(
        config,
        viewer,
        store=_create_store(settings),
        fetcher=HttpDatasetFetcher(timeout=viewer.request_timeout, base_dir=viewer.config_dir),
        engine_factory=lambda token: FigureEngine(token, timeout=viewer.request_timeout),
        ui=surface,
    )
    runtime.call(lode_app.start)

    app = dash.Dash(
        __name__,
        suppress_callback_exceptions=True,
        title=lode_app.view.current.title,
    )

    # Configure Flask's logger to use custom logging settings
    server = app.server
    server.logger.handlers = logger.handlers
    server.logger.setLevel(logger.level)

    app.layout = create_layout(lode_app, refresh_interval_ms=settings.dash.refresh_interval_ms)
    register_callbacks(app, runtime, lode_app, surface)

    logger.info(f"Viewer application created with {len(config.maps)} maps")
    return ViewerServer(app=app, runtime=runtime, lode_app=lode_app, surface=surface)

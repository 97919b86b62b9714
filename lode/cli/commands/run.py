from pathlib import Path
from typing import Annotated

import typer

from lode.cli.utils.rich_utils import print_command, print_status
from lode.configs.config import settings
from lode.configs.logging_init import logger
from lode.core.exceptions import ConfigurationError


def register_run_command(app: typer.Typer):
    @app.command("run")
    def run(
        config_dir: Annotated[
            Path | None,
            typer.Option("--config-dir", "-c", help="Viewer configuration directory"),
        ] = None,
        host: Annotated[str | None, typer.Option("--host", help="Host to bind")] = None,
        port: Annotated[int | None, typer.Option("--port", help="Port to bind")] = None,
        state_file: Annotated[
            Path | None,
            typer.Option("--state-file", help="JSON file persisting the view state"),
        ] = None,
        root_url: Annotated[
            str | None,
            typer.Option("--root-url", help="Prefix of the table dataset URLs"),
        ] = None,
        locale: Annotated[str | None, typer.Option("--locale", help="UI language")] = None,
        debug: bool = typer.Option(False, "--debug", help="Run Dash in debug mode"),
    ):
        """
        Serve the map viewer.

        Options override the LODE_* environment settings.
        """
        # Imported here so that other commands do not load Dash
        from lode.dash.app import create_dash_app

        if config_dir is not None:
            settings.viewer.config_dir = config_dir
        if state_file is not None:
            settings.viewer.state_file = state_file
        if root_url is not None:
            settings.viewer.root_url = root_url
        if locale is not None:
            settings.viewer.locale = locale
        host = host or settings.dash.host
        port = port or settings.dash.port

        print_command(f"run --config-dir {settings.viewer.config_dir}")
        try:
            server = create_dash_app(settings)
        except ConfigurationError as e:
            print_status(f"Unable to start the viewer - {e}", "error")
            raise typer.Exit(code=1)

        print_status(f"Serving the viewer on http://{host}:{port}", "success")
        logger.info(f"Starting Dash server on {host}:{port}")
        server.run(host=host, port=port, debug=debug or settings.dash.debug)

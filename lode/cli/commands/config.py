from pathlib import Path
from typing import Annotated

import typer

from lode.cli.utils.rich_utils import (
    print_catalog,
    print_command,
    print_status,
    print_summary,
)
from lode.configs.loader import load_viewer_config
from lode.core.exceptions import ConfigurationError


def register_config_commands(app: typer.Typer):
    @app.command("check-config")
    def check_config(
        config_dir: Annotated[
            Path,
            typer.Option("--config-dir", "-c", help="Viewer configuration directory"),
        ] = Path("./config"),
        show_maps: bool = typer.Option(False, "--show-maps", help="List the map catalog"),
    ):
        """
        Load and validate a viewer configuration directory.

        Exits with status 1 when the configuration cannot be loaded.
        """
        print_command(f"check-config --config-dir {config_dir}")
        try:
            config = load_viewer_config(config_dir)
        except ConfigurationError as e:
            print_status(f"Invalid configuration - {e}", "error")
            raise typer.Exit(code=1)

        print_status(f"Configuration in {config_dir} is valid", "success")
        if not config.access_token:
            print_status(
                "No Mapbox access token in credentials: the map will be unavailable", "warning"
            )
        print_summary("Summary:", config.summary())

        if show_maps:
            print_catalog(config.maps)

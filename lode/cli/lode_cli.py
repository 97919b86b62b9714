import typer

from lode.cli.commands.config import register_config_commands
from lode.cli.commands.run import register_run_command
from lode.cli.commands.standalone import register_standalone_commands
from lode.configs.logging_init import initialize_loggers

app = typer.Typer(help="Lode: thematic map viewer")

register_standalone_commands(app)
register_config_commands(app)
register_run_command(app)


@app.callback()
def verbose_callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging", is_eager=True
    ),
    verbose_level: str | None = typer.Option(
        None,
        "--verbose-level",
        "-vl",
        help="Logging level, defaults to LODE_LOGGING_VERBOSITY_LEVEL",
        is_eager=True,
    ),
):
    """Set up logging for all commands"""
    initialize_loggers("DEBUG" if verbose else verbose_level)


def main():
    app()


if __name__ == "__main__":
    main()

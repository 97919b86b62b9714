import typer

from lode.version import get_version


def register_standalone_commands(app: typer.Typer):
    @app.command("version")
    def version_cmd():
        """Show version information"""
        package_version = get_version()
        if package_version is None:
            typer.echo("Lode version: unknown (not installed)")
        else:
            typer.echo(f"Lode version: {package_version}")

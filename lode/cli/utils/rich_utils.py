import json
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lode.models.map_definition import MapConfigCatalog

console = Console()

STATUS_STYLES = {
    "loading": ("bold yellow", ":hourglass:"),
    "success": ("bold green", ":white_check_mark:"),
    "error": ("bold red", ":x:"),
    "info": ("bold blue", ":blue_book:"),
    "warning": ("bold orange1", ":warning:"),
}


def print_command(command: str) -> None:
    console.print(
        Panel.fit(
            f"[bold magenta]lode {command}[/]",
            title="[cyan]Command[/]",
            border_style="bright_blue",
        )
    )


def print_status(statement: str, mode: str = "info") -> None:
    """Print a bullet line prefixed with the emoji of ``mode``."""
    if mode not in STATUS_STYLES:
        raise ValueError(f"Invalid mode: {mode}")
    style, emoji = STATUS_STYLES[mode]
    console.print(f"• [{style}]{emoji} {statement}[/]")


def print_summary(title: str, data: dict[str, Any]) -> None:
    console.print(f"• [bold magenta]{title}[/]")
    console.print_json(json.dumps(data, default=str))


def print_catalog(catalog: MapConfigCatalog) -> None:
    """One row per map, in catalog order."""
    table = Table(title="Map catalog", box=box.ROUNDED, header_style="bold magenta")
    for column in ("id", "title", "layers", "legend", "table"):
        table.add_column(column, style="cyan")
    for map_id, definition in catalog.items():
        table.add_row(
            map_id,
            definition.title,
            str(len(definition.layers)),
            str(len(definition.legend)),
            definition.table_url or "-",
        )
    console.print(table)

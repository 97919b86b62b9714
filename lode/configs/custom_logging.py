import logging
import sys
from io import StringIO
from pathlib import Path

import pydantic
from colorlog import ColoredFormatter
from rich.console import Console
from rich.pretty import Pretty
from rich.theme import Theme

LOG_FORMAT = (
    "%(asctime)s - %(log_color)s%(levelname)s%(reset)s - "
    "%(module_path)s:%(bold)s%(lineno)d%(reset)s - %(message)s"
)

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

pretty_theme = Theme(
    {
        "repr.attrib_name": "yellow",
        "repr.number": "cyan",
        "repr.str": "green",
        "repr.none": "dim",
    }
)


def summarize_model(model: pydantic.BaseModel, max_fields: int = 4) -> str:
    """
    One-line summary of a model: identifying fields first, the rest elided.

    Container values are reduced to their length, so map definitions log
    without their GeoJSON.
    """
    name = type(model).__name__
    data = model.model_dump(exclude_defaults=True)
    keys = [k for k in ("id", "name", "label", "title") if k in data]
    keys += [k for k in data if k not in keys]

    parts = []
    for key in keys[:max_fields]:
        value = data[key]
        if isinstance(value, list | tuple | dict):
            parts.append(f"{key}=<{len(value)}>")
        else:
            parts.append(f"{key}={value!r}")
    if len(keys) > max_fields:
        parts.append("...")
    return f"{name}({', '.join(parts)})"


def module_path(pathname: str) -> str:
    """Path of a source file relative to the lode package, e.g. ``lode/core/legend.py``."""
    parts = Path(pathname).parts
    if "lode" in parts:
        index = len(parts) - 1 - parts[::-1].index("lode")
        return "/".join(parts[index:])
    return Path(pathname).name


class LodeFormatter(ColoredFormatter):
    """Colored formatter that summarizes models and pretty-prints containers with Rich."""

    def __init__(self, *args, width: int = 100, **kwargs):
        super().__init__(*args, **kwargs)
        self.width = width

    def _pretty(self, obj) -> str:
        console = Console(file=StringIO(), width=self.width, theme=pretty_theme, highlight=True)
        console.print(Pretty(obj))
        return console.file.getvalue().rstrip()

    def format(self, record):
        if isinstance(record.msg, pydantic.BaseModel):
            record.msg = summarize_model(record.msg)
        elif isinstance(record.msg, dict | list | tuple | set):
            record.msg = self._pretty(record.msg)
        record.module_path = module_path(record.pathname or "")
        return super().format(record)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the shared ``lode`` logger and return it.

    Calling it again replaces the handler, so modules holding the logger keep
    working after the level changes.
    """
    logger = logging.getLogger("lode")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        LodeFormatter(
            LOG_FORMAT,
            datefmt="%H:%M:%S",
            log_colors=LEVEL_COLORS,
            secondary_log_colors={"bold": dict.fromkeys(LEVEL_COLORS, "bold")},
        )
    )
    logger.handlers = [handler]
    return logger

"""
The ``lode`` logger, configured once from settings.
Modules import ``logger`` from here rather than calling ``logging.getLogger``.
"""

import logging

from lode.configs.custom_logging import setup_logging
from lode.configs.settings_models import Settings

__all__ = ["logger", "initialize_loggers"]

logger = setup_logging(level=Settings().logging.verbosity_level)


def initialize_loggers(verbose_level: str | None = None) -> logging.Logger:
    """Reconfigure the level, e.g. after the CLI parsed ``--verbose-level``."""
    return setup_logging(level=verbose_level or Settings().logging.verbosity_level)

"""
Version retrieval module.

Uses the installed distribution metadata, falling back to pyproject.toml
when running from a source checkout.
"""

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import tomli

from lode.configs.logging_init import logger

PACKAGE_NAME = "lode-viewer"


def get_version() -> str | None:
    """
    Retrieve the project version.

    Returns:
        str | None: Project version, or None when it cannot be determined
    """
    try:
        return version(PACKAGE_NAME)
    except PackageNotFoundError:
        pass

    pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
    if not pyproject_path.is_file():
        return None
    with open(pyproject_path, "rb") as f:
        pyproject_data = tomli.load(f)

    project_version = pyproject_data.get("project", {}).get("version")
    logger.debug(f"Project version from {pyproject_path}: {project_version}")
    return project_version

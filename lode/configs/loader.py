"""
Viewer configuration loading.

Reads the configuration files of a viewer from one directory, once, before
the application is constructed:

    config/
      maps.yaml         {map_id: map definition}
      search.yaml       {items: [[id, name, minLng, minLat, maxLng, maxLat], ...],
                         field, layer, color}
      bookmarks.yaml    [{label, extent}, ...]   (optional)
      credentials.yaml  {mapbox: {accessToken}}  (optional)
      nls.yaml          {locale: {key: text}}    (optional)

Each file may also be a ``.yml`` or ``.json`` file. ``${VAR}`` / ``$VAR``
references are replaced from the environment. GeoJSON source data given as a
path is read relative to the configuration directory; given as an http(s)
URL it is downloaded.
"""

import json
import os
import re
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import ValidationError

from lode.configs.logging_init import logger
from lode.core.exceptions import ConfigurationError
from lode.models.map_definition import MapConfigCatalog
from lode.models.search import Bookmark, SearchConfig
from lode.models.viewer_config import Credentials, ViewerConfiguration

CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


def substitute_env_vars(config: Any) -> Any:
    """
    Recursively substitute environment variables in the configuration.
    Handles ``${VAR}`` and ``$VAR``; unknown variables are left untouched.
    """
    if isinstance(config, dict):
        return {k: substitute_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [substitute_env_vars(item) for item in config]
    elif isinstance(config, str) and "$" in config:
        return os.path.expandvars(config)
    return config


def find_config_file(config_dir: Path, name: str) -> Path | None:
    for suffix in CONFIG_SUFFIXES:
        candidate = config_dir / f"{name}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    return substitute_env_vars(data)


def _read_optional(config_dir: Path, name: str, default: Any) -> Any:
    path = find_config_file(config_dir, name)
    if path is None:
        logger.debug(f"No {name} configuration in {config_dir}; using defaults")
        return default
    data = read_config_file(path)
    return default if data is None else data


def _read_required(config_dir: Path, name: str) -> Any:
    path = find_config_file(config_dir, name)
    if path is None:
        raise ConfigurationError(f"Missing {name} configuration (.yaml/.yml/.json) in {config_dir}")
    return read_config_file(path)


_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


def resolve_geojson(data: Any, config_dir: Path, timeout: float = 30.0) -> Any:
    """Inline a GeoJSON source given as a relative path or an http(s) URL."""
    if not isinstance(data, str):
        return data

    if _URL_RE.match(data):
        logger.info(f"Downloading GeoJSON source {data}")
        try:
            response = httpx.get(data, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ConfigurationError(f"Cannot download GeoJSON source {data}: {e}") from e

    path = Path(data)
    if not path.is_absolute():
        path = config_dir / path
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read GeoJSON source {path}: {e}") from e


def _resolve_sources(raw_maps: dict[str, Any], config_dir: Path, timeout: float) -> dict[str, Any]:
    cache: dict[str, Any] = {}
    resolved: dict[str, Any] = {}
    for map_id, definition in raw_maps.items():
        definition = dict(definition)
        sources_key = "dataSources" if "dataSources" in definition else "data_sources"
        sources = []
        for source in definition.get(sources_key) or []:
            source = dict(source)
            data = dict(source.get("data") or {})
            payload = data.get("data")
            if isinstance(payload, str):
                # Several maps usually share the same boundary file
                if payload not in cache:
                    cache[payload] = resolve_geojson(payload, config_dir, timeout)
                data["data"] = cache[payload]
            source["data"] = data
            sources.append(source)
        definition[sources_key] = sources
        resolved[map_id] = definition
    return resolved


def load_viewer_config(config_dir: Path | str, timeout: float = 30.0) -> ViewerConfiguration:
    """Load and validate every configuration file of ``config_dir``."""
    config_dir = Path(config_dir)
    if not config_dir.is_dir():
        raise ConfigurationError(f"Configuration directory {config_dir} does not exist")

    raw_maps = _read_required(config_dir, "maps")
    if not isinstance(raw_maps, dict):
        raise ConfigurationError("maps configuration must map each map id to its definition")
    raw_search = _read_required(config_dir, "search")

    try:
        config = ViewerConfiguration(
            maps=MapConfigCatalog.from_config(_resolve_sources(raw_maps, config_dir, timeout)),
            search=SearchConfig.model_validate(raw_search),
            bookmarks=[
                Bookmark.model_validate(b) for b in _read_optional(config_dir, "bookmarks", [])
            ],
            credentials=Credentials.model_validate(
                _read_optional(config_dir, "credentials", {})
            ),
            nls=_read_optional(config_dir, "nls", {}),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid viewer configuration in {config_dir}: {e}") from e

    logger.info(f"Loaded viewer configuration from {config_dir}: {len(config.maps)} maps")
    return config

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# [[minLng, minLat], [maxLng, maxLat]]
ExtentSetting = list[list[float]]


class LoggingConfig(BaseSettings):
    verbosity_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_prefix="LODE_LOGGING_")


class DashConfig(BaseSettings):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8050)
    debug: bool = Field(default=False)
    refresh_interval_ms: int = Field(
        default=500, description="Polling period of the render snapshot interval"
    )

    model_config = SettingsConfigDict(env_prefix="LODE_DASH_")


class ViewerConfig(BaseSettings):
    """Viewer behaviour and the location of the viewer configuration files."""

    config_dir: Path = Field(
        default=Path("./config"),
        description="Directory holding maps, search, bookmarks, credentials and nls files",
    )
    root_url: str = Field(
        default="", description="Prefix prepended to every map's table_url when fetching"
    )
    state_file: Optional[Path] = Field(
        default=None,
        description="JSON file persisting the view state; in-memory when not set",
    )
    locale: str = Field(default="en")

    search_padding: int = Field(default=30, description="Padding in px when fitting to a search")
    home_extent: ExtentSetting = Field(default=[[-173.457, 41.846], [-17.324, 75.848]])
    max_extent: ExtentSetting = Field(default=[[-162.0, 41.0], [-32.0, 83.5]])

    default_center_lat: float = Field(default=60.0)
    default_center_lng: float = Field(default=-96.0)
    default_zoom: float = Field(default=3.0)
    default_opacity: float = Field(default=0.75)

    request_timeout: float = Field(default=30.0)

    model_config = SettingsConfigDict(env_prefix="LODE_VIEWER_")


class Settings(BaseSettings):
    dash: DashConfig = Field(default_factory=DashConfig)
    viewer: ViewerConfig = Field(default_factory=ViewerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(env_prefix="LODE_")

"""
Viewer configuration bundle.

Everything loaded from the configuration directory before the application
is constructed: the map catalog, the search table, bookmarks, credentials
and localized strings.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lode.models.map_definition import MapConfigCatalog
from lode.models.search import Bookmark, SearchConfig


class MapboxCredentials(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str | None = Field(default=None, alias="accessToken")

    @field_validator("access_token", mode="after")
    @classmethod
    def drop_unresolved(cls, v: str | None) -> str | None:
        # "${MAPBOX_ACCESS_TOKEN}" left in place when the variable is not set
        if v is None or not v.strip() or v.startswith("$"):
            return None
        return v


class Credentials(BaseModel):
    mapbox: MapboxCredentials = Field(default_factory=MapboxCredentials)


class ViewerConfiguration(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    maps: MapConfigCatalog
    search: SearchConfig
    bookmarks: list[Bookmark] = Field(default_factory=list)
    credentials: Credentials = Field(default_factory=Credentials)
    nls: dict[str, dict[str, str]] = Field(
        default_factory=dict, description="Localized strings: {locale: {key: text}}"
    )

    @property
    def access_token(self) -> str | None:
        return self.credentials.mapbox.access_token

    def summary(self) -> dict[str, Any]:
        return {
            "maps": list(self.maps),
            "search_items": len(self.search.items),
            "search_layer": self.search.layer,
            "bookmarks": len(self.bookmarks),
            "locales": sorted(self.nls),
            "has_access_token": bool(self.access_token),
        }

"""
Map definition models.

A map definition describes one thematic map of the viewer: its base style,
the data sources and layers drawn on top of it, the legend classifying the
features, the fields shown in popups and in the table, and where its table
dataset is fetched from.

Example YAML (``maps.yaml``):
    csd-income:
      title: Median income
      subtitle: Census subdivisions, 2021
      style: mapbox://styles/lode/csd-basemap
      dataSources:
        - name: csd
          data:
            type: geojson
            data: data/csd.geojson
      layers:
        - id: csd-fill
          type: fill
          source: csd
      legend:
        - label: Under 50k
          color: [255, 237, 160, 1]
          value: ["<", ["get", "income"], 50000]
        - label: Other
          color: [240, 59, 32, 1]
      fields:
        - id: name
          label: Name
      clickableLayers: [csd-fill]
      tableUrl: data/csd-income.json
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from lode.core.exceptions import ConfigurationError
from lode.models.styling import RGBA, parse_color


class _ConfigModel(BaseModel):
    """Immutable config model accepting snake_case and camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class DataSource(_ConfigModel):
    """A named data source, added to the render surface after its style has loaded."""

    name: str
    data: dict[str, Any] = Field(
        description="Render-engine source definition, e.g. {'type': 'geojson', 'data': {...}}"
    )

    @property
    def is_clustered(self) -> bool:
        return bool(self.data.get("cluster", False))

    @property
    def geojson(self) -> dict[str, Any] | str | None:
        """The GeoJSON payload (or its URL) carried by the source definition."""
        return self.data.get("data")


class LayerSpec(_ConfigModel):
    """Render-engine layer definition; unknown keys are passed through verbatim."""

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel, extra="allow"
    )

    id: str
    type: Literal["fill", "line", "circle", "symbol"] = "fill"
    source: str | None = None
    paint: dict[str, Any] = Field(default_factory=dict)
    filter: Any = None

    def to_engine(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class LegendItemSpec(_ConfigModel):
    """A legend classification: features matching ``value`` are drawn in ``color``."""

    label: str
    color: RGBA
    value: Any = Field(default=None, description="Filter expression; None for the fallback item")
    title: str | None = None

    @field_validator("color", mode="before")
    @classmethod
    def validate_color(cls, v: Any) -> RGBA:
        return parse_color(v)


class FieldSpec(_ConfigModel):
    id: str
    label: str
    type: Literal["string", "number", "percent", "currency"] = "string"


class MapDefinition(_ConfigModel):
    """One entry of the map catalog."""

    id: str
    title: str
    full_title: str | None = None
    subtitle: str | None = None
    style: str
    data_sources: list[DataSource] = Field(default_factory=list)
    layers: list[LayerSpec] = Field(default_factory=list)
    legend: list[LegendItemSpec] = Field(default_factory=list)
    fields: list[FieldSpec] = Field(default_factory=list)
    clickable_layers: list[str] = Field(default_factory=list)
    table_url: str | None = None
    table_fields: list[FieldSpec] | None = None

    @property
    def layer_ids(self) -> list[str]:
        return [layer.id for layer in self.layers]

    @property
    def display_title(self) -> str:
        return self.full_title or self.title

    @property
    def table_columns(self) -> list[FieldSpec]:
        return self.table_fields if self.table_fields is not None else self.fields

    def source(self, name: str) -> DataSource | None:
        return next((s for s in self.data_sources if s.name == name), None)


class MapConfigCatalog(Mapping[str, MapDefinition]):
    """Ordered, read-only mapping of map id to map definition, loaded once."""

    def __init__(self, maps: Mapping[str, MapDefinition]):
        if not maps:
            raise ConfigurationError("The map catalog is empty: at least one map is required")
        self._maps = dict(maps)

    @classmethod
    def from_config(cls, raw: Mapping[str, Mapping[str, Any]]) -> MapConfigCatalog:
        """Build a catalog from ``{id: definition}``, the id defaulting to the key."""
        maps: dict[str, MapDefinition] = {}
        for map_id, definition in raw.items():
            maps[map_id] = MapDefinition.model_validate({"id": map_id, **definition})
        return cls(maps)

    def __getitem__(self, map_id: str) -> MapDefinition:
        return self._maps[map_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._maps)

    def __len__(self) -> int:
        return len(self._maps)

    @property
    def first(self) -> MapDefinition:
        return next(iter(self._maps.values()))

    def resolve(self, map_id: str | None) -> MapDefinition:
        """Return the definition for ``map_id``, or the first entry when it is unknown."""
        if map_id is not None and map_id in self._maps:
            return self._maps[map_id]
        return self.first

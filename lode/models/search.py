from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from lode.models.styling import RGBA, parse_color

# [[minLng, minLat], [maxLng, maxLat]]
Extent = tuple[tuple[float, float], tuple[float, float]]


def validate_extent(value: Any) -> Extent:
    (min_lng, min_lat), (max_lng, max_lat) = value
    if min_lng > max_lng or min_lat > max_lat:
        raise ValueError(f"Extent minimum exceeds maximum: {value!r}")
    return (float(min_lng), float(min_lat)), (float(max_lng), float(max_lat))


class SearchItem(BaseModel):
    """A searchable geographic unit (e.g. a census subdivision)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    label: str
    extent: Extent

    @field_validator("extent", mode="before")
    @classmethod
    def check_extent(cls, v: Any) -> Extent:
        return validate_extent(v)

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> SearchItem:
        """Build an item from a ``[id, name, minLng, minLat, maxLng, maxLat]`` row."""
        if len(row) != 6:
            raise ValueError(f"Search row must have 6 values, got {len(row)}: {row!r}")
        item_id, name, min_lng, min_lat, max_lng, max_lat = row
        return cls(
            id=str(item_id),
            name=str(name),
            label=f"{name} ({item_id})",
            extent=((min_lng, min_lat), (max_lng, max_lat)),
        )


class SearchConfig(BaseModel):
    """Search configuration: raw rows plus the layer/field/color used for highlighting."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    items: list[list[Any]] = Field(default_factory=list)
    field: str = Field(description="Feature property compared with the selected item id")
    layer: str = Field(description="Layer receiving the search highlight")
    color: RGBA = (255, 0, 0, 1.0)
    table_field: str | None = Field(
        default=None, description="Table column holding the item id; defaults to `field`"
    )

    @field_validator("color", mode="before")
    @classmethod
    def validate_color(cls, v: Any) -> RGBA:
        return parse_color(v)


class Bookmark(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    extent: Extent

    @field_validator("extent", mode="before")
    @classmethod
    def check_extent(cls, v: Any) -> Extent:
        return validate_extent(v)

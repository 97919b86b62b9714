from pydantic import BaseModel, ConfigDict, Field


class ViewState(BaseModel):
    """Snapshot of the persisted session view."""

    model_config = ConfigDict(frozen=True)

    active_map_id: str | None = None
    center_lat: float
    center_lng: float
    zoom_level: float
    opacity_level: float = Field(ge=0.0, le=1.0)

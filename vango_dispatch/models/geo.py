"""Geographic value types."""

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """A point on the earth's surface in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)

"""Things drawn on the live map."""

from __future__ import annotations

from pydantic import Field, field_validator

from schooltrack.models._base import LatLng, TrackBaseModel
from schooltrack.models.location import LocationSample


class TrackedEntity(TrackBaseModel):
    """A user or vehicle shown on the map at its most recent sample."""

    id: str
    display_name: str
    latest: LocationSample

    @property
    def coordinate(self) -> LatLng:
        return self.latest.coordinate


class RouteLine(TrackBaseModel):
    """A declared route drawn as a polyline."""

    id: str
    name: str = ""
    points: tuple[LatLng, ...]
    color: str = "blue"
    weight: int = 3
    opacity: float = Field(default=0.6, ge=0.0, le=1.0)

    @field_validator("points")
    @classmethod
    def _at_least_two_points(cls, value: tuple[LatLng, ...]) -> tuple[LatLng, ...]:
        if len(value) < 2:
            raise ValueError("a route needs at least two points")
        return value

    @property
    def style(self) -> dict[str, object]:
        return {"color": self.color, "weight": self.weight, "opacity": self.opacity}

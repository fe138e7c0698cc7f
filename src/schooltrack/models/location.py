"""Location sample models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import Field

from schooltrack.models._base import LatLng, Timestamp, TrackBaseModel


class PositionFix(TrackBaseModel):
    """One position reported by the geolocation platform, not yet stored.

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    accuracy : float or None
        Horizontal accuracy radius in meters.
    timestamp : datetime
        When the platform acquired the fix.
    """

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    accuracy: float | None = Field(default=None, ge=0.0)
    timestamp: Timestamp = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def coordinate(self) -> LatLng:
        return (self.latitude, self.longitude)

    def to_row(self, subject_id: str) -> dict[str, Any]:
        """Row payload for an insert into the location table."""
        return {
            "user_id": subject_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "timestamp": self.timestamp.isoformat(),
        }


class LocationSample(TrackBaseModel):
    """A stored location sample.

    Samples are append-only: the core never updates or deletes them.

    Parameters
    ----------
    id : str
        Opaque identifier assigned by the store.
    subject_id : str
        Owning user or vehicle (``user_id`` column).
    latitude : float
        Latitude in degrees, in ``[-90, 90]``.
    longitude : float
        Longitude in degrees, in ``[-180, 180]``.
    accuracy : float or None
        Accuracy in meters, ``None`` when unknown.
    captured_at : datetime
        Acquisition time (``timestamp`` column).
    """

    id: str
    subject_id: str = Field(alias="user_id")
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    accuracy: float | None = Field(default=None, ge=0.0)
    captured_at: Timestamp = Field(alias="timestamp")

    @property
    def coordinate(self) -> LatLng:
        return (self.latitude, self.longitude)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> LocationSample:
        """Validate a row as returned by the store (ids coerced to str)."""
        data = dict(row)
        if "id" in data and data["id"] is not None:
            data["id"] = str(data["id"])
        return cls.model_validate(data)

"""Data models for samples, profiles, map entities and simulated buses."""

from schooltrack.models._base import LatLng, Timestamp, TrackBaseModel, parse_timestamp
from schooltrack.models.entity import RouteLine, TrackedEntity
from schooltrack.models.location import LocationSample, PositionFix
from schooltrack.models.profile import Profile
from schooltrack.models.simulation import AnimationState, Direction, DwellPolicy, SimulatedVehicle

__all__ = [
    "AnimationState",
    "Direction",
    "DwellPolicy",
    "LatLng",
    "LocationSample",
    "PositionFix",
    "Profile",
    "RouteLine",
    "SimulatedVehicle",
    "Timestamp",
    "TrackBaseModel",
    "TrackedEntity",
    "parse_timestamp",
]

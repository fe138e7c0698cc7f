"""schooltrack - Async location tracking and live bus map for school transport."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("schooltrack")
except PackageNotFoundError:
    __version__ = "0+local"
from schooltrack.client import TrackerClient
from schooltrack.config import TrackerConfig
from schooltrack.exceptions import (
    GeolocationError,
    GeolocationUnsupportedError,
    PermissionDeniedError,
    PositionTimeoutError,
    PositionUnavailableError,
    StoreError,
    StoreReadFailedError,
    StoreWriteFailedError,
    SubscriptionFailedError,
    TrackerConfigError,
    TrackerError,
    TrackerTransportError,
)
from schooltrack.ingestion import GeolocationSampler, LiveFeedSubscriber
from schooltrack.map import DeclarativeMapRenderer, FoliumMapBackend, MapRenderer
from schooltrack.models import (
    AnimationState,
    Direction,
    DwellPolicy,
    LocationSample,
    PositionFix,
    Profile,
    RouteLine,
    SimulatedVehicle,
    TrackedEntity,
)
from schooltrack.simulation import RouteAnimator, haversine_distance, plan_step, travel_time_ms
from schooltrack.store import MemoryLocationStore, RestLocationStore
from schooltrack.views import LiveMapView, TrackingView

__all__ = [
    "__version__",
    "AnimationState",
    "DeclarativeMapRenderer",
    "Direction",
    "DwellPolicy",
    "FoliumMapBackend",
    "GeolocationError",
    "GeolocationSampler",
    "GeolocationUnsupportedError",
    "LiveFeedSubscriber",
    "LiveMapView",
    "LocationSample",
    "MapRenderer",
    "MemoryLocationStore",
    "PermissionDeniedError",
    "PositionFix",
    "PositionTimeoutError",
    "PositionUnavailableError",
    "Profile",
    "RestLocationStore",
    "RouteAnimator",
    "RouteLine",
    "SimulatedVehicle",
    "StoreError",
    "StoreReadFailedError",
    "StoreWriteFailedError",
    "SubscriptionFailedError",
    "TrackedEntity",
    "TrackerClient",
    "TrackerConfig",
    "TrackerConfigError",
    "TrackerError",
    "TrackerTransportError",
    "TrackingView",
    "haversine_distance",
    "plan_step",
    "travel_time_ms",
]

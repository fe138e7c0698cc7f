"""Ingestion: the device-position sampler and the live feed subscriber."""

from schooltrack.ingestion.feed import LiveFeedSubscriber
from schooltrack.ingestion.sampler import GeolocationSampler

__all__ = ["GeolocationSampler", "LiveFeedSubscriber"]

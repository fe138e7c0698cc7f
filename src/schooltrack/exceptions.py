"""Custom exception hierarchy for schooltrack."""

from __future__ import annotations


class TrackerError(Exception):
    """Base exception for all schooltrack errors."""


class TrackerConfigError(TrackerError):
    """Invalid or missing configuration."""


class TrackerTransportError(TrackerError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class GeolocationError(TrackerError):
    """A single position acquisition failed.

    Only the acquisition in progress is aborted; a running sampler
    tries again on its next tick.
    """


class PermissionDeniedError(GeolocationError):
    """The platform refused access to the device position."""


class PositionUnavailableError(GeolocationError):
    """The platform could not determine a position."""


class PositionTimeoutError(GeolocationError):
    """No position was resolved within the configured timeout."""


class GeolocationUnsupportedError(GeolocationError):
    """No geolocation platform is available on this device."""


class StoreError(TrackerError):
    """Location store operation failed."""

    def __init__(self, message: str, *, table: str = "") -> None:
        self.table = table
        super().__init__(message)


class StoreWriteFailedError(StoreError):
    """Inserting a sample failed.

    The sampler logs this and keeps sampling; there is no retry queue.
    """


class StoreReadFailedError(StoreError):
    """Querying samples or profiles failed."""


class SubscriptionFailedError(TrackerError):
    """Subscribing to (or receiving from) the realtime feed failed."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)

"""Periodic device-position sampler.

Acquires the device position once on start, persists it, then re-acquires
and persists on a single-shot timer that is only re-armed after the
previous cycle's write attempt finished.  Samples are therefore persisted
in acquisition order and at most one timer is ever armed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from schooltrack._scheduling import TaskRegistry
from schooltrack.config import TrackerConfig
from schooltrack.exceptions import (
    GeolocationError,
    GeolocationUnsupportedError,
    PositionTimeoutError,
    StoreWriteFailedError,
)
from schooltrack.geolocation import (
    PlatformErrorCode,
    PlatformPositionError,
    PositionOptions,
    PositionSource,
    WatchingPositionSource,
    map_platform_error,
)
from schooltrack.models.location import LocationSample, PositionFix
from schooltrack.state.events import StatusKind, TrackingStatus
from schooltrack.store import LocationStore

_logger = logging.getLogger(__name__)

_TICK_KEY = "sampler-tick"

StatusCallback = Callable[[TrackingStatus], None]


class GeolocationSampler:
    """Best-effort stream of the local device position into the store.

    Parameters
    ----------
    source
        Geolocation platform; ``None`` means the device has none.
    store
        Where samples are appended.
    subject_id
        Authenticated subject owning the samples.  Without one nothing
        is persisted and :meth:`mount` never auto-starts.
    registry
        Owner of the sampler's timer.
    on_status
        Receives start, stop and error status events.
    """

    def __init__(
        self,
        *,
        config: TrackerConfig,
        source: PositionSource | None,
        store: LocationStore,
        subject_id: str | None,
        registry: TaskRegistry | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._config = config
        self._source = source
        self._store = store
        self._subject_id = subject_id
        self._registry = registry or TaskRegistry(name="sampler")
        self._on_status = on_status
        self._options = PositionOptions.from_config(config)

        self.current: PositionFix | None = None
        self.error: str | None = None
        self.last_saved: datetime | None = None
        self.last_sample: LocationSample | None = None
        self._tracking = False
        self._loading = False
        self._watch_id: int | None = None
        # Bumped by stop_tracking() so an in-flight start cannot arm a timer.
        self._generation = 0

    @property
    def is_tracking(self) -> bool:
        return self._tracking

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def subject_id(self) -> str | None:
        return self._subject_id

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    def _emit(self, kind: StatusKind, message: str) -> None:
        if kind is StatusKind.ERROR:
            _logger.warning("Tracking: %s", message)
        else:
            _logger.info("Tracking: %s", message)
        if self._on_status is None:
            return
        try:
            self._on_status(TrackingStatus(kind=kind, message=message))
        except Exception:
            _logger.debug("on_status callback failed", exc_info=True)

    async def get_current_position(self) -> PositionFix:
        """Acquire one position, bounded by ``position_timeout``.

        Raises
        ------
        GeolocationError
            ``PermissionDeniedError``, ``PositionUnavailableError``,
            ``PositionTimeoutError`` or ``GeolocationUnsupportedError``.
        """
        if self._source is None:
            raise GeolocationUnsupportedError("Geolocation is not supported on this device.")
        try:
            async with asyncio.timeout(self._options.timeout):
                return await self._source.get_current_position(self._options)
        except PlatformPositionError as exc:
            raise map_platform_error(exc) from exc
        except TimeoutError as exc:
            raise PositionTimeoutError("Timed out while acquiring location.") from exc
        except OSError as exc:
            raise map_platform_error(PlatformPositionError(PlatformErrorCode.POSITION_UNAVAILABLE, str(exc))) from exc

    async def _persist(self, fix: PositionFix) -> None:
        if self._subject_id is None:
            return
        try:
            self.last_sample = await self._store.insert(self._subject_id, fix)
        except StoreWriteFailedError:
            _logger.error("Saving location failed", exc_info=True)
            return
        self.last_saved = datetime.now(UTC)
        _logger.debug("Location saved lat=%.6f lon=%.6f", fix.latitude, fix.longitude)

    def _arm(self) -> None:
        self._registry.schedule(_TICK_KEY, self._config.tracking_interval, self._tick)

    async def start_tracking(self) -> bool:
        """Acquire, persist, then sample every ``tracking_interval`` seconds.

        Returns ``False`` (and arms nothing) when already tracking, when a
        start is already in flight, or when the first acquisition fails.
        """
        if self._tracking or self._loading:
            _logger.debug("start_tracking ignored: already tracking")
            return False

        generation = self._generation
        self._loading = True
        self.error = None
        try:
            fix = await self.get_current_position()
        except GeolocationError as exc:
            self.error = str(exc)
            self._emit(StatusKind.ERROR, self.error)
            return False
        finally:
            self._loading = False

        if generation != self._generation:
            return False

        self.current = fix
        await self._persist(fix)
        if generation != self._generation:
            return False

        self._tracking = True
        self._start_watch()
        self._emit(StatusKind.STARTED, "Location tracking started")
        self._arm()
        return True

    async def _tick(self) -> None:
        if not self._tracking:
            return
        generation = self._generation
        try:
            fix = await self.get_current_position()
        except GeolocationError as exc:
            self.error = str(exc)
            self._emit(StatusKind.ERROR, self.error)
        else:
            self.current = fix
            await self._persist(fix)
        finally:
            # A failed cycle must never end the sampling loop.
            task = asyncio.current_task()
            cancelled = task is not None and task.cancelling() > 0
            if not cancelled and self._tracking and generation == self._generation:
                self._arm()

    def _start_watch(self) -> None:
        if not self._config.watch_position or not isinstance(self._source, WatchingPositionSource):
            return
        self._watch_id = self._source.watch_position(self._on_watch_fix, self._options)

    def _on_watch_fix(self, fix: PositionFix) -> None:
        if self._tracking:
            self.current = fix

    def _clear_watch(self) -> None:
        watch_id = self._watch_id
        self._watch_id = None
        if watch_id is not None and isinstance(self._source, WatchingPositionSource):
            self._source.clear_watch(watch_id)

    def stop_tracking(self) -> None:
        """Disarm the timer and any position watch.  Idempotent."""
        self._generation += 1
        self._registry.cancel(_TICK_KEY)
        self._clear_watch()
        was_tracking = self._tracking
        self._tracking = False
        if was_tracking:
            self._emit(StatusKind.STOPPED, "Location tracking stopped")

    async def mount(self) -> None:
        """Auto-start when configured and a subject is signed in."""
        if self._config.auto_start and self._subject_id is not None:
            await self.start_tracking()

    def close(self) -> None:
        """Teardown: stop tracking and cancel everything the sampler owns."""
        self.stop_tracking()
        self._registry.cancel_all()



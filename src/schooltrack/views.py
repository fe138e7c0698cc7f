"""Composed views: own-location tracking and the live map.

A view owns everything it starts.  ``unmount()`` cancels every timer and
task in its registry and releases every subscription, after which
:attr:`pending` is zero.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from schooltrack._scheduling import TaskRegistry
from schooltrack.config import TrackerConfig
from schooltrack.exceptions import StoreReadFailedError
from schooltrack.geolocation import PositionSource
from schooltrack.ingestion.feed import LiveFeedSubscriber
from schooltrack.ingestion.sampler import GeolocationSampler, StatusCallback
from schooltrack.map.declarative import DeclarativeMapRenderer
from schooltrack.map.renderer import MapRenderer
from schooltrack.map.widget import MapBackend
from schooltrack.models._base import LatLng
from schooltrack.models.entity import TrackedEntity
from schooltrack.models.location import LocationSample
from schooltrack.models.profile import Profile
from schooltrack.models.simulation import SimulatedVehicle
from schooltrack.simulation.animator import RouteAnimator
from schooltrack.simulation.routes import route_lines, simulated_vehicles
from schooltrack.state.entities import build_tracked_entities
from schooltrack.store import LocationStore, ProfileSource

_logger = logging.getLogger(__name__)


class TrackingView:
    """The signed-in subject's sampler plus their own recent history."""

    def __init__(
        self,
        config: TrackerConfig,
        *,
        source: PositionSource | None,
        store: LocationStore,
        subject_id: str | None = None,
        registry: TaskRegistry | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._config = config
        subject = subject_id if subject_id is not None else config.user_id
        self._registry = registry or TaskRegistry(name="tracking-view")
        self.sampler = GeolocationSampler(
            config=config,
            source=source,
            store=store,
            subject_id=subject,
            registry=self._registry,
            on_status=on_status,
        )
        self.history = LiveFeedSubscriber(store, subject_id=subject, limit=config.own_history_limit)

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def pending(self) -> int:
        """Armed timers, running tasks and live subscriptions."""
        return self._registry.pending + int(self.history.is_subscribed)

    async def mount(self) -> None:
        if self.sampler.subject_id is not None:
            await self.history.mount()
        await self.sampler.mount()

    async def unmount(self) -> None:
        self.sampler.close()
        await self.history.unmount()
        self._registry.cancel_all()


class LiveMapView:
    """Map of every subject's latest position, plus the simulated buses.

    Parameters
    ----------
    config
        Client configuration (map center, zoom, limits, simulation).
    store
        Location store feeding the map.
    backend
        Map widget.
    profiles
        Profile lookup for display names.  When given, subjects without a
        profile are hidden, and admins are hidden when *exclude_admins*.
    declarative
        Use :class:`DeclarativeMapRenderer` instead of clear-and-redraw.
    show_routes
        Draw the simulated routes as polylines.
    animate
        Run the simulated buses.
    vehicles
        Buses to simulate; defaults to the built-in route table.
    """

    _RESOLVE_KEY = "resolve-entities"

    def __init__(
        self,
        config: TrackerConfig,
        *,
        store: LocationStore,
        backend: MapBackend,
        profiles: ProfileSource | None = None,
        registry: TaskRegistry | None = None,
        declarative: bool = False,
        show_routes: bool = True,
        animate: bool = True,
        exclude_admins: bool = True,
        vehicles: Iterable[SimulatedVehicle] | None = None,
    ) -> None:
        self._config = config
        self._profile_source = profiles
        self._exclude_admins = exclude_admins
        self._show_routes = show_routes
        self._registry = registry or TaskRegistry(name="live-map")
        renderer_cls = DeclarativeMapRenderer if declarative else MapRenderer
        self.renderer: MapRenderer = renderer_cls(backend, config)
        self._vehicles = list(vehicles) if vehicles is not None else simulated_vehicles()
        self.animator: RouteAnimator | None = None
        if animate:
            self.animator = RouteAnimator.from_config(self.renderer, self._vehicles, config, registry=self._registry)
        self.feed = LiveFeedSubscriber(
            store,
            limit=config.all_history_limit,
            on_change=self._on_feed_change,
        )
        self._profiles: dict[str, Profile] = {}
        self.entities: list[TrackedEntity] = []
        self._mounted = False
        self._mount_count = 0
        self._generation = 0

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def pending(self) -> int:
        """Armed timers, running tasks and live subscriptions."""
        return self._registry.pending + int(self.feed.is_subscribed)

    async def _resolve_profiles(self, samples: list[LocationSample]) -> bool:
        if self._profile_source is None:
            return True
        missing = {s.subject_id for s in samples} - self._profiles.keys()
        if not missing:
            return True
        try:
            fetched = await self._profile_source.fetch_profiles(missing)
        except StoreReadFailedError as exc:
            _logger.warning("Resolving profiles failed: %s", exc)
            return False
        self._profiles.update({profile.id: profile for profile in fetched})
        return True

    async def refresh_entities(self, samples: list[LocationSample] | None = None) -> None:
        """Rebuild the entity list from the feed and redraw the markers."""
        self._generation += 1
        generation = self._generation
        rows = samples if samples is not None else self.feed.samples
        if not await self._resolve_profiles(rows):
            return
        if not self._mounted or generation != self._generation:
            return
        self.entities = build_tracked_entities(
            rows,
            self._profiles,
            exclude_admins=self._exclude_admins,
            require_profile=self._profile_source is not None,
        )
        self.renderer.sync_markers(self.entities)

    def _on_feed_change(self, samples: list[LocationSample]) -> None:
        if not self._mounted:
            return
        self._registry.spawn(self._RESOLVE_KEY, self.refresh_entities(samples))

    async def mount(self, center: LatLng | None = None) -> None:
        """Create the map, draw routes, start the buses, then load the feed."""
        if self._mounted:
            return
        self._mounted = True
        self._mount_count += 1
        mount_id = self._mount_count
        self.renderer.initialize(center)
        if self._show_routes:
            self.renderer.sync_polylines(route_lines(self._vehicles))
        if self.animator is not None:
            self.animator.start()
        await self.feed.mount()
        # unmount() may have run while the feed was loading.
        if not self._mounted or mount_id != self._mount_count:
            return
        self._registry.cancel(self._RESOLVE_KEY)
        await self.refresh_entities()

    async def unmount(self) -> None:
        self._mounted = False
        if self.animator is not None:
            self.animator.stop()
        await self.feed.unmount()
        self._registry.cancel_all()
        self.renderer.destroy()
        self.entities = []

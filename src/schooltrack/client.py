"""High-level async client wiring the store, realtime feed and views."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from schooltrack._realtime import RealtimeRuntime
from schooltrack._scheduling import TaskRegistry
from schooltrack._transport import RestTransport
from schooltrack.config import TrackerConfig
from schooltrack.exceptions import TrackerError
from schooltrack.geolocation import GpsdPositionSource, PositionSource, UnavailablePositionSource
from schooltrack.ingestion.feed import LiveFeedSubscriber
from schooltrack.ingestion.sampler import GeolocationSampler, StatusCallback
from schooltrack.map.folium_backend import FoliumMapBackend
from schooltrack.map.widget import MapBackend
from schooltrack.session import Session
from schooltrack.store import RestLocationStore
from schooltrack.views import LiveMapView, TrackingView

_logger = logging.getLogger(__name__)


class TrackerClient:
    """Async client for the hosted location store.

    Usage::

        async with TrackerClient(config) as client:
            view = client.live_map_view()
            await view.mount()
    """

    def __init__(
        self,
        config: TrackerConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        position_source: PositionSource | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._position_source = position_source
        self._session: Session | None = Session.from_config(config)
        self._transport: RestTransport | None = None
        self._realtime: RealtimeRuntime | None = None
        self._store: RestLocationStore | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TrackerClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._transport = RestTransport(self._config, self._http_session, self._session)
        if self._config.realtime_enabled:
            self._realtime = RealtimeRuntime(
                self._config,
                self._http_session,
                access_token=self._access_token(),
                logger=logging.getLogger(f"{__name__}.realtime"),
            )
        self._store = RestLocationStore(self._config, self._transport, self._realtime)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._realtime is not None:
            await self._realtime.stop()
            self._realtime = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._store = None
        self._transport = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session | None:
        return self._session

    def _access_token(self) -> str | None:
        if self._session is not None:
            return self._session.access_token
        return self._config.access_token

    def sign_in(self, user_id: str, access_token: str) -> Session:
        """Use *access_token* for every following call, on behalf of *user_id*."""
        self._session = Session(user_id=user_id, access_token=access_token)
        if self._transport is not None:
            self._transport.set_session(self._session)
        if self._realtime is not None:
            self._realtime.set_access_token(access_token)
        return self._session

    def sign_out(self) -> None:
        self._session = None
        if self._transport is not None:
            self._transport.set_session(None)
        if self._realtime is not None:
            self._realtime.set_access_token(self._config.access_token)

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def store(self) -> RestLocationStore:
        if self._store is None:
            raise TrackerError("Client not initialized. Use 'async with TrackerClient(...) as client:'")
        return self._store

    @property
    def realtime(self) -> RealtimeRuntime | None:
        return self._realtime

    def _subject_id(self) -> str | None:
        return self._session.user_id if self._session is not None else None

    def position_source(self) -> PositionSource:
        if self._position_source is None:
            if self._config.gpsd_host:
                self._position_source = GpsdPositionSource.from_config(self._config)
            else:
                self._position_source = UnavailablePositionSource()
        return self._position_source

    def sampler(
        self,
        *,
        registry: TaskRegistry | None = None,
        on_status: StatusCallback | None = None,
    ) -> GeolocationSampler:
        return GeolocationSampler(
            config=self._config,
            source=self.position_source(),
            store=self.store,
            subject_id=self._subject_id(),
            registry=registry,
            on_status=on_status,
        )

    def live_feed(self, *, subject_id: str | None = None, **kwargs: Any) -> LiveFeedSubscriber:
        limit = self._config.own_history_limit if subject_id is not None else self._config.all_history_limit
        kwargs.setdefault("limit", limit)
        return LiveFeedSubscriber(self.store, subject_id=subject_id, **kwargs)

    def tracking_view(self, **kwargs: Any) -> TrackingView:
        kwargs.setdefault("source", self.position_source())
        kwargs.setdefault("subject_id", self._subject_id())
        return TrackingView(self._config, store=self.store, **kwargs)

    def live_map_view(self, backend: MapBackend | None = None, **kwargs: Any) -> LiveMapView:
        kwargs.setdefault("profiles", self.store)
        return LiveMapView(
            self._config,
            store=self.store,
            backend=backend or FoliumMapBackend(),
            **kwargs,
        )

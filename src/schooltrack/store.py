"""Location store contract and its implementations.

The core only needs four operations from the store: insert a sample, query
the most recent samples, subscribe to inserts, and (for display names)
fetch profiles.  :class:`RestLocationStore` talks to the hosted tables and
realtime service; :class:`MemoryLocationStore` keeps everything in process.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable
from typing import Protocol

from pydantic import ValidationError

from schooltrack._api import locations as _locations_api
from schooltrack._api import profiles as _profiles_api
from schooltrack._api._common import eq
from schooltrack._realtime import RealtimeChannel, RealtimeRuntime
from schooltrack._transport import Transport
from schooltrack.config import TrackerConfig
from schooltrack.exceptions import (
    StoreReadFailedError,
    StoreWriteFailedError,
    SubscriptionFailedError,
    TrackerTransportError,
)
from schooltrack.models.location import LocationSample, PositionFix
from schooltrack.models.profile import Profile

_logger = logging.getLogger(__name__)

InsertCallback = Callable[[LocationSample], None]


class Subscription(Protocol):
    async def unsubscribe(self) -> None:
        ...


class LocationStore(Protocol):
    """Append-only table of location samples."""

    async def insert(self, subject_id: str, fix: PositionFix) -> LocationSample:
        ...

    async def query(self, *, subject_id: str | None = None, limit: int) -> list[LocationSample]:
        ...

    async def subscribe(self, on_insert: InsertCallback, *, subject_id: str | None = None) -> Subscription:
        ...


class ProfileSource(Protocol):
    async def fetch_profiles(self, ids: Iterable[str]) -> list[Profile]:
        ...


class _ChannelSubscription:
    """Adapts a realtime channel to :class:`Subscription`."""

    def __init__(self, channel: RealtimeChannel) -> None:
        self._channel = channel

    @property
    def active(self) -> bool:
        return self._channel.active

    async def unsubscribe(self) -> None:
        await self._channel.unsubscribe()


class RestLocationStore:
    """Store backed by the hosted REST tables and realtime websocket."""

    def __init__(
        self,
        config: TrackerConfig,
        transport: Transport,
        realtime: RealtimeRuntime | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._realtime = realtime

    async def insert(self, subject_id: str, fix: PositionFix) -> LocationSample:
        try:
            return await _locations_api.insert_location(self._config, self._transport, subject_id, fix)
        except (TrackerTransportError, ValidationError, ValueError) as exc:
            raise StoreWriteFailedError(
                f"Insert into {self._config.location_table} failed: {exc}",
                table=self._config.location_table,
            ) from exc

    async def query(self, *, subject_id: str | None = None, limit: int) -> list[LocationSample]:
        try:
            return await _locations_api.select_locations(
                self._config,
                self._transport,
                subject_id=subject_id,
                limit=limit,
            )
        except (TrackerTransportError, ValidationError) as exc:
            raise StoreReadFailedError(
                f"Query of {self._config.location_table} failed: {exc}",
                table=self._config.location_table,
            ) from exc

    async def subscribe(self, on_insert: InsertCallback, *, subject_id: str | None = None) -> Subscription:
        if self._realtime is None or not self._config.realtime_enabled:
            raise SubscriptionFailedError("Realtime is disabled")

        table = self._config.location_table

        def _on_record(record: dict[str, object]) -> None:
            try:
                sample = LocationSample.from_row(dict(record))
            except ValidationError:
                _logger.debug("Dropping malformed realtime row: %s", record, exc_info=True)
                return
            on_insert(sample)

        row_filter = f"user_id={eq(subject_id)}" if subject_id is not None else None
        channel = await self._realtime.subscribe_inserts(table, _on_record, row_filter=row_filter)
        return _ChannelSubscription(channel)

    async def fetch_profiles(self, ids: Iterable[str]) -> list[Profile]:
        try:
            return await _profiles_api.fetch_profiles(self._config, self._transport, ids)
        except (TrackerTransportError, ValidationError) as exc:
            raise StoreReadFailedError(
                f"Query of {self._config.profiles_table} failed: {exc}",
                table=self._config.profiles_table,
            ) from exc


class _MemorySubscription:
    def __init__(self, store: MemoryLocationStore, callback: InsertCallback, subject_id: str | None) -> None:
        self._store = store
        self.callback = callback
        self.subject_id = subject_id
        self.active = True

    def matches(self, sample: LocationSample) -> bool:
        return self.active and (self.subject_id is None or self.subject_id == sample.subject_id)

    async def unsubscribe(self) -> None:
        self.active = False
        self._store._subscribers.discard(self)


class MemoryLocationStore:
    """In-process store, useful for demos and offline runs.

    Insert notifications are delivered on the next loop iteration, the
    way a push from the realtime service would arrive.
    """

    def __init__(self, profiles: Iterable[Profile] = ()) -> None:
        self._samples: list[LocationSample] = []
        self._profiles: dict[str, Profile] = {profile.id: profile for profile in profiles}
        self._subscribers: set[_MemorySubscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def samples(self) -> list[LocationSample]:
        return list(self._samples)

    async def insert(self, subject_id: str, fix: PositionFix) -> LocationSample:
        sample = LocationSample(
            id=str(uuid.uuid4()),
            subject_id=subject_id,
            latitude=fix.latitude,
            longitude=fix.longitude,
            accuracy=fix.accuracy,
            captured_at=fix.timestamp,
        )
        self._samples.append(sample)
        loop = asyncio.get_running_loop()
        for subscriber in list(self._subscribers):
            if subscriber.matches(sample):
                loop.call_soon(self._notify, subscriber, sample)
        return sample

    @staticmethod
    def _notify(subscriber: _MemorySubscription, sample: LocationSample) -> None:
        if subscriber.active:
            subscriber.callback(sample)

    async def query(self, *, subject_id: str | None = None, limit: int) -> list[LocationSample]:
        rows = [s for s in self._samples if subject_id is None or s.subject_id == subject_id]
        rows.sort(key=lambda s: s.captured_at, reverse=True)
        return rows[:limit]

    async def subscribe(self, on_insert: InsertCallback, *, subject_id: str | None = None) -> Subscription:
        subscription = _MemorySubscription(self, on_insert, subject_id)
        self._subscribers.add(subscription)
        return subscription

    async def fetch_profiles(self, ids: Iterable[str]) -> list[Profile]:
        return [self._profiles[i] for i in sorted(set(ids)) if i in self._profiles]

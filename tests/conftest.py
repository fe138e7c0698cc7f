from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from schooltrack._scheduling import TaskRegistry
from schooltrack.config import TrackerConfig
from schooltrack.exceptions import StoreWriteFailedError
from schooltrack.geolocation import PositionOptions
from schooltrack.models.location import LocationSample, PositionFix
from schooltrack.store import MemoryLocationStore


async def settle(rounds: int = 25) -> None:
    """Let callbacks and freshly spawned tasks run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeTimer:
    def __init__(self, when: float, seq: int, callback: Callable[[], None]) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler with manual time; timers fire only from :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + max(0.0, delay), next(self._seq), callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await settle()
        while True:
            due = [t for t in self.active if t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self.now = timer.when
            timer.fired = True
            timer.callback()
            await settle()
        self.now = target


class FakePositionSource:
    """Returns a slightly different fix on every call, or raises *error*."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def get_current_position(self, options: PositionOptions) -> PositionFix:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return PositionFix(
            latitude=20.3880 + self.calls * 0.0001,
            longitude=-99.9960,
            accuracy=5.0,
            timestamp=datetime(2025, 3, 1, 12, 0, tzinfo=UTC) + timedelta(minutes=self.calls),
        )


class RecordingStore(MemoryLocationStore):
    """In-process store that counts inserts and can be told to fail them."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.insert_calls: list[tuple[str, PositionFix]] = []
        self.fail_inserts = False

    async def insert(self, subject_id: str, fix: PositionFix) -> LocationSample:
        self.insert_calls.append((subject_id, fix))
        if self.fail_inserts:
            raise StoreWriteFailedError("insert refused", table="location_tracking")
        return await super().insert(subject_id, fix)


@dataclass
class FakeLayer:
    kind: str
    coordinate: Any = None
    popup_html: str = ""
    color: str | None = None
    label: str | None = None
    style: dict[str, Any] = field(default_factory=dict)


class FakeMapBackend:
    """Records every add/move/remove so tests can inspect the drawn state."""

    def __init__(self) -> None:
        self.created = 0
        self.destroyed = 0
        self.layers: dict[int, FakeLayer] = {}
        self.calls: list[tuple[str, Any]] = []
        self._ids = itertools.count(1)

    def _add(self, layer: FakeLayer) -> int:
        layer_id = next(self._ids)
        self.layers[layer_id] = layer
        self.calls.append(("add", layer_id))
        return layer_id

    def create_map(self, center: Any, zoom: int) -> dict[str, Any]:
        self.created += 1
        return {"center": center, "zoom": zoom}

    def add_tile_layer(self, map_handle: Any, url: str, attribution: str) -> int:
        return self._add(FakeLayer(kind="tiles", label=url))

    def add_marker(self, map_handle: Any, coordinate: Any, *, popup_html: str, color=None, label=None) -> int:
        return self._add(FakeLayer(kind="marker", coordinate=coordinate, popup_html=popup_html, color=color, label=label))

    def move_marker(self, map_handle: Any, marker: int, coordinate: Any) -> None:
        self.layers[marker].coordinate = coordinate
        self.calls.append(("move", marker))

    def add_polyline(self, map_handle: Any, points: Any, *, style: Any) -> int:
        return self._add(FakeLayer(kind="polyline", coordinate=tuple(points), style=dict(style)))

    def remove_layer(self, map_handle: Any, layer: int) -> None:
        del self.layers[layer]
        self.calls.append(("remove", layer))

    def destroy_map(self, map_handle: Any) -> None:
        self.destroyed += 1

    def of_kind(self, kind: str) -> list[FakeLayer]:
        return [layer for layer in self.layers.values() if layer.kind == kind]

    @property
    def entity_markers(self) -> list[FakeLayer]:
        return [layer for layer in self.of_kind("marker") if layer.color is None]

    @property
    def vehicle_markers(self) -> list[FakeLayer]:
        return [layer for layer in self.of_kind("marker") if layer.color is not None]


def make_sample(subject_id: str, minute: int, *, lat: float = 20.3883, lon: float = -99.9830, **extra: Any) -> LocationSample:
    return LocationSample(
        id=f"{subject_id}-{minute}",
        subject_id=subject_id,
        latitude=lat,
        longitude=lon,
        captured_at=datetime(2025, 3, 1, 12, minute, tzinfo=UTC),
        **extra,
    )


@pytest.fixture
def config() -> TrackerConfig:
    return TrackerConfig(base_url="https://demo.supabase.co", api_key="anon", user_id="user-1")


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def registry(scheduler: FakeScheduler) -> TaskRegistry:
    return TaskRegistry(scheduler, name="test")


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def source() -> FakePositionSource:
    return FakePositionSource()


@pytest.fixture
def backend() -> FakeMapBackend:
    return FakeMapBackend()

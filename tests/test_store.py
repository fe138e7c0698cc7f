from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest
from conftest import make_sample, settle

from schooltrack.config import TrackerConfig
from schooltrack.exceptions import (
    StoreReadFailedError,
    StoreWriteFailedError,
    SubscriptionFailedError,
    TrackerTransportError,
)
from schooltrack.models.location import LocationSample, PositionFix
from schooltrack.models.profile import Profile
from schooltrack.store import MemoryLocationStore, RestLocationStore

ROW = {
    "id": 17,
    "user_id": "user-1",
    "latitude": 20.388,
    "longitude": -99.996,
    "accuracy": None,
    "timestamp": "2025-03-01T12:00:00Z",
}


@dataclass
class FakeTransport:
    responses: list[Any] = field(default_factory=list)
    requests: list[dict[str, Any]] = field(default_factory=list)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        self.requests.append({"method": method, "path": path, "params": dict(params or {}), "payload": payload, "prefer": prefer})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.mark.asyncio
async def test_insert_posts_row_and_returns_representation(config: TrackerConfig, transport: FakeTransport) -> None:
    transport.responses.append([ROW])
    store = RestLocationStore(config, transport)
    fix = PositionFix(latitude=20.388, longitude=-99.996, timestamp="2025-03-01T12:00:00Z")

    sample = await store.insert("user-1", fix)

    request = transport.requests[0]
    assert request["method"] == "POST"
    assert request["path"] == "/location_tracking"
    assert request["prefer"] == "return=representation"
    assert request["payload"] == {
        "user_id": "user-1",
        "latitude": 20.388,
        "longitude": -99.996,
        "accuracy": None,
        "timestamp": "2025-03-01T12:00:00+00:00",
    }
    assert sample.id == "17"
    assert sample.subject_id == "user-1"
    assert sample.accuracy is None


@pytest.mark.asyncio
async def test_insert_failure_becomes_write_failed(config: TrackerConfig, transport: FakeTransport) -> None:
    transport.responses.append(TrackerTransportError("HTTP 401", status_code=401, endpoint="/location_tracking"))
    store = RestLocationStore(config, transport)
    with pytest.raises(StoreWriteFailedError) as info:
        await store.insert("user-1", PositionFix(latitude=0, longitude=0))
    assert info.value.table == "location_tracking"


@pytest.mark.asyncio
async def test_empty_representation_is_a_write_failure(config: TrackerConfig, transport: FakeTransport) -> None:
    transport.responses.append([])
    with pytest.raises(StoreWriteFailedError):
        await RestLocationStore(config, transport).insert("user-1", PositionFix(latitude=0, longitude=0))


@pytest.mark.asyncio
async def test_query_orders_newest_first_with_limit_and_subject(config: TrackerConfig, transport: FakeTransport) -> None:
    transport.responses.extend([[ROW], []])
    store = RestLocationStore(config, transport)

    rows = await store.query(subject_id="user-1", limit=50)
    await store.query(limit=100)

    assert [r.id for r in rows] == ["17"]
    assert transport.requests[0]["params"] == {
        "select": "*",
        "order": "timestamp.desc",
        "limit": "50",
        "user_id": "eq.user-1",
    }
    assert "user_id" not in transport.requests[1]["params"]
    assert transport.requests[1]["params"]["limit"] == "100"


@pytest.mark.asyncio
async def test_query_failures_become_read_failed(config: TrackerConfig, transport: FakeTransport) -> None:
    transport.responses.extend([{"message": "not a row"}, "garbage"])
    store = RestLocationStore(config, transport)
    with pytest.raises(StoreReadFailedError):
        await store.query(limit=10)
    with pytest.raises(StoreReadFailedError):
        await store.query(limit=10)


@pytest.mark.asyncio
async def test_fetch_profiles_uses_in_filter(config: TrackerConfig, transport: FakeTransport) -> None:
    transport.responses.append([{"id": "a", "full_name": "Ana", "email": None, "role": "parent"}])
    store = RestLocationStore(config, transport)

    profiles = await store.fetch_profiles(["b", "a", "a"])

    assert profiles == [Profile(id="a", full_name="Ana", role="parent")]
    assert transport.requests[0]["params"] == {"select": "id,full_name,email,role", "id": 'in.("a","b")'}
    assert await store.fetch_profiles([]) == []
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_subscribe_without_realtime_fails(config: TrackerConfig, transport: FakeTransport) -> None:
    store = RestLocationStore(config, transport)
    with pytest.raises(SubscriptionFailedError):
        await store.subscribe(lambda sample: None)


@pytest.mark.asyncio
async def test_memory_store_query_and_notifications() -> None:
    store = MemoryLocationStore()
    received: list[LocationSample] = []
    subscription = await store.subscribe(received.append, subject_id="a")

    for subject, minute in (("a", 1), ("b", 2), ("a", 3)):
        s = make_sample(subject, minute)
        await store.insert(subject, PositionFix(latitude=s.latitude, longitude=s.longitude, timestamp=s.captured_at))
    # Delivery happens on the next loop iteration.
    assert received == []
    await settle()

    assert [s.captured_at.minute for s in received] == [1, 3]
    assert [s.captured_at.minute for s in await store.query(limit=2)] == [3, 2]
    assert [s.subject_id for s in await store.query(subject_id="b", limit=10)] == ["b"]

    await subscription.unsubscribe()
    assert store.subscriber_count == 0


def test_profile_display_name_fallbacks() -> None:
    assert Profile(id="1", full_name="Ana", email="a@x").display_name == "Ana"
    assert Profile(id="1", full_name="", email="a@x").display_name == "a@x"
    assert Profile(id="1").display_name == "Usuario"
    assert Profile(id="1", role="Admin").is_admin

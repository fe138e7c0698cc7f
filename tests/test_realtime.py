from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from conftest import settle

from schooltrack._realtime import (
    RealtimeMessage,
    RealtimeRuntime,
    build_insert_join_payload,
    extract_inserted_record,
)
from schooltrack.config import TrackerConfig
from schooltrack.exceptions import SubscriptionFailedError
from schooltrack.models.location import LocationSample
from schooltrack.store import RestLocationStore

ROW = {
    "id": "9",
    "user_id": "user-1",
    "latitude": 20.3883,
    "longitude": -99.983,
    "timestamp": "2025-03-01T12:00:00+00:00",
}


class FakeWebSocket:
    def __init__(self) -> None:
        self.closed = False
        self.sent: list[dict[str, Any]] = []

    async def send_str(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True


def _runtime(**config: Any) -> tuple[RealtimeRuntime, FakeWebSocket]:
    runtime = RealtimeRuntime(TrackerConfig(api_key="anon", **config), None, access_token="token")  # type: ignore[arg-type]
    ws = FakeWebSocket()
    runtime._ws = ws  # type: ignore[assignment]
    return runtime, ws


def _changes(record: dict[str, Any], change_type: str = "INSERT") -> RealtimeMessage:
    return RealtimeMessage(
        topic="",
        event="postgres_changes",
        payload={"data": {"type": change_type, "record": record}, "ids": [1]},
    )


def test_message_roundtrip_and_decode_tolerance() -> None:
    message = RealtimeMessage(topic="realtime:t", event="phx_join", payload={"a": 1}, ref="3")
    assert RealtimeMessage.decode(message.encode()) == message

    loose = RealtimeMessage.decode('{"topic":"x","event":"e","payload":null,"ref":7}')
    assert loose.payload == {}
    assert loose.ref == "7"

    with pytest.raises(ValueError):
        RealtimeMessage.decode("[1,2]")


def test_join_payload_filters_inserts() -> None:
    payload = build_insert_join_payload(
        schema="public",
        table="location_tracking",
        row_filter="user_id=eq.user-1",
        access_token="token",
    )
    assert payload["config"]["postgres_changes"] == [
        {"event": "INSERT", "schema": "public", "table": "location_tracking", "filter": "user_id=eq.user-1"}
    ]
    assert payload["access_token"] == "token"
    assert "filter" not in build_insert_join_payload(
        schema="public", table="t", row_filter=None, access_token=None
    )["config"]["postgres_changes"][0]


def test_extract_inserted_record() -> None:
    assert extract_inserted_record(_changes(ROW)) == ROW
    assert extract_inserted_record(_changes(ROW, "UPDATE")) is None
    legacy = RealtimeMessage(topic="", event="postgres_changes", payload={"data": {"eventType": "INSERT", "new": ROW}})
    assert extract_inserted_record(legacy) == ROW
    assert extract_inserted_record(RealtimeMessage(topic="", event="presence_state", payload={})) is None


async def _join(runtime: RealtimeRuntime, ws: FakeWebSocket, reply: dict[str, Any], **kwargs: Any) -> asyncio.Task[Any]:
    task = asyncio.create_task(runtime.subscribe_inserts("location_tracking", kwargs.pop("on_record", lambda r: None), **kwargs))
    await settle()
    join = ws.sent[-1]
    assert join["event"] == "phx_join"
    runtime._on_message(RealtimeMessage(topic=join["topic"], event="phx_reply", payload=reply, ref=join["ref"]))
    return task


@pytest.mark.asyncio
async def test_join_ok_routes_inserts_to_channel() -> None:
    runtime, ws = _runtime()
    records: list[dict[str, Any]] = []
    task = await _join(runtime, ws, {"status": "ok", "response": {}}, on_record=records.append)
    channel = await task

    runtime._on_message(RealtimeMessage(topic=channel.topic, event="postgres_changes", payload=_changes(ROW).payload))
    runtime._on_message(RealtimeMessage(topic="realtime:other", event="postgres_changes", payload=_changes(ROW).payload))

    assert records == [ROW]
    assert runtime.channel_count == 1

    await channel.unsubscribe()
    assert ws.sent[-1]["event"] == "phx_leave"
    assert runtime.channel_count == 0
    assert not channel.active


@pytest.mark.asyncio
async def test_join_refused_raises() -> None:
    runtime, ws = _runtime()
    task = await _join(runtime, ws, {"status": "error", "response": {"reason": "unauthorized"}})
    with pytest.raises(SubscriptionFailedError, match="unauthorized"):
        await task
    assert runtime.channel_count == 0


@pytest.mark.asyncio
async def test_join_timeout_raises() -> None:
    runtime, _ = _runtime(realtime_join_timeout=0.01)
    with pytest.raises(SubscriptionFailedError, match="timed out"):
        await runtime.subscribe_inserts("location_tracking", lambda r: None)
    assert runtime.channel_count == 0


@pytest.mark.asyncio
async def test_server_close_deactivates_channel() -> None:
    runtime, ws = _runtime()
    channel = await (await _join(runtime, ws, {"status": "ok"}))
    runtime._on_message(RealtimeMessage(topic=channel.topic, event="phx_close", payload={}))
    assert not channel.active
    assert runtime.channel_count == 0


@pytest.mark.asyncio
async def test_stop_closes_socket_and_channels() -> None:
    runtime, ws = _runtime()
    channel = await (await _join(runtime, ws, {"status": "ok"}))
    await runtime.stop()
    assert ws.closed
    assert not channel.active
    assert not runtime.is_running


@pytest.mark.asyncio
async def test_store_subscription_filters_by_subject_and_parses_rows() -> None:
    runtime, ws = _runtime()
    config = TrackerConfig(api_key="anon")
    store = RestLocationStore(config, transport=None, realtime=runtime)  # type: ignore[arg-type]
    received: list[LocationSample] = []

    task = asyncio.create_task(store.subscribe(received.append, subject_id="user-1"))
    await settle()
    join = ws.sent[-1]
    assert join["payload"]["config"]["postgres_changes"][0]["filter"] == "user_id=eq.user-1"
    runtime._on_message(RealtimeMessage(topic=join["topic"], event="phx_reply", payload={"status": "ok"}, ref=join["ref"]))
    subscription = await task

    runtime._on_message(RealtimeMessage(topic=join["topic"], event="postgres_changes", payload=_changes(ROW).payload))
    runtime._on_message(
        RealtimeMessage(topic=join["topic"], event="postgres_changes", payload=_changes({"id": "x"}).payload)
    )

    assert [s.id for s in received] == ["9"]
    await subscription.unsubscribe()
    assert runtime.channel_count == 0


class _StreamingWebSocket(FakeWebSocket):
    """Yields no frames and ends its stream once closed."""

    def __aiter__(self) -> Any:
        return self._frames()

    async def _frames(self) -> Any:
        while not self.closed:
            await asyncio.sleep(0.005)
        return
        yield


class _FakeHttp:
    def __init__(self) -> None:
        self.sockets: list[_StreamingWebSocket] = []

    async def ws_connect(self, url: str, **kwargs: Any) -> _StreamingWebSocket:
        ws = _StreamingWebSocket()
        self.sockets.append(ws)
        return ws


@pytest.mark.asyncio
async def test_reconnect_cancels_tasks_of_the_dropped_socket() -> None:
    http = _FakeHttp()
    runtime = RealtimeRuntime(TrackerConfig(api_key="anon", realtime_heartbeat=60.0), http)  # type: ignore[arg-type]
    await runtime.start()
    old_heartbeat = runtime._heartbeat
    old_reader = runtime._reader
    assert old_heartbeat is not None and old_reader is not None

    http.sockets[0].closed = True
    await asyncio.sleep(0.02)
    assert not runtime.is_running

    await runtime.start()

    assert len(http.sockets) == 2
    assert runtime.is_running
    assert old_heartbeat.cancelled()
    assert old_reader.done()
    assert runtime._heartbeat is not old_heartbeat

    await runtime.stop()
    assert http.sockets[1].closed

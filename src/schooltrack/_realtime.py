"""Internal realtime websocket runtime.

Speaks the Phoenix channel protocol used by the hosted realtime service:
one websocket, one channel per subscription, ``postgres_changes`` joins
filtered to inserts on a table, and a periodic heartbeat.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import aiohttp

from schooltrack._constants import REALTIME_VSN
from schooltrack.config import TrackerConfig
from schooltrack.exceptions import SubscriptionFailedError

RecordCallback = Callable[[dict[str, Any]], None]


@dataclass(frozen=True)
class RealtimeMessage:
    """One decoded Phoenix frame."""

    topic: str
    event: str
    payload: dict[str, Any]
    ref: str | None = None

    def encode(self) -> str:
        return json.dumps(
            {"topic": self.topic, "event": self.event, "payload": self.payload, "ref": self.ref},
            separators=(",", ":"),
        )

    @classmethod
    def decode(cls, text: str) -> RealtimeMessage:
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError("realtime frame is not an object")
        payload = parsed.get("payload")
        ref = parsed.get("ref")
        return cls(
            topic=str(parsed.get("topic") or ""),
            event=str(parsed.get("event") or ""),
            payload=payload if isinstance(payload, dict) else {},
            ref=str(ref) if ref is not None else None,
        )


def build_insert_join_payload(
    *,
    schema: str,
    table: str,
    row_filter: str | None,
    access_token: str | None,
) -> dict[str, Any]:
    """Join payload subscribing to ``INSERT`` events on *table*."""
    change: dict[str, Any] = {"event": "INSERT", "schema": schema, "table": table}
    if row_filter:
        change["filter"] = row_filter
    payload: dict[str, Any] = {
        "config": {
            "broadcast": {"ack": False, "self": False},
            "presence": {"key": ""},
            "postgres_changes": [change],
        },
    }
    if access_token:
        payload["access_token"] = access_token
    return payload


def extract_inserted_record(message: RealtimeMessage) -> dict[str, Any] | None:
    """Return the inserted row of a ``postgres_changes`` frame, if any."""
    if message.event != "postgres_changes":
        return None
    data = message.payload.get("data")
    if not isinstance(data, dict):
        return None
    change_type = data.get("type") or data.get("eventType")
    if str(change_type).upper() != "INSERT":
        return None
    record = data.get("record") or data.get("new")
    return record if isinstance(record, dict) else None


class RealtimeChannel:
    """A joined channel.  Cancel with :meth:`unsubscribe`."""

    def __init__(self, runtime: RealtimeRuntime, topic: str, on_record: RecordCallback) -> None:
        self._runtime = runtime
        self.topic = topic
        self._on_record = on_record
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def _deliver(self, record: dict[str, Any]) -> None:
        if self._active:
            self._on_record(record)

    def _deactivate(self) -> None:
        self._active = False

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        await self._runtime.leave(self)


class RealtimeRuntime:
    """aiohttp websocket runtime that dispatches inserted rows to channels."""

    def __init__(
        self,
        config: TrackerConfig,
        http_session: aiohttp.ClientSession,
        *,
        access_token: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._access_token = access_token
        self._logger = logger or logging.getLogger(__name__)
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._heartbeat: asyncio.Task[None] | None = None
        self._channels: dict[str, RealtimeChannel] = {}
        self._join_waiters: dict[str, asyncio.Future[dict[str, Any]]] = {}
        self._refs = itertools.count(1)
        self._topics = itertools.count(1)
        self._start_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        """Whether the websocket is open."""
        return self._ws is not None and not self._ws.closed

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    def set_access_token(self, access_token: str | None) -> None:
        """Token sent with subsequent joins."""
        self._access_token = access_token

    def _next_ref(self) -> str:
        return str(next(self._refs))

    async def start(self) -> None:
        """Open the websocket and start the reader and heartbeat tasks."""
        async with self._start_lock:
            if self.is_running:
                return
            # Tasks left over from a dropped socket must not touch the new one.
            await self._cancel_background()
            self._logger.debug("Realtime connect url=%s", self._config.realtime_url)
            try:
                self._ws = await self._http.ws_connect(
                    self._config.realtime_url,
                    params={"apikey": self._config.api_key, "vsn": REALTIME_VSN},
                )
            except (aiohttp.ClientError, TimeoutError) as exc:
                raise SubscriptionFailedError(f"Realtime connection failed: {exc}") from exc
            self._reader = asyncio.create_task(self._read_loop())
            self._heartbeat = asyncio.create_task(self._heartbeat_loop())

    async def _send(self, message: RealtimeMessage) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            raise SubscriptionFailedError("Realtime connection is not open", topic=message.topic)
        try:
            await ws.send_str(message.encode())
        except (aiohttp.ClientError, ConnectionError) as exc:
            raise SubscriptionFailedError(f"Realtime send failed: {exc}", topic=message.topic) from exc

    async def subscribe_inserts(
        self,
        table: str,
        on_record: RecordCallback,
        *,
        row_filter: str | None = None,
    ) -> RealtimeChannel:
        """Join a channel receiving rows inserted into *table*.

        Raises
        ------
        SubscriptionFailedError
            If the connection cannot be opened or the join is refused
            or not acknowledged within ``realtime_join_timeout``.
        """
        await self.start()
        topic = f"realtime:{table}-{next(self._topics)}"
        channel = RealtimeChannel(self, topic, on_record)
        ref = self._next_ref()
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[dict[str, Any]] = loop.create_future()
        self._join_waiters[ref] = waiter
        self._channels[topic] = channel

        join = RealtimeMessage(
            topic=topic,
            event="phx_join",
            payload=build_insert_join_payload(
                schema=self._config.schema,
                table=table,
                row_filter=row_filter,
                access_token=self._access_token,
            ),
            ref=ref,
        )
        try:
            await self._send(join)
            reply = await asyncio.wait_for(waiter, self._config.realtime_join_timeout)
        except TimeoutError as exc:
            self._drop(channel)
            raise SubscriptionFailedError(f"Join of {topic} timed out", topic=topic) from exc
        except SubscriptionFailedError:
            self._drop(channel)
            raise
        finally:
            self._join_waiters.pop(ref, None)

        if reply.get("status") != "ok":
            self._drop(channel)
            response = reply.get("response")
            reason = response.get("reason") if isinstance(response, dict) else None
            raise SubscriptionFailedError(f"Join of {topic} refused: {reason or reply}", topic=topic)

        self._logger.debug("Realtime joined topic=%s table=%s filter=%s", topic, table, row_filter)
        return channel

    def _drop(self, channel: RealtimeChannel) -> None:
        channel._deactivate()
        if self._channels.get(channel.topic) is channel:
            del self._channels[channel.topic]

    async def leave(self, channel: RealtimeChannel) -> None:
        self._drop(channel)
        if not self.is_running:
            return
        try:
            await self._send(RealtimeMessage(topic=channel.topic, event="phx_leave", payload={}, ref=self._next_ref()))
        except SubscriptionFailedError:
            self._logger.debug("Realtime leave failed topic=%s", channel.topic, exc_info=True)

    def _on_message(self, message: RealtimeMessage) -> None:
        if message.event == "phx_reply":
            waiter = self._join_waiters.get(message.ref or "")
            if waiter is not None and not waiter.done():
                waiter.set_result(message.payload)
            return

        channel = self._channels.get(message.topic)
        if channel is None:
            return

        if message.event in ("phx_error", "phx_close"):
            self._logger.warning("Realtime channel %s closed by server (%s)", message.topic, message.event)
            self._drop(channel)
            return

        record = extract_inserted_record(message)
        if record is None:
            return
        try:
            channel._deliver(record)
        except Exception:
            self._logger.warning("Realtime callback failed topic=%s", message.topic, exc_info=True)

    async def _read_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    message = RealtimeMessage.decode(msg.data)
                except ValueError:
                    self._logger.debug("Realtime frame parse failure", exc_info=True)
                    continue
                self._on_message(message)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                self._logger.warning("Realtime websocket error: %s", ws.exception())
                break
        if self._channels:
            self._logger.warning("Realtime connection closed with %d active channels", len(self._channels))

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.realtime_heartbeat)
            try:
                await self._send(RealtimeMessage(topic="phoenix", event="heartbeat", payload={}, ref=self._next_ref()))
            except SubscriptionFailedError:
                self._logger.debug("Realtime heartbeat failed", exc_info=True)
                return

    async def _cancel_background(self) -> None:
        for task in (self._heartbeat, self._reader):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._heartbeat = None
        self._reader = None

    async def stop(self) -> None:
        """Cancel background tasks, fail pending joins and close the socket."""
        for channel in list(self._channels.values()):
            channel._deactivate()
        self._channels.clear()
        for waiter in self._join_waiters.values():
            if not waiter.done():
                waiter.cancel()
        self._join_waiters.clear()
        await self._cancel_background()

        ws = self._ws
        self._ws = None
        if ws is not None and not ws.closed:
            await ws.close()
            self._logger.debug("Realtime connection closed")

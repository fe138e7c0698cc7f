"""Geolocation platform contract and the gpsd-backed position source.

A position source resolves the device position, either once
(:meth:`PositionSource.get_current_position`) or continuously
(``watch_position`` / ``clear_watch``).  Platform failures are reported
as :class:`PlatformPositionError` carrying a numeric code and are mapped
to the typed :class:`~schooltrack.exceptions.GeolocationError` family by
:func:`map_platform_error`.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from schooltrack.config import TrackerConfig
from schooltrack.exceptions import (
    GeolocationError,
    GeolocationUnsupportedError,
    PermissionDeniedError,
    PositionTimeoutError,
    PositionUnavailableError,
)
from schooltrack.models._base import parse_timestamp
from schooltrack.models.location import PositionFix

_logger = logging.getLogger(__name__)


class PlatformErrorCode(enum.IntEnum):
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


class PlatformPositionError(Exception):
    """Raw failure reported by a position source."""

    def __init__(self, code: int, message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(message or f"platform error code {code}")


_ERROR_MESSAGES: dict[int, tuple[type[GeolocationError], str]] = {
    PlatformErrorCode.PERMISSION_DENIED: (
        PermissionDeniedError,
        "Location permission denied. Please enable access to location.",
    ),
    PlatformErrorCode.POSITION_UNAVAILABLE: (
        PositionUnavailableError,
        "Location information is unavailable.",
    ),
    PlatformErrorCode.TIMEOUT: (
        PositionTimeoutError,
        "Timed out while acquiring location.",
    ),
}


def map_platform_error(error: PlatformPositionError) -> GeolocationError:
    """Translate a platform error code into a typed geolocation error.

    Unknown codes are reported as :class:`PositionUnavailableError`.
    """
    exc_cls, message = _ERROR_MESSAGES.get(
        error.code,
        (PositionUnavailableError, f"Unknown error while acquiring location (code {error.code})."),
    )
    return exc_cls(message)


@dataclass(frozen=True)
class PositionOptions:
    """Acquisition options passed to the platform."""

    high_accuracy: bool = True
    timeout: float = 10.0
    maximum_age: float = 0.0

    @classmethod
    def from_config(cls, config: TrackerConfig) -> PositionOptions:
        return cls(
            high_accuracy=config.high_accuracy,
            timeout=config.position_timeout,
            maximum_age=config.maximum_age,
        )


WatchCallback = Callable[[PositionFix], None]


@runtime_checkable
class PositionSource(Protocol):
    async def get_current_position(self, options: PositionOptions) -> PositionFix:
        ...


@runtime_checkable
class WatchingPositionSource(PositionSource, Protocol):
    def watch_position(self, callback: WatchCallback, options: PositionOptions) -> int:
        ...

    def clear_watch(self, watch_id: int) -> None:
        ...


def fix_from_tpv(report: dict[str, Any]) -> PositionFix | None:
    """Build a fix from a gpsd ``TPV`` report; ``None`` without a 2D fix."""
    if report.get("class") != "TPV":
        return None
    mode = report.get("mode", 0)
    if not isinstance(mode, int) or mode < 2:
        return None
    lat = report.get("lat")
    lon = report.get("lon")
    if lat is None or lon is None:
        return None
    # gpsd reports 95% confidence errors per axis; keep the larger one.
    errors = [v for v in (report.get("epx"), report.get("epy"), report.get("eph")) if isinstance(v, (int, float))]
    accuracy = max(errors) if errors else None
    timestamp = parse_timestamp(report["time"]) if report.get("time") else None
    try:
        if timestamp is None:
            return PositionFix(latitude=lat, longitude=lon, accuracy=accuracy)
        return PositionFix(latitude=lat, longitude=lon, accuracy=accuracy, timestamp=timestamp)
    except ValidationError:
        _logger.debug("Discarding invalid TPV report: %s", report, exc_info=True)
        return None


class GpsdPositionSource:
    """Position source reading gpsd's JSON protocol over TCP."""

    _WATCH_COMMAND = b'?WATCH={"enable":true,"json":true};\n'

    def __init__(self, host: str = "127.0.0.1", port: int = 2947) -> None:
        self._host = host
        self._port = port
        self._watches: dict[int, asyncio.Task[None]] = {}
        self._next_watch_id = 1
        self._last_fix: PositionFix | None = None
        self._last_fix_at: float | None = None

    @classmethod
    def from_config(cls, config: TrackerConfig) -> GpsdPositionSource:
        return cls(config.gpsd_host, config.gpsd_port)

    @property
    def watch_count(self) -> int:
        return len(self._watches)

    async def _open(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        try:
            reader, writer = await asyncio.open_connection(self._host, self._port)
        except PermissionError as exc:
            raise PlatformPositionError(PlatformErrorCode.PERMISSION_DENIED, str(exc)) from exc
        except OSError as exc:
            raise PlatformPositionError(PlatformErrorCode.POSITION_UNAVAILABLE, str(exc)) from exc
        try:
            writer.write(self._WATCH_COMMAND)
            await writer.drain()
        except OSError as exc:
            writer.close()
            raise PlatformPositionError(PlatformErrorCode.POSITION_UNAVAILABLE, str(exc)) from exc
        return reader, writer

    async def _next_fix(self, reader: asyncio.StreamReader) -> PositionFix:
        while True:
            try:
                line = await reader.readline()
            except (OSError, ValueError) as exc:
                # ValueError: a line longer than the stream limit.
                raise PlatformPositionError(PlatformErrorCode.POSITION_UNAVAILABLE, f"gpsd read failed: {exc}") from exc
            if not line:
                raise PlatformPositionError(PlatformErrorCode.POSITION_UNAVAILABLE, "gpsd closed the connection")
            try:
                report = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(report, dict):
                continue
            fix = fix_from_tpv(report)
            if fix is not None:
                self._last_fix = fix
                self._last_fix_at = time.monotonic()
                return fix

    def _cached(self, maximum_age: float) -> PositionFix | None:
        if maximum_age <= 0 or self._last_fix is None or self._last_fix_at is None:
            return None
        if time.monotonic() - self._last_fix_at <= maximum_age:
            return self._last_fix
        return None

    async def get_current_position(self, options: PositionOptions) -> PositionFix:
        """Return the next fix reported by gpsd within ``options.timeout``.

        Raises
        ------
        PlatformPositionError
            With ``TIMEOUT`` when no fix arrives in time, ``POSITION_UNAVAILABLE``
            when gpsd is unreachable, ``PERMISSION_DENIED`` when the socket is refused
            by the OS.
        """
        cached = self._cached(options.maximum_age)
        if cached is not None:
            return cached

        writer: asyncio.StreamWriter | None = None
        try:
            async with asyncio.timeout(options.timeout):
                reader, writer = await self._open()
                return await self._next_fix(reader)
        except TimeoutError as exc:
            raise PlatformPositionError(PlatformErrorCode.TIMEOUT, "no fix from gpsd") from exc
        finally:
            if writer is not None:
                writer.close()
                with contextlib.suppress(OSError):
                    await writer.wait_closed()

    def watch_position(self, callback: WatchCallback, options: PositionOptions) -> int:
        watch_id = self._next_watch_id
        self._next_watch_id += 1
        self._watches[watch_id] = asyncio.create_task(self._watch_loop(watch_id, callback))
        return watch_id

    async def _watch_loop(self, watch_id: int, callback: WatchCallback) -> None:
        writer: asyncio.StreamWriter | None = None
        try:
            reader, writer = await self._open()
            while True:
                callback(await self._next_fix(reader))
        except PlatformPositionError as exc:
            _logger.warning("Position watch %d stopped: %s", watch_id, exc)
        finally:
            self._watches.pop(watch_id, None)
            if writer is not None:
                writer.close()

    def clear_watch(self, watch_id: int) -> None:
        task = self._watches.pop(watch_id, None)
        if task is not None and not task.done():
            task.cancel()


class UnavailablePositionSource:
    """Stand-in used when the device offers no geolocation at all."""

    async def get_current_position(self, options: PositionOptions) -> PositionFix:
        raise GeolocationUnsupportedError("Geolocation is not supported on this device.")

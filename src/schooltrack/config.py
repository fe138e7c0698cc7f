"""Client configuration for schooltrack."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from schooltrack import _constants as const
from schooltrack.exceptions import TrackerConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _parse_center(value: str) -> tuple[float, float]:
    lat_text, sep, lon_text = value.partition(",")
    if not sep:
        raise TrackerConfigError(f"map center must be 'lat,lon', got {value!r}")
    try:
        return float(lat_text), float(lon_text)
    except ValueError as exc:
        raise TrackerConfigError(f"map center must be 'lat,lon', got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Tracker configuration.

    Parameters
    ----------
    base_url : str
        Project URL of the hosted backend (REST under ``/rest/v1``,
        realtime under ``/realtime/v1/websocket``).
    api_key : str
        Public (anon) API key sent with every request.
    access_token : str or None
        Bearer token of the signed-in user.  Falls back to ``api_key``.
    user_id : str or None
        Authenticated subject whose samples the sampler persists.
    location_table : str
        Append-only table of location samples.
    profiles_table : str
        Table used to resolve display names.
    schema : str
        Database schema the realtime feed listens on.
    tracking_interval : float
        Seconds between sampler cycles.
    position_timeout : float
        Upper bound in seconds for one position acquisition.
    high_accuracy : bool
        Ask the platform for its most accurate fix.
    maximum_age : float
        Maximum age in seconds of a cached fix the platform may return.
    auto_start : bool
        Start tracking on mount when a subject is present.
    watch_position : bool
        Follow the platform watch stream between sampler ticks.
    own_history_limit : int
        Live-feed window for one subject's own history.
    all_history_limit : int
        Live-feed window for the all-subjects view.
    realtime_enabled : bool
        Subscribe to insert notifications.
    realtime_heartbeat : float
        Realtime heartbeat period in seconds.
    realtime_join_timeout : float
        Seconds to wait for a channel join reply.
    http_timeout : float
        Total timeout for one REST request.
    time_zone : str
        IANA zone used when formatting capture times in popups.
    map_center : tuple of float
        Default map center ``(lat, lon)``.
    map_zoom : int
        Default map zoom.
    tile_url : str
        Tile layer URL template.
    simulated_speed_kmh : float
        Constant speed of simulated buses.
    dwell_seconds : float
        Pause at the end of a route before the bus heads back.
    stagger_seconds : float
        Delay between the first steps of consecutive simulated buses.
    dwell_policy : str
        ``"reverse"`` (pause, then run the route backwards) or ``"wrap"``.
    gpsd_host : str
        Host of the gpsd daemon used by :class:`GpsdPositionSource`.  Empty
        means the device has no position source.
    gpsd_port : int
        Port of the gpsd daemon.
    """

    base_url: str = "http://localhost:54321"
    api_key: str = ""
    access_token: str | None = None
    user_id: str | None = None
    location_table: str = const.LOCATION_TABLE
    profiles_table: str = const.PROFILES_TABLE
    schema: str = const.DEFAULT_SCHEMA
    tracking_interval: float = const.TRACKING_INTERVAL_S
    position_timeout: float = const.POSITION_TIMEOUT_S
    high_accuracy: bool = True
    maximum_age: float = 0.0
    auto_start: bool = False
    watch_position: bool = False
    own_history_limit: int = const.OWN_HISTORY_LIMIT
    all_history_limit: int = const.ALL_HISTORY_LIMIT
    realtime_enabled: bool = True
    realtime_heartbeat: float = 25.0
    realtime_join_timeout: float = 10.0
    http_timeout: float = 15.0
    time_zone: str = "America/Mexico_City"
    map_center: tuple[float, float] = const.DEFAULT_CENTER
    map_zoom: int = const.DEFAULT_ZOOM
    tile_url: str = const.TILE_URL
    simulated_speed_kmh: float = const.SIMULATED_SPEED_KMH
    dwell_seconds: float = const.DWELL_S
    stagger_seconds: float = const.STAGGER_S
    dwell_policy: str = const.DWELL_POLICY
    gpsd_host: str = "127.0.0.1"
    gpsd_port: int = 2947

    def __post_init__(self) -> None:
        if self.tracking_interval <= 0:
            raise TrackerConfigError("tracking_interval must be positive")
        if self.position_timeout <= 0:
            raise TrackerConfigError("position_timeout must be positive")
        if self.own_history_limit <= 0 or self.all_history_limit <= 0:
            raise TrackerConfigError("history limits must be positive")
        if self.simulated_speed_kmh <= 0:
            raise TrackerConfigError("simulated_speed_kmh must be positive")
        if self.dwell_policy not in ("reverse", "wrap"):
            raise TrackerConfigError(f"dwell_policy must be 'reverse' or 'wrap', got {self.dwell_policy!r}")

    @property
    def rest_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/rest/v1"

    @property
    def realtime_url(self) -> str:
        base = self.base_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://") :]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://") :]
        return f"{base}{const.REALTIME_PATH}"

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from environment variables.

        Reads ``SCHOOLTRACK_URL``, ``SCHOOLTRACK_API_KEY`` and the optional
        ``SCHOOLTRACK_*`` variables below.  Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrackerConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "SCHOOLTRACK_URL": "base_url",
            "SCHOOLTRACK_API_KEY": "api_key",
            "SCHOOLTRACK_ACCESS_TOKEN": "access_token",
            "SCHOOLTRACK_USER_ID": "user_id",
            "SCHOOLTRACK_LOCATION_TABLE": "location_table",
            "SCHOOLTRACK_PROFILES_TABLE": "profiles_table",
            "SCHOOLTRACK_SCHEMA": "schema",
            "SCHOOLTRACK_TIME_ZONE": "time_zone",
            "SCHOOLTRACK_TILE_URL": "tile_url",
            "SCHOOLTRACK_GPSD_HOST": "gpsd_host",
            "SCHOOLTRACK_DWELL_POLICY": "dwell_policy",
        }
        _ENV_FLOAT_MAP = {
            "SCHOOLTRACK_TRACKING_INTERVAL": "tracking_interval",
            "SCHOOLTRACK_POSITION_TIMEOUT": "position_timeout",
            "SCHOOLTRACK_MAXIMUM_AGE": "maximum_age",
            "SCHOOLTRACK_REALTIME_HEARTBEAT": "realtime_heartbeat",
            "SCHOOLTRACK_HTTP_TIMEOUT": "http_timeout",
            "SCHOOLTRACK_SIMULATED_SPEED_KMH": "simulated_speed_kmh",
            "SCHOOLTRACK_DWELL_SECONDS": "dwell_seconds",
            "SCHOOLTRACK_STAGGER_SECONDS": "stagger_seconds",
            "SCHOOLTRACK_REALTIME_JOIN_TIMEOUT": "realtime_join_timeout",
        }
        _ENV_INT_MAP = {
            "SCHOOLTRACK_OWN_HISTORY_LIMIT": "own_history_limit",
            "SCHOOLTRACK_ALL_HISTORY_LIMIT": "all_history_limit",
            "SCHOOLTRACK_MAP_ZOOM": "map_zoom",
            "SCHOOLTRACK_GPSD_PORT": "gpsd_port",
        }
        _ENV_BOOL_MAP = {
            "SCHOOLTRACK_HIGH_ACCURACY": ("high_accuracy", True),
            "SCHOOLTRACK_AUTO_START": ("auto_start", False),
            "SCHOOLTRACK_WATCH_POSITION": ("watch_position", False),
            "SCHOOLTRACK_REALTIME_ENABLED": ("realtime_enabled", True),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        try:
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = float(val)
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = int(val)
        except ValueError as exc:
            raise TrackerConfigError(f"Invalid numeric environment value: {exc}") from exc

        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        center_env = env.get("SCHOOLTRACK_MAP_CENTER")
        if center_env is not None and "map_center" not in overrides:
            config_kwargs["map_center"] = _parse_center(center_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

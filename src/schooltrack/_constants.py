"""Internal constants shared across the library."""

USER_AGENT = "schooltrack/0 (+aiohttp)"

# ------------------------------------------------------------------
# Store tables / realtime
# ------------------------------------------------------------------

LOCATION_TABLE = "location_tracking"
PROFILES_TABLE = "profiles"
DEFAULT_SCHEMA = "public"
REALTIME_PATH = "/realtime/v1/websocket"
REALTIME_VSN = "1.0.0"

# Most-recent window sizes for the live feed.
OWN_HISTORY_LIMIT = 50
ALL_HISTORY_LIMIT = 100

# ------------------------------------------------------------------
# Sampling
# ------------------------------------------------------------------

TRACKING_INTERVAL_S = 60.0
POSITION_TIMEOUT_S = 10.0

# ------------------------------------------------------------------
# Map
# ------------------------------------------------------------------

# San Juan del Río, Querétaro.
DEFAULT_CENTER: tuple[float, float] = (20.3883, -99.9830)
DEFAULT_ZOOM = 13
TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
TILE_ATTRIBUTION = '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors'
UNKNOWN_USER_NAME = "Usuario"

# ------------------------------------------------------------------
# Simulation
# ------------------------------------------------------------------

EARTH_RADIUS_M = 6_371_000.0
SIMULATED_SPEED_KMH = 40.0
DWELL_S = 30.0
STAGGER_S = 5.0
DWELL_POLICY = "reverse"

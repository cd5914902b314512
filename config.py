import os
from dotenv import load_dotenv

load_dotenv()

# ── NASA POWER ────────────────────────────────────────────────────────────────
POWER_BASE_URL = "https://power.larc.nasa.gov/api/temporal/daily/point"
POWER_PARAMETERS = ["T2M", "RH2M", "WS2M", "PRECTOTCORR"]
POWER_COMMUNITY = "RE"  # renewable-energy community profile
POWER_CACHE_TTL_SECONDS = float(os.getenv("POWER_CACHE_TTL_SECONDS", 6 * 3600))  # 6 hours
POWER_REQUEST_TIMEOUT_SECONDS = float(os.getenv("POWER_REQUEST_TIMEOUT_SECONDS", 30))
USER_AGENT = "PowerOdds/1.0 (historical-climate-probability)"

# Provider fill values meaning "no data"
MISSING_VALUE_SENTINELS = frozenset({-999.0, -99.0, -9999.0})

# ── Query defaults ────────────────────────────────────────────────────────────
DEFAULT_YEARS_BACK = int(os.getenv("POWER_YEARS_BACK", 10))
DEFAULT_WINDOW_DAYS = 3
DAYS_IN_REFERENCE_YEAR = 365

# ── Condition thresholds ──────────────────────────────────────────────────────
VERY_HOT_C = 32.0  # strictly above
VERY_COLD_C = 0.0  # strictly below
VERY_WET_MM = 10.0  # mm/day, at or above
VERY_WINDY_MPS = 10.0  # m/s, at or above
UNCOMFORTABLE_TEMP_C = 32.0
UNCOMFORTABLE_RH_PCT = 60.0

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("POWER_ODDS_LOG_DIR", os.path.join(os.path.dirname(__file__), "data", "logs"))

# ── Export ────────────────────────────────────────────────────────────────────
EXPORT_SOURCE_LINE = (
    "# source: NASA POWER (temporal=daily, point, time-standard=UTC); "
    "units: T2M=°C, RH2M=%, WS2M=m/s, PRECTOTCORR=mm/day"
)
EXPORT_FILENAME_PREFIX = "nasa_power_prob"
XLSX_FILENAME_PREFIX = "weather_analysis"

# ── Named locations (for the command-line runner) ─────────────────────────────
# key → { lat, lon, name }
LOCATIONS = {
    "SIBU": {"lat": 1.55, "lon": 110.35, "name": "Sibu, Sarawak"},
    "KCH": {"lat": 1.5535, "lon": 110.3593, "name": "Kuching"},
    "NYC": {"lat": 40.7829, "lon": -73.9654, "name": "New York City"},
    "CHI": {"lat": 41.9742, "lon": -87.9073, "name": "Chicago"},
    "PHX": {"lat": 33.4373, "lon": -112.0078, "name": "Phoenix"},
    "SEA": {"lat": 47.4502, "lon": -122.3088, "name": "Seattle"},
}


def location_from_text(text: str) -> dict | None:
    """Return the LOCATIONS entry whose key or name matches *text*, or None."""
    lowered = text.strip().lower()
    for key, info in LOCATIONS.items():
        if lowered == key.lower() or lowered == info["name"].lower():
            return info
    return None

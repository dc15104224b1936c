"""Configuration constants, provider endpoints and .env loading.

WHY: Centralizes every tunable value (display geometry, scroll timing,
notification throttles, provider URLs, the database path) so both the
service and the CLI read the same numbers and operators can override
them without touching code.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values read from the environment with sensible defaults.
The load_*_key() functions give a clear error (or an explicit "no key"
result) when a provider key is missing.

RULES:
- API keys come from .env / the environment, never from source
- Places and LLM keys are required to use those providers; weather is
  optional (mock weather is used without a key)
- Display defaults match the glasses: 36 chars x 3 lines
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


# ---------------------------------------------------------------------------
# Display geometry and timing
# ---------------------------------------------------------------------------

MAX_LINE_LENGTH = _env_int("QUEST_HUD_MAX_LINE_LENGTH", 36)
MAX_LINES_PER_SCREEN = _env_int("QUEST_HUD_MAX_LINES_PER_SCREEN", 3)
SCROLL_DELAY_MS = _env_int("QUEST_HUD_SCROLL_DELAY_MS", 1000)

NOTICE_DURATION_MS = 3000
PROXIMITY_NOTICE_DURATION_MS = 2000
WELCOME_DURATION_MS = 5000

# ---------------------------------------------------------------------------
# Proximity and speech
# ---------------------------------------------------------------------------

PROXIMITY_NOTICE_INTERVAL_S = _env_float("QUEST_HUD_PROXIMITY_INTERVAL_S", 6.0)
NEARBY_THRESHOLD_M = 100
TTS_DEBOUNCE_S = 2.0
TTS_RELEASE_S = 0.5

# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------

DEFAULT_QUEST_POINTS = 100
PLACES_SEARCH_RADIUS_M = 2000
POI_CACHE_RADIUS_KM = 5.0

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

DATABASE_PATH = os.getenv("QUEST_HUD_DATABASE_PATH", os.path.join("data", "quests.db"))

# ---------------------------------------------------------------------------
# Provider endpoints
# ---------------------------------------------------------------------------

PLACES_BASE_URL = os.getenv("PLACES_BASE_URL", "https://maps.googleapis.com/maps/api/place")
DIRECTIONS_BASE_URL = os.getenv("DIRECTIONS_BASE_URL", "https://maps.googleapis.com/maps/api/directions")
WEATHER_BASE_URL = os.getenv("WEATHER_BASE_URL", "https://api.openweathermap.org/data/2.5")
ANTHROPIC_BASE_URL = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-3-haiku-20240307")
ANTHROPIC_API_VERSION = "2023-06-01"

# ---------------------------------------------------------------------------
# HTTP server
# ---------------------------------------------------------------------------

SERVER_HOST = os.getenv("QUEST_HUD_HOST", "0.0.0.0")
SERVER_PORT = _env_int("PORT", 3000)


def load_places_key() -> str:
    """Load the Google Maps Platform key used for Places and Directions.

    RULES:
    - Raises ValueError if the key is missing or empty
    """
    key = os.getenv("GOOGLE_PLACES_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "Google Places API key not configured. "
            "Add GOOGLE_PLACES_API_KEY to the .env file."
        )
    return key


def load_anthropic_key() -> str:
    """Load the Anthropic API key used for quest generation.

    RULES:
    - Raises ValueError if the key is missing or empty
    """
    key = os.getenv("ANTHROPIC_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "Anthropic API key not configured. "
            "Add ANTHROPIC_API_KEY to the .env file."
        )
    return key


def load_weather_key() -> str:
    """Load the OpenWeatherMap key, or "" when weather should be mocked.

    The placeholder value from the sample .env counts as missing.
    """
    key = os.getenv("WEATHER_API_KEY", "").strip()
    if key == "your_weather_api_key_here":
        return ""
    return key

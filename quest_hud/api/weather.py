"""OpenWeatherMap client with a mock fallback.

WHY: Quest generation reads better when it knows it is raining. Weather
is flavour, not a requirement, so a missing key or a provider failure
must never block a quest.

HOW: WeatherClient.get_weather() calls the current-weather endpoint and
maps the provider's "main" condition onto a small set of conditions.
With no key, or on any failure, it returns mock weather drawn from an
injectable random.Random.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import List, Optional

import httpx

from quest_hud.api.base import BaseServiceClient, ServiceAPIError
from quest_hud.config import WEATHER_BASE_URL, load_weather_key

logger = logging.getLogger(__name__)

CONDITIONS = ("sunny", "cloudy", "rainy", "snowy", "partly_cloudy")

_CONDITION_MAP = {
    "clear": "sunny",
    "clouds": "cloudy",
    "rain": "rainy",
    "drizzle": "rainy",
    "thunderstorm": "rainy",
    "snow": "snowy",
    "mist": "cloudy",
    "fog": "cloudy",
    "haze": "partly_cloudy",
}

_RAIN_MAINS = ("Rain", "Drizzle", "Thunderstorm")

_MOCK_DESCRIPTIONS = {
    "sunny": "Clear skies",
    "cloudy": "Overcast",
    "rainy": "Light rain",
    "snowy": "Light snow",
    "partly_cloudy": "Partly cloudy",
}


@dataclass
class Weather:
    condition: str
    temperature: int
    description: str
    is_raining: bool


def map_condition(main: str) -> str:
    """Provider "main" field to one of CONDITIONS; unknown reads as partly_cloudy."""
    return _CONDITION_MAP.get(main.lower(), "partly_cloudy")


def mock_weather(rng: Optional[random.Random] = None) -> Weather:
    rng = rng or random.Random()
    condition = rng.choice(CONDITIONS)
    return Weather(
        condition=condition,
        temperature=rng.randint(5, 29),
        description=_MOCK_DESCRIPTIONS[condition],
        is_raining=condition == "rainy",
    )


class WeatherClient(BaseServiceClient):
    """Current conditions at a point. Never raises from get_weather()."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(base_url or WEATHER_BASE_URL, transport=transport)
        self._api_key = load_weather_key() if api_key is None else api_key
        self._rng = rng or random.Random()

    async def get_weather(self, lat: float, lng: float) -> Weather:
        if not self._api_key:
            logger.info("No weather API key configured, using mock weather")
            return mock_weather(self._rng)

        try:
            data = await self._get_json(
                "/weather",
                params={"lat": lat, "lon": lng, "appid": self._api_key, "units": "metric"},
            )
            first = data["weather"][0]
            main = first["main"]
            return Weather(
                condition=map_condition(main),
                temperature=int(round(data["main"]["temp"])),
                description=first.get("description", main),
                is_raining=main in _RAIN_MAINS,
            )
        except (ServiceAPIError, httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("Weather lookup failed, using mock weather: %s", exc)
            return mock_weather(self._rng)


def recommendations(weather: Weather) -> List[str]:
    """Packing hints for the conditions."""
    hints = []
    if weather.is_raining:
        hints.append("Bring an umbrella")
    if weather.condition == "sunny" and weather.temperature > 20:
        hints.extend(["Wear sunscreen", "Stay hydrated", "Consider a hat"])
    if weather.temperature < 10:
        hints.append("Dress warmly")
        hints.append("Wear a warm jacket")
    if weather.condition == "snowy":
        hints.append("Wear waterproof boots")
    return hints

"""Tests for the weather client and its mock fallback."""

from __future__ import annotations

import asyncio
import random

import httpx
import pytest

from quest_hud.api.weather import (
    CONDITIONS,
    Weather,
    WeatherClient,
    map_condition,
    mock_weather,
    recommendations,
)

BASE = "https://weather.test/data"


def _get(transport=None, api_key="test-key", seed=1):
    async def scenario():
        async with WeatherClient(
            api_key=api_key, base_url=BASE, transport=transport, rng=random.Random(seed)
        ) as client:
            return await client.get_weather(59.33, 18.07)

    return asyncio.run(scenario())


class TestConditionMapping:
    @pytest.mark.parametrize(
        "main, expected",
        [("Clear", "sunny"), ("Drizzle", "rainy"), ("Snow", "snowy"), ("Fog", "cloudy"),
         ("Tornado", "partly_cloudy")],
    )
    def test_map(self, main, expected):
        assert map_condition(main) == expected


class TestGetWeather:
    def test_parses_provider_reply(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"weather": [{"main": "Rain", "description": "light rain"}], "main": {"temp": 7.6}},
            )

        weather = _get(httpx.MockTransport(handler))
        assert weather == Weather("rainy", 8, "light rain", True)
        params = seen[0].url.params
        assert seen[0].url.path == "/data/weather"
        assert params["units"] == "metric"
        assert params["lon"] == "18.07"
        assert params["appid"] == "test-key"

    def test_no_key_uses_mock(self):
        def handler(request):
            raise AssertionError("provider must not be called")

        weather = _get(httpx.MockTransport(handler), api_key="")
        assert weather.condition in CONDITIONS
        assert 5 <= weather.temperature <= 29

    def test_provider_error_uses_mock(self):
        weather = _get(httpx.MockTransport(lambda r: httpx.Response(401, text="bad key")))
        assert weather.condition in CONDITIONS

    def test_malformed_reply_uses_mock(self):
        weather = _get(httpx.MockTransport(lambda r: httpx.Response(200, json={"weather": []})))
        assert weather.condition in CONDITIONS

    def test_mock_is_deterministic_with_seed(self):
        assert mock_weather(random.Random(3)) == mock_weather(random.Random(3))


class TestRecommendations:
    def test_rain(self):
        assert recommendations(Weather("rainy", 15, "rain", True)) == ["Bring an umbrella"]

    def test_hot_sun(self):
        assert recommendations(Weather("sunny", 25, "clear", False)) == [
            "Wear sunscreen", "Stay hydrated", "Consider a hat",
        ]

    def test_cold_snow(self):
        assert recommendations(Weather("snowy", -2, "snow", False)) == [
            "Dress warmly", "Wear a warm jacket", "Wear waterproof boots",
        ]

    def test_mild(self):
        assert recommendations(Weather("cloudy", 15, "overcast", False)) == []

"""Async clients for the external providers the quest app talks to.

WHY: Places, directions, weather and quest text all come from HTTP
services. Keeping them behind typed clients means the quest logic never
sees raw JSON and tests can swap the network for httpx.MockTransport.

HOW: Every client subclasses BaseServiceClient (httpx.AsyncClient in an
async context manager) and parses replies into dataclasses.

RULES:
- All provider HTTP goes through these clients
- Non-2xx replies raise ServiceAPIError
- Weather and directions degrade (mock / None) instead of raising
"""

from quest_hud.api.base import BaseServiceClient, ServiceAPIError
from quest_hud.api.directions import DirectionsClient, WalkingDirections
from quest_hud.api.llm import GeneratedQuest, QuestContext, QuestGenerationError, QuestGenerator
from quest_hud.api.places import Place, PlacesClient, QuestDraft, describe_quest
from quest_hud.api.weather import Weather, WeatherClient

__all__ = [
    "BaseServiceClient",
    "DirectionsClient",
    "GeneratedQuest",
    "Place",
    "PlacesClient",
    "QuestContext",
    "QuestDraft",
    "QuestGenerationError",
    "QuestGenerator",
    "ServiceAPIError",
    "WalkingDirections",
    "Weather",
    "WeatherClient",
]

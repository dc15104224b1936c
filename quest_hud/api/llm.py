"""Quest generation with the Anthropic Messages API.

WHY: A canned "Visit X" quest is fine, but a quest that knows it is lunch
time and raining, and that the user did three food quests this week,
is a better quest. The LLM picks one of the nearby places and writes
the quest text around it.

HOW:
1. curate_pois() keeps the 15 best-rated places and shuffles them
2. build_prompt() lists them by index with time, weather and recent
   categories as context
3. generate() posts the prompt to /messages and parse_quest_reply()
   pulls the JSON object out of the reply and validates it with
   jsonschema against QUEST_SCHEMA
4. Any failure after curation yields fallback_quest() instead

RULES:
- points 50-200, title 5-100 chars, description 20-300, reasoning 10-200
- selected_poi_index must point into the curated list
- An empty place list raises QuestGenerationError (nothing to fall back to)
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import jsonschema

from quest_hud.api.base import BaseServiceClient, ServiceAPIError
from quest_hud.api.places import Place
from quest_hud.api.weather import Weather
from quest_hud.config import (
    ANTHROPIC_API_VERSION,
    ANTHROPIC_BASE_URL,
    ANTHROPIC_MODEL,
    DEFAULT_QUEST_POINTS,
    load_anthropic_key,
)

logger = logging.getLogger(__name__)

MAX_CURATED_POIS = 15
_MAX_TOKENS = 1000
_TEMPERATURE = 0.8

QUEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "selected_poi_index": {"type": "integer", "minimum": 0},
        "title": {"type": "string", "minLength": 5, "maxLength": 100},
        "description": {"type": "string", "minLength": 20, "maxLength": 300},
        "points": {"type": "integer", "minimum": 50, "maximum": 200},
        "reasoning": {"type": "string", "minLength": 10, "maxLength": 200},
    },
    "required": ["selected_poi_index", "title", "description", "points", "reasoning"],
}


class QuestGenerationError(Exception):
    """Raised when a quest cannot be produced from the model's reply.

    RULES:
    - Covers unparseable JSON, schema violations and out-of-range indexes
    - Also raised by generate() when there are no places to choose from
    """


@dataclass
class QuestContext:
    current_time: datetime
    nearby_pois: List[Place]
    weather: Optional[Weather] = None
    recent_categories: List[str] = field(default_factory=list)


@dataclass
class GeneratedQuest:
    place: Place
    title: str
    description: str
    points: int
    reasoning: str
    fallback: bool = False


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------


def time_flavor(hour: int) -> str:
    if 6 <= hour < 10:
        return "morning"
    if 10 <= hour < 12:
        return "late morning"
    if 12 <= hour < 14:
        return "lunch time"
    if 14 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 19:
        return "dinner time"
    if 19 <= hour < 22:
        return "evening"
    return "night"


def format_time_with_flavor(moment: datetime) -> str:
    """e.g. "2:05 PM (afternoon)"."""
    clock = "{}:{:02d} {}".format(
        moment.hour % 12 or 12, moment.minute, "AM" if moment.hour < 12 else "PM"
    )
    return "{} ({})".format(clock, time_flavor(moment.hour))


def curate_pois(pois: List[Place], rng: Optional[random.Random] = None) -> List[Place]:
    """Top MAX_CURATED_POIS by rating, shuffled."""
    rng = rng or random.Random()
    curated = sorted(pois, key=lambda p: p.rating or 0, reverse=True)[:MAX_CURATED_POIS]
    rng.shuffle(curated)
    return curated


def build_prompt(context: QuestContext, curated: List[Place]) -> str:
    lines = ["Current time: {}".format(format_time_with_flavor(context.current_time))]
    if context.weather is not None:
        lines.append(
            "Weather: {}, {}°C ({})".format(
                context.weather.condition,
                context.weather.temperature,
                context.weather.description,
            )
        )
    if context.recent_categories:
        lines.append(
            "Recent quest categories to avoid repeating: {}".format(
                ", ".join(context.recent_categories)
            )
        )
    lines.append("")
    lines.append("Available POIs:")
    for index, poi in enumerate(curated):
        rating = " - Rating: {}/5".format(poi.rating) if poi.rating else ""
        lines.append(
            "{}. {} - {} ({}){}".format(index, poi.name, poi.address, ", ".join(poi.types), rating)
        )

    return (
        "You are a creative quest generator for a location-based adventure game. "
        "Given the current context and a list of nearby places, create an engaging "
        "quest that makes sense for the time, weather, and location.\n\n"
        "{context}\n\n"
        "Guidelines:\n"
        "- Choose ONE POI from the list by its index number (0-{last})\n"
        "- Create a quest that fits the current time and weather conditions\n"
        "- Avoid categories the user has done recently\n"
        "- Make the quest specific and engaging with clear objectives\n"
        "- Points should reflect difficulty: 50-75 (easy), 76-125 (medium), 126-200 (hard)\n"
        "- Consider distance, time of day, and weather when assigning points\n\n"
        "Reply with a single JSON object and nothing else, with keys "
        "\"selected_poi_index\" (integer), \"title\" (5-100 chars, include the POI name), "
        "\"description\" (20-300 chars), \"points\" (integer 50-200) and "
        "\"reasoning\" (10-200 chars)."
    ).format(context="\n".join(lines), last=len(curated) - 1)


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the outermost {...} in text, tolerating prose or fences around it."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise QuestGenerationError("No JSON object in model reply")
    try:
        value = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise QuestGenerationError("Model reply is not valid JSON: {}".format(exc)) from exc
    if not isinstance(value, dict):
        raise QuestGenerationError("Model reply JSON is not an object")
    return value


def parse_quest_reply(text: str, curated: List[Place]) -> GeneratedQuest:
    """Validate the model reply and resolve its POI index.

    Raises:
        QuestGenerationError: Unparseable, schema-invalid or out-of-range reply.
    """
    data = extract_json_object(text)
    try:
        jsonschema.validate(instance=data, schema=QUEST_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise QuestGenerationError("Model reply failed validation: {}".format(exc.message)) from exc

    index = data["selected_poi_index"]
    if index >= len(curated):
        raise QuestGenerationError(
            "Invalid POI index: {}, max is {}".format(index, len(curated) - 1)
        )
    return GeneratedQuest(
        place=curated[index],
        title=data["title"],
        description=data["description"],
        points=data["points"],
        reasoning=data["reasoning"],
    )


def fallback_quest(curated: List[Place], rng: Optional[random.Random] = None) -> GeneratedQuest:
    rng = rng or random.Random()
    place = rng.choice(curated)
    return GeneratedQuest(
        place=place,
        title="Explore {}".format(place.name),
        description=(
            "Visit {} and spend some time exploring what they have to offer. "
            "Take in the atmosphere and enjoy the experience.".format(place.name)
        ),
        points=DEFAULT_QUEST_POINTS,
        reasoning="Fallback quest due to AI generation failure",
        fallback=True,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class QuestGenerator(BaseServiceClient):
    """Async Messages API client that turns nearby places into a quest.

    Usage:
        async with QuestGenerator() as generator:
            quest = await generator.generate(context)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = ANTHROPIC_MODEL,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(
            base_url or ANTHROPIC_BASE_URL,
            headers={
                "x-api-key": api_key or load_anthropic_key(),
                "anthropic-version": ANTHROPIC_API_VERSION,
                "content-type": "application/json",
            },
            transport=transport,
        )
        self._model = model
        self._rng = rng or random.Random()

    async def generate(self, context: QuestContext) -> GeneratedQuest:
        """Generate a quest for one of context.nearby_pois.

        Returns a fallback quest if the request or the reply fails.

        Raises:
            QuestGenerationError: context.nearby_pois is empty.
        """
        if not context.nearby_pois:
            raise QuestGenerationError("No nearby places to build a quest around")

        curated = curate_pois(context.nearby_pois, self._rng)
        prompt = build_prompt(context, curated)
        try:
            data = await self._post_json(
                "/messages",
                {
                    "model": self._model,
                    "max_tokens": _MAX_TOKENS,
                    "temperature": _TEMPERATURE,
                    "messages": [{"role": "user", "content": prompt}],
                },
            )
            text = "".join(
                block.get("text", "")
                for block in data.get("content", [])
                if block.get("type") == "text"
            )
            quest = parse_quest_reply(text, curated)
        except (ServiceAPIError, httpx.HTTPError, QuestGenerationError) as exc:
            logger.warning("AI quest generation failed, using fallback: %s", exc)
            return fallback_quest(curated, self._rng)

        logger.info("Generated quest %r at %s", quest.title, quest.place.name)
        return quest

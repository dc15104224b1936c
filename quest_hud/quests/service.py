"""Quest lifecycle: pick or generate a quest, complete it, rank users.

WHY: The voice commands and the HTTP layer need one place that knows how
a quest is chosen and what completing one does to a user's stats. The
display and speech concerns stay in the command handler.

HOW: QuestService owns the database and optional provider clients. With
a location and a places client it builds a quest around a nearby place,
written by the LLM when a generator is configured and by describe_quest()
otherwise. Every provider failure falls back to a random stored template.

RULES:
- One active quest per user; start_quest() refuses a second one
- Generated quests are saved as templates before they are assigned
- Completion credits the template's points, or DEFAULT_QUEST_POINTS
  when the template is gone
- Provider clients are passed in already entered (async with ...)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from quest_hud.api.base import ServiceAPIError
from quest_hud.api.llm import MAX_CURATED_POIS, QuestContext, QuestGenerationError, QuestGenerator
from quest_hud.api.places import Place, PlacesClient, describe_quest
from quest_hud.api.weather import WeatherClient
from quest_hud.config import DEFAULT_QUEST_POINTS, POI_CACHE_RADIUS_KM
from quest_hud.core.geo import Location, haversine_m
from quest_hud.store.database import (
    ActiveQuest,
    LeaderboardRow,
    QuestDatabase,
    QuestTemplate,
    User,
)

logger = logging.getLogger(__name__)

ASSIGNED = "assigned"
ALREADY_ACTIVE = "already_active"
UNAVAILABLE = "unavailable"


@dataclass
class QuestOutcome:
    """Result of start_quest().

    kind is ASSIGNED, ALREADY_ACTIVE (template is the existing quest) or
    UNAVAILABLE (no template could be found or generated).
    """

    kind: str
    template: Optional[QuestTemplate] = None
    active: Optional[ActiveQuest] = None
    location_aware: bool = False


@dataclass
class CompletionResult:
    points: int
    title: str
    user: Optional[User]


class QuestService:
    def __init__(
        self,
        database: QuestDatabase,
        places: Optional[PlacesClient] = None,
        generator: Optional[QuestGenerator] = None,
        weather: Optional[WeatherClient] = None,
        rng: Optional[random.Random] = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.database = database
        self.places = places
        self.generator = generator
        self.weather = weather
        self._rng = rng or random.Random()
        self._now = now

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def register_user(self, user_id: str) -> User:
        return self.database.get_or_create_user(user_id)

    # ------------------------------------------------------------------
    # Starting quests
    # ------------------------------------------------------------------

    async def start_quest(self, user_id: str, location: Optional[Location]) -> QuestOutcome:
        self.database.get_or_create_user(user_id)

        existing = self.database.get_user_active_quest(user_id)
        if existing is not None:
            return QuestOutcome(
                kind=ALREADY_ACTIVE,
                template=self.database.get_quest_template(existing.quest_template_id),
                active=existing,
            )

        template = None
        if location is not None and self.places is not None:
            template = await self._generate_location_quest(user_id, location)
        else:
            logger.info("No location or places client for %s, using random quest", user_id)

        location_aware = template is not None
        if template is None:
            template = self.database.get_random_quest_template()
        if template is None:
            return QuestOutcome(kind=UNAVAILABLE)

        active = self.database.create_active_quest(user_id, template.id)
        logger.info(
            "Quest assigned to %s: %s (%s, location aware: %s)",
            user_id, template.title, template.category, location_aware,
        )
        return QuestOutcome(
            kind=ASSIGNED, template=template, active=active, location_aware=location_aware
        )

    async def _generate_location_quest(
        self, user_id: str, location: Location
    ) -> Optional[QuestTemplate]:
        """Build and save a quest around a nearby place, or None on failure."""
        logger.info("Generating location-aware quest at %.5f,%.5f", location.lat, location.lng)
        try:
            locations = await self.places.find_quest_locations(location.lat, location.lng)
        except (ServiceAPIError, httpx.HTTPError):
            logger.exception("Error finding quest locations, falling back to database")
            return None
        if not locations:
            logger.warning("No quest locations found nearby, falling back to database")
            return None

        if self.generator is None:
            chosen = self._rng.choice(locations)
            draft = describe_quest(chosen.place, chosen.quest_type)
            return self._save_template(
                chosen.place, chosen.quest_type, draft.title, draft.description, draft.points
            )

        candidates = self._candidate_places(location, [(loc.place, loc.quest_type) for loc in locations])
        context = QuestContext(
            current_time=self._now(),
            nearby_pois=[place for place, _ in candidates.values()],
            weather=await self.weather.get_weather(location.lat, location.lng) if self.weather else None,
            recent_categories=self.database.get_recent_quest_categories(user_id),
        )
        try:
            generated = await self.generator.generate(context)
        except QuestGenerationError:
            logger.exception("Quest generation failed, falling back to database")
            return None

        _, category = candidates[generated.place.place_id]
        return self._save_template(
            generated.place, category, generated.title, generated.description, generated.points
        )

    def _candidate_places(
        self, location: Location, found: List[Tuple[Place, str]]
    ) -> Dict[str, Tuple[Place, str]]:
        """Fresh search results plus cached places nearby, keyed by place id."""
        candidates: Dict[str, Tuple[Place, str]] = {}
        for place, quest_type in found:
            candidates[place.place_id] = (place, quest_type)
        cached = self.database.get_pois_near(
            location.lat, location.lng, POI_CACHE_RADIUS_KM, limit=MAX_CURATED_POIS
        )
        for poi in cached:
            if poi.place_id in candidates:
                continue
            place = Place(
                place_id=poi.place_id, name=poi.name, address=poi.address,
                lat=poi.lat, lng=poi.lng, types=[poi.place_type],
                rating=poi.rating, price_level=poi.price_level,
            )
            candidates[poi.place_id] = (place, poi.place_type)
        return candidates

    def _save_template(
        self, place: Place, category: str, title: str, description: str, points: int
    ) -> QuestTemplate:
        return self.database.create_quest_template(
            title=title,
            description=description,
            category=category,
            points=points,
            location_name=place.name,
            location_address=place.address,
            location_lat=place.lat,
            location_lng=place.lng,
        )

    # ------------------------------------------------------------------
    # Active quest queries and completion
    # ------------------------------------------------------------------

    def current_quest(self, user_id: str) -> Optional[QuestTemplate]:
        """Template of the user's active quest, or None."""
        active = self.database.get_user_active_quest(user_id)
        if active is None:
            return None
        return self.database.get_quest_template(active.quest_template_id)

    def complete_quest(self, user_id: str) -> Optional[CompletionResult]:
        """Complete the active quest. None if the user has no active quest."""
        active = self.database.get_user_active_quest(user_id)
        if active is None:
            return None
        template = self.database.get_quest_template(active.quest_template_id)
        points = template.points if template else DEFAULT_QUEST_POINTS
        user = self.database.complete_quest(active.id, points)
        title = template.title if template else "your quest"
        logger.info("Quest completed by %s: %s (+%d)", user_id, title, points)
        return CompletionResult(points=points, title=title, user=user)

    def leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardRow]:
        return self.database.get_leaderboard(limit)

    def distance_to_quest(self, user_id: str, location: Optional[Location]) -> Optional[float]:
        """Metres from location to the active quest, or None if unknown."""
        if location is None:
            return None
        template = self.current_quest(user_id)
        if template is None or not template.has_coordinates:
            return None
        return haversine_m(
            location.lat, location.lng, template.location_lat, template.location_lng
        )

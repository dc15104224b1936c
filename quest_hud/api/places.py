"""Google Places client: nearby points of interest for quest generation.

WHY: Location-aware quests are built around a real place near the user.
The places provider tells us what is around; this module turns its
replies into typed Place objects and picks candidates per quest type.

HOW: PlacesClient extends BaseServiceClient. find_nearby_places() calls
the Nearby Search endpoint for the primary place type of a quest type;
find_quest_locations() does that for each quest type and keeps the best
rated result. Results are written to the POI cache when a database is
given, so later lookups can fall back to it.

RULES:
- At most 10 places per nearby search
- Results missing a place id, name or coordinates are dropped
- Address falls back to vicinity, then "Address not available"
- Provider status other than OK / ZERO_RESULTS raises ServiceAPIError
- Cache write failures are logged and ignored
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from quest_hud.api.base import BaseServiceClient, ServiceAPIError
from quest_hud.config import PLACES_BASE_URL, PLACES_SEARCH_RADIUS_M, load_places_key
from quest_hud.store.database import QuestDatabase

logger = logging.getLogger(__name__)

QUEST_TYPE_PLACE_TYPES: Dict[str, List[str]] = {
    "food": ["restaurant", "cafe", "bakery", "food"],
    "exercise": ["gym", "park", "stadium", "hiking_area"],
    "culture": ["library", "museum", "art_gallery", "book_store"],
    "exploration": ["tourist_attraction", "park", "point_of_interest"],
    "shopping": ["store", "shopping_mall", "supermarket"],
}

LOCATION_QUEST_TYPES = ("food", "exercise", "culture", "exploration")

_MAX_RESULTS = 10
_DETAIL_FIELDS = "place_id,name,formatted_address,geometry,types,rating,price_level"


@dataclass
class Place:
    place_id: str
    name: str
    address: str
    lat: float
    lng: float
    types: List[str] = field(default_factory=list)
    rating: Optional[float] = None
    price_level: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Place"]:
        """Parse a Places result, or None if it lacks id/name/geometry."""
        location = (data.get("geometry") or {}).get("location") or {}
        if not data.get("place_id") or not data.get("name"):
            return None
        if location.get("lat") is None or location.get("lng") is None:
            return None
        return cls(
            place_id=data["place_id"],
            name=data["name"],
            address=data.get("formatted_address") or data.get("vicinity") or "Address not available",
            lat=float(location["lat"]),
            lng=float(location["lng"]),
            types=list(data.get("types") or []),
            rating=data.get("rating"),
            price_level=data.get("price_level"),
        )


@dataclass
class QuestLocation:
    place: Place
    quest_type: str


@dataclass
class QuestDraft:
    title: str
    description: str
    points: int


class PlacesClient(BaseServiceClient):
    """Async client for the Places Nearby Search and Details endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        database: Optional[QuestDatabase] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(base_url or PLACES_BASE_URL, transport=transport)
        self._api_key = api_key or load_places_key()
        self._database = database

    async def find_nearby_places(
        self,
        lat: float,
        lng: float,
        quest_type: str,
        radius_m: int = PLACES_SEARCH_RADIUS_M,
    ) -> List[Place]:
        """Places of the quest type's primary place type around a point.

        Raises:
            KeyError: Unknown quest_type.
            ServiceAPIError: HTTP error or provider status not OK/ZERO_RESULTS.
        """
        place_type = QUEST_TYPE_PLACE_TYPES[quest_type][0]
        data = await self._get_json(
            "/nearbysearch/json",
            params={
                "location": "{},{}".format(lat, lng),
                "radius": radius_m,
                "type": place_type,
                "key": self._api_key,
            },
        )
        status = data.get("status", "")
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            raise ServiceAPIError(200, "Places API status {}".format(status))

        places = []
        for result in data.get("results", []):
            place = Place.from_dict(result)
            if place is not None:
                places.append(place)
        places = places[:_MAX_RESULTS]

        for place in places:
            self._cache(place, quest_type)
        return places

    async def get_place_details(self, place_id: str) -> Optional[Place]:
        """Details for one place, or None if the provider has nothing usable."""
        try:
            data = await self._get_json(
                "/details/json",
                params={"place_id": place_id, "fields": _DETAIL_FIELDS, "key": self._api_key},
            )
        except (ServiceAPIError, httpx.HTTPError):
            logger.warning("Place details lookup failed for %s", place_id, exc_info=True)
            return None
        if data.get("status") != "OK" or not data.get("result"):
            return None
        return Place.from_dict(data["result"])

    async def find_quest_locations(
        self,
        lat: float,
        lng: float,
        radius_m: int = PLACES_SEARCH_RADIUS_M,
    ) -> List[QuestLocation]:
        """Best-rated place for each location quest type.

        Quest types whose lookup fails are skipped with a warning.
        """
        locations = []
        for quest_type in LOCATION_QUEST_TYPES:
            try:
                places = await self.find_nearby_places(lat, lng, quest_type, radius_m)
            except (ServiceAPIError, httpx.HTTPError) as exc:
                logger.warning("Error finding places for %s: %s", quest_type, exc)
                continue
            if not places:
                continue
            best = max(places, key=lambda p: p.rating or 0)
            locations.append(QuestLocation(place=best, quest_type=quest_type))
        return locations

    def _cache(self, place: Place, quest_type: str) -> None:
        if self._database is None:
            return
        try:
            self._database.cache_poi(
                place_id=place.place_id,
                name=place.name,
                address=place.address,
                lat=place.lat,
                lng=place.lng,
                place_type=quest_type,
                rating=place.rating,
                price_level=place.price_level,
            )
        except Exception:
            logger.warning("Failed to cache place %s", place.name, exc_info=True)


_QUEST_TEMPLATES: Dict[str, tuple] = {
    "food": (
        "Culinary Explorer: {name}",
        "Visit {name} and try something new! Order a drink or snack and enjoy "
        "the local atmosphere. Take a moment to appreciate the flavors and ambiance.",
        100,
    ),
    "exercise": (
        "Fitness Challenge: {name}",
        "Head to {name} for some physical activity! Spend at least 10 minutes "
        "exercising, walking, or being active. Your body will thank you!",
        120,
    ),
    "culture": (
        "Cultural Discovery: {name}",
        "Explore {name} and discover something new! Spend time learning, reading, "
        "or appreciating art. Expand your mind and cultural horizons.",
        150,
    ),
    "exploration": (
        "Adventure Quest: {name}",
        "Embark on an adventure to {name}! Explore the area, take in the sights, "
        "and discover what makes this place special. Document your journey!",
        130,
    ),
    "shopping": (
        "Shopping Mission: {name}",
        "Visit {name} and browse around! Whether you're looking for something "
        "specific or just window shopping, enjoy the retail experience.",
        90,
    ),
}


def describe_quest(place: Place, quest_type: str) -> QuestDraft:
    """Canned quest text for a place; unknown types read as exploration."""
    title, description, points = _QUEST_TEMPLATES.get(
        quest_type, _QUEST_TEMPLATES["exploration"]
    )
    return QuestDraft(
        title=title.format(name=place.name),
        description=description.format(name=place.name),
        points=points,
    )

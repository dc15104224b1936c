"""Walking directions from the Google Directions API.

The provider returns turn-by-turn steps with HTML markup in the
instruction text; the glasses only render plain text, so tags are
stripped and entities decoded before anything leaves this module.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from quest_hud.api.base import BaseServiceClient, ServiceAPIError
from quest_hud.config import DIRECTIONS_BASE_URL, load_places_key

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass
class DirectionStep:
    instruction: str
    distance: str
    duration: str


@dataclass
class WalkingDirections:
    steps: List[DirectionStep] = field(default_factory=list)
    total_distance: str = ""
    total_duration: str = ""


def clean_html_instructions(text: str) -> str:
    """Strip tags and decode entities; &nbsp; becomes a plain space."""
    stripped = _TAG_RE.sub("", text)
    return html.unescape(stripped).replace("\xa0", " ").strip()


class DirectionsClient(BaseServiceClient):
    """Walking routes between two points. Uses the places API key."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(base_url or DIRECTIONS_BASE_URL, transport=transport)
        self._api_key = api_key or load_places_key()

    async def get_walking_directions(
        self,
        origin_lat: float,
        origin_lng: float,
        dest_lat: float,
        dest_lng: float,
    ) -> Optional[WalkingDirections]:
        """Route from origin to destination, or None when there is none.

        Provider and transport failures are logged and read as "no route".
        """
        try:
            data = await self._get_json(
                "/json",
                params={
                    "origin": "{},{}".format(origin_lat, origin_lng),
                    "destination": "{},{}".format(dest_lat, dest_lng),
                    "mode": "walking",
                    "key": self._api_key,
                },
            )
        except (ServiceAPIError, httpx.HTTPError) as exc:
            logger.warning("Failed to get walking directions: %s", exc)
            return None

        routes = data.get("routes") or []
        if data.get("status") != "OK" or not routes:
            logger.warning("No walking directions found (status %s)", data.get("status"))
            return None
        legs = routes[0].get("legs") or []
        if not legs:
            return None
        leg = legs[0]

        steps = [
            DirectionStep(
                instruction=clean_html_instructions(step.get("html_instructions", "")),
                distance=(step.get("distance") or {}).get("text", ""),
                duration=(step.get("duration") or {}).get("text", ""),
            )
            for step in leg.get("steps", [])
        ]
        return WalkingDirections(
            steps=steps,
            total_distance=(leg.get("distance") or {}).get("text", ""),
            total_duration=(leg.get("duration") or {}).get("text", ""),
        )


def next_steps(directions: WalkingDirections, count: int = 2) -> List[str]:
    return [
        "{} ({})".format(step.instruction, step.distance)
        for step in directions.steps[:count]
    ]


def format_directions(directions: WalkingDirections) -> str:
    lines = [
        "🚶 Walking directions ({}, {}):".format(
            directions.total_duration, directions.total_distance
        ),
        "",
    ]
    for index, step in enumerate(directions.steps, start=1):
        lines.append("{}. {}".format(index, step.instruction))
        lines.append("   {} • {}".format(step.distance, step.duration))
        lines.append("")
    return "\n".join(lines).strip()

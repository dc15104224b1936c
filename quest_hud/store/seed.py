"""Sample quest templates for a fresh database.

WHY: Without a places key, or before the first location fix arrives, the
app falls back to a random stored template. A new install needs a few to
choose from.

HOW: SAMPLE_QUESTS is plain data; seed_sample_quests() inserts it only
when the template table is empty so re-running is harmless.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from quest_hud.store.database import QuestDatabase

logger = logging.getLogger(__name__)

SAMPLE_QUESTS: List[Dict[str, Any]] = [
    {
        "title": "Discover the Freedom Trail",
        "description": "Follow the red brick path and learn about America's revolutionary history.",
        "category": "historical",
        "points": 150,
        "location_name": "Boston Common",
        "location_address": "139 Tremont St, Boston, MA 02111",
        "location_lat": 42.3550,
        "location_lng": -71.0662,
    },
    {
        "title": "Visit the Liberty Bell",
        "description": "See the iconic symbol of American independence and learn about its cracked history.",
        "category": "historical",
        "points": 125,
        "location_name": "Liberty Bell Center",
        "location_address": "526 Market St, Philadelphia, PA 19106",
        "location_lat": 39.9496,
        "location_lng": -75.1503,
    },
    {
        "title": "Coffee Shop Explorer",
        "description": "Find an independent coffee shop you have never visited and try their house special.",
        "category": "food",
        "points": 75,
        "location_name": "Any local cafe",
        "location_address": "Somewhere nearby",
        "location_lat": None,
        "location_lng": None,
    },
    {
        "title": "Park Loop Challenge",
        "description": "Walk a full loop of the nearest park and count how many dog breeds you spot.",
        "category": "exercise",
        "points": 120,
        "location_name": "Nearest park",
        "location_address": "Somewhere nearby",
        "location_lat": None,
        "location_lng": None,
    },
    {
        "title": "Library Treasure Hunt",
        "description": "Visit the public library, find the oldest book on the open shelves and read its first page.",
        "category": "culture",
        "points": 150,
        "location_name": "Public library",
        "location_address": "Somewhere nearby",
        "location_lat": None,
        "location_lng": None,
    },
]


def seed_sample_quests(database: QuestDatabase) -> int:
    """Insert SAMPLE_QUESTS if no templates exist yet.

    Returns:
        Number of templates inserted (0 when the table was not empty).
    """
    if database.count_quest_templates() > 0:
        logger.info("Quest templates already present, skipping seed")
        return 0
    for quest in SAMPLE_QUESTS:
        database.create_quest_template(**quest)
    logger.info("Seeded %d sample quest templates", len(SAMPLE_QUESTS))
    return len(SAMPLE_QUESTS)

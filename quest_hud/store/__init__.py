"""Persistence for users, streaks, quests and cached places.

WHY: Quest progress must survive reconnects and restarts.

HOW: database.py wraps a single SQLite file behind QuestDatabase;
seed.py provides sample quest templates for a fresh install.

RULES:
- All SQL lives in database.py
- QuestDatabase is safe to share between threads
"""

from quest_hud.store.database import (
    ActiveQuest,
    CachedPOI,
    LeaderboardRow,
    QuestDatabase,
    QuestTemplate,
    User,
)
from quest_hud.store.seed import seed_sample_quests

__all__ = [
    "ActiveQuest",
    "CachedPOI",
    "LeaderboardRow",
    "QuestDatabase",
    "QuestTemplate",
    "User",
    "seed_sample_quests",
]

"""SQLite persistence for users, streaks, quest templates and POI cache.

WHY: Points, streaks and the quest a user is currently on must survive a
reconnect or a server restart. Quest templates generated from nearby
places are stored so "current quest" can show the same text again, and
places are cached so an outage at the places provider still leaves
something to suggest.

HOW: A single sqlite3 connection opened with check_same_thread=False and
guarded by a threading.Lock, because the HTTP layer and background tasks
touch it from different threads. Rows come back as small dataclasses.
The schema is created on construction and is idempotent.

RULES:
- All public methods acquire self._lock
- IDs are "<prefix>_<uuid4 hex>" strings
- A user has at most one quest with status 'active' at a time (enforced by
  the quest service, looked up newest-first here)
- complete_quest() updates points, count and streak in one transaction
- Streak: same calendar day keeps it, the next day extends it, any gap
  resets it to 1; longest_streak never decreases
- Timestamps are ISO-8601 UTC strings; streak days are ISO dates
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from quest_hud.config import DATABASE_PATH
from quest_hud.core.geo import haversine_m

logger = logging.getLogger(__name__)

QUEST_STATUSES = ("active", "completed", "abandoned")


@dataclass
class User:
    id: str
    total_points: int
    quests_completed: int
    current_streak: int
    longest_streak: int
    last_completed_on: Optional[str]
    created_at: str
    last_active: str


@dataclass
class QuestTemplate:
    """A quest that can be handed to a user.

    location_lat/location_lng are None for templates without a fixed spot;
    such quests never trigger distance notices.
    """

    id: str
    title: str
    description: str
    category: str
    points: int
    location_name: str
    location_address: str
    location_lat: Optional[float]
    location_lng: Optional[float]
    created_at: str

    @property
    def has_coordinates(self) -> bool:
        return self.location_lat is not None and self.location_lng is not None


@dataclass
class ActiveQuest:
    id: str
    user_id: str
    quest_template_id: str
    status: str
    started_at: str
    completed_at: Optional[str] = None
    points_earned: Optional[int] = None


@dataclass
class CachedPOI:
    id: str
    place_id: str
    name: str
    address: str
    lat: float
    lng: float
    place_type: str
    rating: Optional[float]
    price_level: Optional[int]
    last_updated: str


@dataclass
class LeaderboardRow:
    id: str
    total_points: int
    quests_completed: int
    current_streak: int


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id(prefix: str) -> str:
    return "{}_{}".format(prefix, uuid.uuid4().hex)


def next_streak(
    current: int, longest: int, last_completed_on: Optional[str], today: date
) -> tuple:
    """Return (current, longest) after a completion on ``today``."""
    if last_completed_on is None:
        current = 1
    else:
        last = date.fromisoformat(last_completed_on)
        if last == today:
            current = max(current, 1)
        elif last == today - timedelta(days=1):
            current = current + 1
        else:
            current = 1
    return current, max(longest, current)


class QuestDatabase:
    """Thread-safe SQLite store for the quest app.

    WHY: One object that owns the connection, the schema and every query
    the app runs, so callers never write SQL.

    RULES:
    - db_path ":memory:" gives a private in-memory database (tests)
    - The parent directory of a file path is created if missing
    - Lookups return None (or []) for missing rows; they do not raise
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path or DATABASE_PATH
        if self.db_path != ":memory:":
            parent = os.path.dirname(self.db_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._conn.executescript("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    total_points INTEGER DEFAULT 0,
                    quests_completed INTEGER DEFAULT 0,
                    current_streak INTEGER DEFAULT 0,
                    longest_streak INTEGER DEFAULT 0,
                    last_completed_on TEXT,
                    created_at TEXT NOT NULL,
                    last_active TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS quest_templates (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    category TEXT NOT NULL,
                    points INTEGER NOT NULL,
                    location_name TEXT NOT NULL,
                    location_address TEXT NOT NULL,
                    location_lat REAL,
                    location_lng REAL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS active_quests (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    quest_template_id TEXT NOT NULL,
                    status TEXT CHECK(status IN ('active', 'completed', 'abandoned'))
                        DEFAULT 'active',
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    points_earned INTEGER,
                    FOREIGN KEY (user_id) REFERENCES users (id),
                    FOREIGN KEY (quest_template_id) REFERENCES quest_templates (id)
                );

                CREATE TABLE IF NOT EXISTS poi_cache (
                    id TEXT PRIMARY KEY,
                    place_id TEXT UNIQUE NOT NULL,
                    name TEXT NOT NULL,
                    address TEXT NOT NULL,
                    lat REAL NOT NULL,
                    lng REAL NOT NULL,
                    place_type TEXT NOT NULL,
                    rating REAL,
                    price_level INTEGER,
                    last_updated TEXT NOT NULL
                );
            """)
            self._conn.commit()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user_id: str) -> User:
        """Insert a user if missing and return the stored row."""
        now = _now()
        with self._lock:
            self._conn.execute(
                "INSERT OR IGNORE INTO users (id, created_at, last_active) VALUES (?, ?, ?)",
                (user_id, now, now),
            )
            self._conn.commit()
            return self._fetch_user(user_id)

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._fetch_user(user_id)

    def touch_user(self, user_id: str) -> None:
        """Bump last_active for a user."""
        with self._lock:
            self._conn.execute(
                "UPDATE users SET last_active = ? WHERE id = ?", (_now(), user_id)
            )
            self._conn.commit()

    def get_or_create_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if user is None:
            logger.info("Creating user %s", user_id)
            return self.create_user(user_id)
        self.touch_user(user_id)
        return user

    def _fetch_user(self, user_id: str) -> Optional[User]:
        row = self._conn.execute(
            "SELECT * FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        return User(**dict(row)) if row else None

    # ------------------------------------------------------------------
    # Quest templates
    # ------------------------------------------------------------------

    def create_quest_template(
        self,
        title: str,
        description: str,
        category: str,
        points: int,
        location_name: str,
        location_address: str,
        location_lat: Optional[float] = None,
        location_lng: Optional[float] = None,
    ) -> QuestTemplate:
        template = QuestTemplate(
            id=_new_id("quest"),
            title=title,
            description=description,
            category=category,
            points=points,
            location_name=location_name,
            location_address=location_address,
            location_lat=location_lat,
            location_lng=location_lng,
            created_at=_now(),
        )
        with self._lock:
            self._conn.execute(
                """INSERT INTO quest_templates (id, title, description, category, points,
                   location_name, location_address, location_lat, location_lng, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (template.id, template.title, template.description, template.category,
                 template.points, template.location_name, template.location_address,
                 template.location_lat, template.location_lng, template.created_at),
            )
            self._conn.commit()
        return template

    def get_quest_template(self, template_id: str) -> Optional[QuestTemplate]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM quest_templates WHERE id = ?", (template_id,)
            ).fetchone()
        return QuestTemplate(**dict(row)) if row else None

    def get_random_quest_template(self) -> Optional[QuestTemplate]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM quest_templates ORDER BY RANDOM() LIMIT 1"
            ).fetchone()
        return QuestTemplate(**dict(row)) if row else None

    def get_quest_templates_by_category(
        self, category: str, limit: int = 10
    ) -> List[QuestTemplate]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM quest_templates WHERE category = ? ORDER BY RANDOM() LIMIT ?",
                (category, limit),
            ).fetchall()
        return [QuestTemplate(**dict(r)) for r in rows]

    def count_quest_templates(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM quest_templates").fetchone()[0]

    # ------------------------------------------------------------------
    # Active quests
    # ------------------------------------------------------------------

    def create_active_quest(self, user_id: str, template_id: str) -> ActiveQuest:
        """Assign a template to a user. The user row must exist."""
        quest = ActiveQuest(
            id=_new_id("active"),
            user_id=user_id,
            quest_template_id=template_id,
            status="active",
            started_at=_now(),
        )
        with self._lock:
            self._conn.execute(
                """INSERT INTO active_quests (id, user_id, quest_template_id, status, started_at)
                   VALUES (?, ?, ?, 'active', ?)""",
                (quest.id, quest.user_id, quest.quest_template_id, quest.started_at),
            )
            self._conn.commit()
        return quest

    def get_user_active_quest(self, user_id: str) -> Optional[ActiveQuest]:
        with self._lock:
            row = self._conn.execute(
                """SELECT * FROM active_quests WHERE user_id = ? AND status = 'active'
                   ORDER BY started_at DESC LIMIT 1""",
                (user_id,),
            ).fetchone()
        return ActiveQuest(**dict(row)) if row else None

    def complete_quest(
        self,
        active_quest_id: str,
        points: int,
        today: Optional[date] = None,
    ) -> Optional[User]:
        """Mark an active quest completed and credit the user.

        WHY: Completion touches two tables (quest status, user totals and
        streak); doing it in one locked transaction keeps them consistent.

        RULES:
        - Returns the updated User, or None if the quest does not exist or
          is no longer active (nothing is changed in that case)
        - today defaults to the current UTC date (injectable for tests)
        """
        today = today or datetime.now(timezone.utc).date()
        now = _now()
        with self._lock:
            row = self._conn.execute(
                "SELECT user_id, status FROM active_quests WHERE id = ?",
                (active_quest_id,),
            ).fetchone()
            if row is None or row["status"] != "active":
                return None
            user = self._fetch_user(row["user_id"])
            if user is None:
                return None

            current, longest = next_streak(
                user.current_streak, user.longest_streak, user.last_completed_on, today
            )
            try:
                self._conn.execute(
                    """UPDATE active_quests SET status = 'completed', completed_at = ?,
                       points_earned = ? WHERE id = ?""",
                    (now, points, active_quest_id),
                )
                self._conn.execute(
                    """UPDATE users SET total_points = total_points + ?,
                       quests_completed = quests_completed + 1,
                       current_streak = ?, longest_streak = ?,
                       last_completed_on = ?, last_active = ?
                       WHERE id = ?""",
                    (points, current, longest, today.isoformat(), now, user.id),
                )
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
            return self._fetch_user(user.id)

    def abandon_quest(self, active_quest_id: str) -> bool:
        """Mark an active quest abandoned. Returns False if it was not active."""
        with self._lock:
            cur = self._conn.execute(
                """UPDATE active_quests SET status = 'abandoned', completed_at = ?
                   WHERE id = ? AND status = 'active'""",
                (_now(), active_quest_id),
            )
            self._conn.commit()
            return cur.rowcount > 0

    # ------------------------------------------------------------------
    # POI cache
    # ------------------------------------------------------------------

    def cache_poi(
        self,
        place_id: str,
        name: str,
        address: str,
        lat: float,
        lng: float,
        place_type: str,
        rating: Optional[float] = None,
        price_level: Optional[int] = None,
    ) -> CachedPOI:
        """Insert or refresh a cached place, keyed by place_id."""
        poi = CachedPOI(
            id=_new_id("poi"), place_id=place_id, name=name, address=address,
            lat=lat, lng=lng, place_type=place_type, rating=rating,
            price_level=price_level, last_updated=_now(),
        )
        with self._lock:
            self._conn.execute(
                """INSERT OR REPLACE INTO poi_cache (id, place_id, name, address, lat, lng,
                   place_type, rating, price_level, last_updated)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (poi.id, poi.place_id, poi.name, poi.address, poi.lat, poi.lng,
                 poi.place_type, poi.rating, poi.price_level, poi.last_updated),
            )
            self._conn.commit()
        return poi

    def get_pois_near(
        self, lat: float, lng: float, radius_km: float = 5.0, limit: int = 10
    ) -> List[CachedPOI]:
        """Cached places within radius_km of a point, nearest first."""
        with self._lock:
            rows = self._conn.execute("SELECT * FROM poi_cache").fetchall()
        scored = []
        for row in rows:
            poi = CachedPOI(**dict(row))
            dist = haversine_m(lat, lng, poi.lat, poi.lng)
            if dist <= radius_km * 1000:
                scored.append((dist, poi))
        scored.sort(key=lambda item: item[0])
        return [poi for _, poi in scored[:limit]]

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardRow]:
        sql = """SELECT id, total_points, quests_completed, current_streak FROM users
                 ORDER BY total_points DESC, quests_completed DESC"""
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [LeaderboardRow(**dict(r)) for r in rows]

    def get_recent_quest_categories(self, user_id: str, limit: int = 3) -> List[str]:
        """Categories of the user's most recently completed quests, newest first."""
        with self._lock:
            rows = self._conn.execute(
                """SELECT qt.category, MAX(aq.completed_at) AS last_done
                   FROM active_quests aq
                   JOIN quest_templates qt ON aq.quest_template_id = qt.id
                   WHERE aq.user_id = ? AND aq.status = 'completed'
                   GROUP BY qt.category
                   ORDER BY last_done DESC
                   LIMIT ?""",
                (user_id, limit),
            ).fetchall()
        return [r["category"] for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

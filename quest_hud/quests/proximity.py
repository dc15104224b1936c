"""Throttled distance notices driven by location updates.

Every location fix is recorded on the session. When the user has an
active quest with coordinates, a distance notice is shown at most once
per PROXIMITY_NOTICE_INTERVAL_S. Notices go through
SessionContext.notify(), so they are dropped while a scroll is running;
the throttle slot is still used up in that case.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from quest_hud.config import PROXIMITY_NOTICE_DURATION_MS, PROXIMITY_NOTICE_INTERVAL_S
from quest_hud.core.cards import distance_notice
from quest_hud.core.geo import Location
from quest_hud.display.session import SessionContext
from quest_hud.quests.service import QuestService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProximityCheck:
    """Outcome of one location fix.

    Attributes:
        distance_m: Meters to the active quest, or None when there is no
            quest, the quest has no coordinates or the lookup failed.
        notice_shown: True if a distance notice was rendered.
    """

    distance_m: Optional[float] = None
    notice_shown: bool = False


class ProximityMonitor:
    def __init__(
        self, service: QuestService, interval_s: float = PROXIMITY_NOTICE_INTERVAL_S
    ) -> None:
        self.service = service
        self.interval_s = interval_s

    async def on_location(
        self,
        session: SessionContext,
        lat: float,
        lng: float,
        accuracy: Optional[float] = None,
        timestamp: Optional[float] = None,
    ) -> ProximityCheck:
        """Record a location fix and maybe show a distance notice."""
        session.location = Location(lat=lat, lng=lng, accuracy=accuracy, timestamp=timestamp)

        try:
            meters = self.service.distance_to_quest(session.user_id, session.location)
        except sqlite3.Error:
            logger.warning("Error checking quest proximity for %s", session.user_id, exc_info=True)
            return ProximityCheck()
        if meters is None:
            return ProximityCheck()

        now = session.clock()
        last = session.last_proximity_notice
        if last is not None and now - last <= self.interval_s:
            return ProximityCheck(distance_m=meters)
        session.last_proximity_notice = now

        logger.info("Distance to quest for %s: %.0fm", session.user_id, meters)
        shown = await session.notify(distance_notice(meters), PROXIMITY_NOTICE_DURATION_MS)
        return ProximityCheck(distance_m=meters, notice_shown=shown)

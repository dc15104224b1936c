"""Voice commands: final transcriptions in, cards and speech out.

WHY: The user drives the whole app by talking. Each final transcription
is matched against a handful of phrases and turned into one action.

HOW: parse() maps text to an Intent by case-insensitive substring match,
first match wins in the order of INTENT_PHRASES. handle() runs the
action: long cards go through display_scrolling_text(), short replies
through SessionContext.notify(), acknowledgements through the speech
debouncer.

RULES:
- Unmatched text is ignored
- A command that arrives while the session is scrolling is dropped, not
  queued; the user can repeat it once the scroll ends
- Quest completion and the leaderboard query run off the event loop
  thread via asyncio.to_thread()
- Any failure in an action becomes a short "Error ... Please try again."
  notice and is logged with the traceback
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Optional

from quest_hud.config import (
    MAX_LINE_LENGTH,
    MAX_LINES_PER_SCREEN,
    NEARBY_THRESHOLD_M,
    NOTICE_DURATION_MS,
    SCROLL_DELAY_MS,
)
from quest_hud.core.cards import (
    HELP_TEXT,
    HELP_TITLE,
    completion_card,
    distance_notice,
    leaderboard_card,
    quest_card,
)
from quest_hud.core.geo import format_spoken_distance
from quest_hud.display.scroller import display_scrolling_text
from quest_hud.display.session import SessionContext
from quest_hud.quests.service import ALREADY_ACTIVE, UNAVAILABLE, QuestService
from quest_hud.quests.speech import (
    ACKNOWLEDGE_VOICE,
    CELEBRATE_VOICE,
    DISTANCE_VOICE,
    NEARBY_VOICE,
    SpeechDebouncer,
)

logger = logging.getLogger(__name__)

SEARCHING_DURATION_MS = 2000
ALREADY_ACTIVE_DURATION_MS = 4000


class Intent(enum.Enum):
    NEW_QUEST = "new_quest"
    CURRENT_QUEST = "current_quest"
    COMPLETE_QUEST = "complete_quest"
    SHOW_DISTANCE = "show_distance"
    LEADERBOARD = "leaderboard"
    HELP = "help"


INTENT_PHRASES = (
    (Intent.NEW_QUEST, ("new quest", "get quest", "start quest", "next quest")),
    (Intent.CURRENT_QUEST, ("current quest", "my quest", "show quest")),
    (Intent.COMPLETE_QUEST, ("complete quest", "finish quest")),
    (Intent.SHOW_DISTANCE, ("show distance", "how far")),
    (Intent.LEADERBOARD, ("show leaderboard", "get leaderboard", "rankings")),
    (Intent.HELP, ("help", "what can i say")),
)

ERROR_MESSAGES = {
    Intent.NEW_QUEST: "Error creating quest. Please try again.",
    Intent.CURRENT_QUEST: "Error fetching quest. Please try again.",
    Intent.COMPLETE_QUEST: "Error completing quest. Please try again.",
    Intent.SHOW_DISTANCE: "Error calculating distance. Please try again.",
    Intent.LEADERBOARD: "Error loading leaderboard. Please try again.",
    Intent.HELP: "Error showing help. Please try again.",
}

NO_ACTIVE_QUEST = "You don't have an active quest. Say 'new quest' to get one!"
NOTHING_TO_COMPLETE = "No active quest to complete. Say 'new quest' to get one!"
ALREADY_ACTIVE_TEXT = (
    "You already have an active quest! Say 'current quest' to see it "
    "or 'complete quest' to finish it."
)
NO_QUESTS_TEXT = "No quests available. Please try again later."
NO_DISTANCE_TEXT = "Distance unavailable. Your quest has no location or yours is unknown."


class VoiceCommandHandler:
    """Dispatches final transcriptions for every session."""

    def __init__(self, service: QuestService, speech: Optional[SpeechDebouncer] = None) -> None:
        self.service = service
        self.speech = speech or SpeechDebouncer()

    @staticmethod
    def parse(text: str) -> Optional[Intent]:
        normalized = text.lower().strip()
        for intent, phrases in INTENT_PHRASES:
            if any(phrase in normalized for phrase in phrases):
                return intent
        return None

    async def handle(self, session: SessionContext, text: str) -> Optional[Intent]:
        """Run the command in text, if any.

        Returns:
            The intent that was acted on, or None if the text matched no
            command or the command was dropped.
        """
        intent = self.parse(text)
        if intent is None:
            return None
        if session.is_scrolling:
            logger.info(
                "Dropped %s command for %s while scrolling", intent.value, session.user_id
            )
            return None

        logger.info("Voice command %s from %s", intent.value, session.user_id)
        try:
            await self._dispatch(intent, session)
        except Exception:
            logger.exception("Error handling %s for %s", intent.value, session.user_id)
            await session.notify(ERROR_MESSAGES[intent], NOTICE_DURATION_MS)
        return intent

    async def _dispatch(self, intent: Intent, session: SessionContext) -> None:
        if intent is Intent.NEW_QUEST:
            await self._new_quest(session)
        elif intent is Intent.CURRENT_QUEST:
            await self._current_quest(session)
        elif intent is Intent.COMPLETE_QUEST:
            await self._complete_quest(session)
        elif intent is Intent.SHOW_DISTANCE:
            await self._show_distance(session)
        elif intent is Intent.LEADERBOARD:
            await self._leaderboard(session)
        elif intent is Intent.HELP:
            await self._scroll(session, HELP_TITLE, HELP_TEXT)

    async def _scroll(self, session: SessionContext, title: str, content: str) -> None:
        await display_scrolling_text(
            session,
            title,
            content,
            max_lines_per_screen=MAX_LINES_PER_SCREEN,
            scroll_delay_ms=SCROLL_DELAY_MS,
            max_line_length=MAX_LINE_LENGTH,
        )

    async def _new_quest(self, session: SessionContext) -> None:
        await self.speech.speak(session, "Finding your next adventure!", ACKNOWLEDGE_VOICE)
        if session.location is not None:
            await session.notify("🔍 Finding nearby adventures...", SEARCHING_DURATION_MS)

        outcome = await self.service.start_quest(session.user_id, session.location)
        if outcome.kind == ALREADY_ACTIVE:
            await session.notify(ALREADY_ACTIVE_TEXT, ALREADY_ACTIVE_DURATION_MS)
            return
        if outcome.kind == UNAVAILABLE:
            await session.notify(NO_QUESTS_TEXT, NOTICE_DURATION_MS)
            return

        title, content = quest_card(outcome.template, session.location)
        await self._scroll(session, title, content)

    async def _current_quest(self, session: SessionContext) -> None:
        template = self.service.current_quest(session.user_id)
        if template is None:
            await session.notify(NO_ACTIVE_QUEST, NOTICE_DURATION_MS)
            return
        title, content = quest_card(template, session.location)
        await self._scroll(session, title, content)

    async def _complete_quest(self, session: SessionContext) -> None:
        result = await asyncio.to_thread(self.service.complete_quest, session.user_id)
        if result is None:
            await session.notify(NOTHING_TO_COMPLETE, NOTICE_DURATION_MS)
            return

        total = result.user.total_points if result.user else 0
        await self.speech.speak(
            session,
            "Quest completed! You earned {} points. Your total is now {} points.".format(
                result.points, total
            ),
            CELEBRATE_VOICE,
            force=True,
        )
        title, content = completion_card(result.points, result.title, result.user)
        await self._scroll(session, title, content)

    async def _show_distance(self, session: SessionContext) -> None:
        await self.speech.speak(session, "Calculating your location...", ACKNOWLEDGE_VOICE)
        meters = self.service.distance_to_quest(session.user_id, session.location)
        if meters is None:
            await session.notify(NO_DISTANCE_TEXT, NOTICE_DURATION_MS)
            return

        await session.notify(distance_notice(meters), NOTICE_DURATION_MS)
        if meters <= NEARBY_THRESHOLD_M:
            spoken = "You're very close! Only {} meters to your quest destination.".format(
                int(round(meters))
            )
            voice = NEARBY_VOICE
        else:
            spoken = "You are {} from your quest destination.".format(
                format_spoken_distance(meters)
            )
            voice = DISTANCE_VOICE
        await self.speech.speak(session, spoken, voice)

    async def _leaderboard(self, session: SessionContext) -> None:
        await self.speech.speak(session, "Checking the rankings...", ACKNOWLEDGE_VOICE)
        rows = await asyncio.to_thread(self.service.leaderboard)
        title, content = leaderboard_card(rows)
        await self._scroll(session, title, content)

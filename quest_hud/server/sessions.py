"""Session registry and recording sinks for the HTTP event bridge.

WHY: Over HTTP there is no live glasses connection to render on. The
bridge records what would have been shown or spoken so the host (or a
test) can fetch it, while the quest logic runs exactly as it would
against a real display.

HOW: RecordingDisplay and RecordingAudio implement the sink interfaces
by appending to bounded deques. SessionRegistry maps user ids to
SessionContext objects that share one ScrollFlags store.

RULES:
- One session per user id; create() refuses duplicates
- All registry access is protected by threading.Lock
- remove() only unregisters; the caller awaits session.close()
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from quest_hud.display.scroller import DisplaySink
from quest_hud.display.session import ScrollFlags, SessionContext
from quest_hud.quests.speech import AudioSink

logger = logging.getLogger(__name__)

MAX_RECORDED_FRAMES = 500

REFERENCE_CARD = "reference_card"
TEXT_WALL = "text_wall"


@dataclass
class Frame:
    kind: str
    title: Optional[str]
    text: str
    duration_ms: int


class RecordingDisplay(DisplaySink):
    """Display sink that keeps the most recent frames in memory."""

    def __init__(self, user_id: str, max_frames: int = MAX_RECORDED_FRAMES) -> None:
        self.user_id = user_id
        self.frames: Deque[Frame] = deque(maxlen=max_frames)

    async def show_reference_card(self, title: str, body: str, duration_ms: int) -> None:
        logger.debug("[%s] card %r (%dms)", self.user_id, title, duration_ms)
        self.frames.append(Frame(REFERENCE_CARD, title, body, duration_ms))

    async def show_text_wall(self, text: str, duration_ms: int) -> None:
        logger.debug("[%s] text wall (%dms)", self.user_id, duration_ms)
        self.frames.append(Frame(TEXT_WALL, None, text, duration_ms))


class RecordingAudio(AudioSink):
    def __init__(self, user_id: str, max_utterances: int = MAX_RECORDED_FRAMES) -> None:
        self.user_id = user_id
        self.utterances: Deque[str] = deque(maxlen=max_utterances)

    async def speak(self, text: str, voice_settings: Optional[Dict[str, Any]] = None) -> None:
        logger.debug("[%s] speak %.50s", self.user_id, text)
        self.utterances.append(text)


class SessionRegistry:
    """Thread-safe map of user id -> SessionContext.

    Args:
        flags: Shared scrolling flag store; a new one by default.
        sleep: Awaitable sleep handed to every session.
        clock: Monotonic clock handed to every session.
    """

    def __init__(
        self,
        flags: Optional[ScrollFlags] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.flags = flags or ScrollFlags()
        self.sleep = sleep
        self.clock = clock
        self._sessions: Dict[str, SessionContext] = {}
        self._lock = threading.Lock()

    def create(self, user_id: str) -> SessionContext:
        """Register a new session.

        Raises:
            ValueError: A session for user_id already exists.
        """
        with self._lock:
            if user_id in self._sessions:
                raise ValueError("Session already active for {}".format(user_id))
            session = SessionContext(
                user_id=user_id,
                display=RecordingDisplay(user_id),
                flags=self.flags,
                audio=RecordingAudio(user_id),
                sleep=self.sleep,
                clock=self.clock,
            )
            self._sessions[user_id] = session
        logger.info("Session started for %s", user_id)
        return session

    def get(self, user_id: str) -> Optional[SessionContext]:
        with self._lock:
            return self._sessions.get(user_id)

    def remove(self, user_id: str) -> Optional[SessionContext]:
        with self._lock:
            return self._sessions.pop(user_id, None)

    def user_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.close()

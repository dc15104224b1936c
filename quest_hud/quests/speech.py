"""Text-to-speech with per-session debounce.

WHY: Voice replies come from several places (command acknowledgements,
distance notices, quest completion). Two of them firing within a second
talk over each other, so speech is debounced per session.

HOW: SpeechDebouncer keeps its state on the SessionContext (speaking,
last_speech_at). A call plays only if nothing is playing and the last
utterance started more than debounce_s ago, unless forced. The speaking
flag is held for release_s after playback ends; the release runs as a
session task so teardown cancels it.

RULES:
- Mark speaking and stamp the time BEFORE awaiting the audio sink
- Starting an utterance cancels any pending release; only the latest
  release clears speaking
- On sink failure release immediately and return False
- Sessions without an audio sink never speak
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from quest_hud.config import TTS_DEBOUNCE_S, TTS_RELEASE_S
from quest_hud.display.session import SessionContext

logger = logging.getLogger(__name__)

VoiceSettings = Dict[str, Any]

# Named voice presets used by the command handlers.
ACKNOWLEDGE_VOICE: VoiceSettings = {"stability": 0.6, "speed": 1.1}
CELEBRATE_VOICE: VoiceSettings = {
    "stability": 0.4,
    "similarity_boost": 0.85,
    "style": 0.8,
    "speed": 1.0,
}
NEARBY_VOICE: VoiceSettings = {
    "stability": 0.5,
    "similarity_boost": 0.8,
    "style": 0.7,
    "speed": 1.1,
}
DISTANCE_VOICE: VoiceSettings = {"stability": 0.7, "similarity_boost": 0.8, "speed": 1.0}


class AudioSink(ABC):
    """Host-provided text-to-speech output for one user."""

    @abstractmethod
    async def speak(self, text: str, voice_settings: Optional[VoiceSettings] = None) -> None:
        """Speak text, returning when playback has finished."""


class SpeechDebouncer:
    def __init__(self, debounce_s: float = TTS_DEBOUNCE_S, release_s: float = TTS_RELEASE_S) -> None:
        self.debounce_s = debounce_s
        self.release_s = release_s

    def should_play(self, session: SessionContext, force: bool = False) -> bool:
        if force:
            return True
        if session.speaking:
            return False
        if session.last_speech_at is None:
            return True
        return session.clock() - session.last_speech_at > self.debounce_s

    async def speak(
        self,
        session: SessionContext,
        text: str,
        voice_settings: Optional[VoiceSettings] = None,
        force: bool = False,
    ) -> bool:
        """Speak text on the session's audio sink if the debounce allows it.

        Returns:
            True if the text was spoken.
        """
        if session.audio is None or session.closed:
            return False
        if not self.should_play(session, force):
            logger.info("TTS skipped for %s due to debounce: %.50s", session.user_id, text)
            return False

        self._cancel_release(session)
        session.speaking = True
        session.last_speech_at = session.clock()
        try:
            await session.audio.speak(text, voice_settings)
        except Exception:
            logger.warning("Failed to play TTS for %s: %.50s", session.user_id, text, exc_info=True)
            session.speaking = False
            return False

        logger.info("TTS played for %s: %.50s", session.user_id, text)
        self._schedule_release(session)
        return True

    def _cancel_release(self, session: SessionContext) -> None:
        pending = session.speech_release
        session.speech_release = None
        if pending is not None and not pending.done():
            pending.cancel()

    def _schedule_release(self, session: SessionContext) -> None:
        async def release() -> None:
            await session.sleep(self.release_s)
            session.speaking = False
            if session.speech_release is asyncio.current_task():
                session.speech_release = None

        try:
            task = session.spawn(release(), name="tts-release-{}".format(session.user_id))
        except RuntimeError:
            session.speaking = False
            return
        session.speech_release = task

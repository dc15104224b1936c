"""Shared test fixtures for the quest_hud test suite.

WHY: The display engine, the quest handlers and the HTTP bridge all need
the same fakes: a display sink that records frames, a sleep that does
not sleep, a clock the test can move, and a throwaway database.

HOW: Plain classes for the fakes plus pytest fixtures that build them.
Sessions are constructed fresh per test so no flag or timer state leaks
between tests.

RULES:
- Nothing here touches the network or the real clock
- Databases are in-memory SQLite
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest

from quest_hud.display.scroller import DisplaySink
from quest_hud.display.session import ScrollFlags, SessionContext
from quest_hud.quests.speech import AudioSink
from quest_hud.store.database import QuestDatabase, QuestTemplate


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class RecordingSink(DisplaySink):
    """Display sink that records every call.

    calls holds ("card", title, body, duration_ms) and
    ("wall", None, text, duration_ms) tuples in call order. flags_seen
    records whether the scrolling flag was set at each render.
    """

    def __init__(self, flags: Optional[ScrollFlags] = None, user_id: str = "") -> None:
        self.calls: List[Tuple[str, Optional[str], str, int]] = []
        self.flags_seen: List[bool] = []
        self._flags = flags
        self._user_id = user_id

    def _record(self, call: Tuple[str, Optional[str], str, int]) -> None:
        self.calls.append(call)
        if self._flags is not None:
            self.flags_seen.append(self._flags.is_active(self._user_id))

    async def show_reference_card(self, title: str, body: str, duration_ms: int) -> None:
        self._record(("card", title, body, duration_ms))

    async def show_text_wall(self, text: str, duration_ms: int) -> None:
        self._record(("wall", None, text, duration_ms))

    @property
    def cards(self) -> List[Tuple[str, Optional[str], str, int]]:
        return [c for c in self.calls if c[0] == "card"]

    @property
    def walls(self) -> List[Tuple[str, Optional[str], str, int]]:
        return [c for c in self.calls if c[0] == "wall"]


class FailingSink(DisplaySink):
    """Display sink that raises on the Nth reference card (0-based)."""

    def __init__(self, fail_at: int = 0) -> None:
        self.fail_at = fail_at
        self.rendered = 0

    async def show_reference_card(self, title: str, body: str, duration_ms: int) -> None:
        if self.rendered == self.fail_at:
            raise ConnectionError("glasses disconnected")
        self.rendered += 1

    async def show_text_wall(self, text: str, duration_ms: int) -> None:
        raise ConnectionError("glasses disconnected")


class RecordingAudio(AudioSink):
    def __init__(self, fail: bool = False) -> None:
        self.spoken: List[Tuple[str, Optional[Dict[str, Any]]]] = []
        self.fail = fail

    async def speak(self, text: str, voice_settings: Optional[Dict[str, Any]] = None) -> None:
        if self.fail:
            raise RuntimeError("tts unavailable")
        self.spoken.append((text, voice_settings))


class FakeSleep:
    """Awaitable sleep that records requested durations and returns at once."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def flags():
    return ScrollFlags()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink(flags):
    return RecordingSink(flags, "user-1")


@pytest.fixture
def audio():
    return RecordingAudio()


@pytest.fixture
def session(sink, flags, fake_sleep, clock, audio):
    """A fresh session for user-1 wired to recording fakes."""
    return SessionContext(
        user_id="user-1",
        display=sink,
        flags=flags,
        audio=audio,
        sleep=fake_sleep,
        clock=clock,
    )


@pytest.fixture
def make_session(flags, fake_sleep, clock):
    """Factory for extra sessions sharing the test's flags, sleep and clock."""

    def _make(user_id: str = "user-1", display: Optional[DisplaySink] = None,
              audio: Optional[AudioSink] = None) -> SessionContext:
        return SessionContext(
            user_id=user_id,
            display=display or RecordingSink(flags, user_id),
            flags=flags,
            audio=audio,
            sleep=fake_sleep,
            clock=clock,
        )

    return _make


@pytest.fixture
def failing_sink():
    """Factory: failing_sink(fail_at) -> FailingSink."""
    return FailingSink


@pytest.fixture
def database():
    db = QuestDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def make_template(database):
    """Factory that inserts a quest template with sensible defaults."""

    def _make(**overrides: Any) -> QuestTemplate:
        fields = {
            "title": "Visit the Old Library",
            "description": "Find the reading room and sit for five minutes.",
            "category": "culture",
            "points": 150,
            "location_name": "Old Library",
            "location_address": "1 Library Sq",
            "location_lat": 59.3293,
            "location_lng": 18.0686,
        }
        fields.update(overrides)
        return database.create_quest_template(**fields)

    return _make


@pytest.fixture
def failing_audio():
    return RecordingAudio(fail=True)

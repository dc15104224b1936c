"""Tests for debounced text-to-speech."""

from __future__ import annotations

import asyncio

from quest_hud.quests.speech import ACKNOWLEDGE_VOICE, SpeechDebouncer


async def _settle():
    for _ in range(3):
        await asyncio.sleep(0)


class TestSpeechDebouncer:
    def test_speaks_and_releases(self, session, audio, fake_sleep):
        debouncer = SpeechDebouncer(debounce_s=2.0, release_s=0.5)

        async def scenario():
            played = await debouncer.speak(session, "hello", ACKNOWLEDGE_VOICE)
            during = session.speaking
            await _settle()
            return played, during

        played, during = asyncio.run(scenario())
        assert played is True
        assert during is True
        assert session.speaking is False
        assert audio.spoken == [("hello", ACKNOWLEDGE_VOICE)]
        assert fake_sleep.calls == [0.5]
        assert session.last_speech_at == 1000.0

    def test_debounced_within_window(self, session, audio, clock):
        debouncer = SpeechDebouncer(debounce_s=2.0)

        async def scenario():
            await debouncer.speak(session, "one")
            await _settle()
            clock.advance(1.0)
            second = await debouncer.speak(session, "two")
            clock.advance(1.5)
            third = await debouncer.speak(session, "three")
            return second, third

        second, third = asyncio.run(scenario())
        assert (second, third) == (False, True)
        assert [text for text, _ in audio.spoken] == ["one", "three"]

    def test_skipped_while_speaking(self, session, audio, clock):
        session.speaking = True
        clock.advance(100)
        assert asyncio.run(SpeechDebouncer().speak(session, "hi")) is False
        assert audio.spoken == []

    def test_force_bypasses_debounce(self, session, audio):
        session.speaking = True
        session.last_speech_at = session.clock()
        assert asyncio.run(SpeechDebouncer().speak(session, "done!", force=True)) is True
        assert audio.spoken == [("done!", None)]

    def test_forced_speech_replaces_pending_release(self, session, audio):
        pending = []

        async def held_sleep(seconds):
            waiter = asyncio.get_running_loop().create_future()
            pending.append(waiter)
            await waiter

        session.sleep = held_sleep
        debouncer = SpeechDebouncer(debounce_s=2.0, release_s=0.5)

        async def scenario():
            await debouncer.speak(session, "checking")
            await _settle()
            first_release = session.speech_release
            await debouncer.speak(session, "done!", force=True)
            await _settle()
            still_speaking = session.speaking
            pending[1].set_result(None)
            await _settle()
            return first_release, still_speaking

        first_release, still_speaking = asyncio.run(scenario())
        assert first_release.cancelled()
        assert still_speaking is True
        assert session.speaking is False
        assert session.speech_release is None
        assert [text for text, _ in audio.spoken] == ["checking", "done!"]

    def test_no_audio_sink(self, make_session):
        assert asyncio.run(SpeechDebouncer().speak(make_session(), "hi")) is False

    def test_failure_releases_immediately(self, make_session, failing_audio, caplog):
        session = make_session(audio=failing_audio)
        with caplog.at_level("WARNING"):
            played = asyncio.run(SpeechDebouncer().speak(session, "hi"))
        assert played is False
        assert session.speaking is False
        assert "Failed to play TTS" in caplog.text

    def test_closed_session(self, session, audio):
        async def scenario():
            await session.close()
            return await SpeechDebouncer().speak(session, "late")

        assert asyncio.run(scenario()) is False
        assert audio.spoken == []

"""Tests for the scroll scheduler.

WHY: The scheduler is the only part of the display engine with timing
and shared state. Wrong window counts, out-of-order frames, or a flag
left set after a failure would freeze every other producer for that user.

HOW: Runs display_scrolling_text() with asyncio.run() against a
RecordingSink and a FakeSleep, then inspects the captured calls.
Cancellation is exercised with a sleep that blocks on an Event.

RULES:
- No real sleeping; FakeSleep records the requested pauses
- Flag state is checked during rendering (flags_seen) and after settling
"""

from __future__ import annotations

import asyncio

import pytest

from quest_hud.display.scroller import (
    OPEN_ENDED_DURATION_MS,
    DisplayRequest,
    DisplaySinkError,
    InputError,
    build_windows,
    display_scrolling_text,
    run_display_request,
)
from quest_hud.display.session import ScrollFlags


TEN_LINES = "\n".join("line {}".format(i) for i in range(10))


# ---------------------------------------------------------------------------
# Window planning
# ---------------------------------------------------------------------------


class TestBuildWindows:
    """build_windows() plans frames without rendering."""

    def test_ten_lines_three_per_screen_gives_eight_windows(self):
        windows = build_windows(DisplayRequest("T", TEN_LINES, 36, 3, 1000))
        assert len(windows) == 8
        assert [w.position for w in windows] == list(range(8))
        assert all(len(w.lines) == 3 for w in windows)
        assert windows[-1].lines == ("line 7", "line 8", "line 9")

    def test_dwell_times(self):
        windows = build_windows(DisplayRequest("T", TEN_LINES, 36, 3, 1000))
        assert [w.duration_ms for w in windows[:-1]] == [1500] * 7
        assert windows[-1].duration_ms == 4000

    def test_pauses_after_all_but_last(self):
        windows = build_windows(DisplayRequest("T", TEN_LINES, 36, 3, 1000))
        assert [w.pause_after_ms for w in windows] == [1000] * 7 + [0]

    def test_fast_path_single_open_ended_window(self):
        windows = build_windows(DisplayRequest("T", "short", 36, 3, 1000))
        assert len(windows) == 1
        assert windows[0].duration_ms == OPEN_ENDED_DURATION_MS
        assert windows[0].pause_after_ms == 0

    def test_one_more_line_than_screen_gives_two_windows(self):
        content = "a\nb\nc\nd"
        windows = build_windows(DisplayRequest("T", content, 36, 3, 200))
        assert [w.lines for w in windows] == [("a", "b", "c"), ("b", "c", "d")]
        assert [w.duration_ms for w in windows] == [300, 800]


class TestDisplayRequestValidation:
    """Degenerate input raises InputError before anything happens."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_line_length": 0},
            {"max_line_length": -1},
            {"max_lines_per_screen": 0},
            {"scroll_delay_ms": -1},
        ],
    )
    def test_invalid_request_rejected(self, kwargs):
        with pytest.raises(InputError):
            DisplayRequest("T", "content", **kwargs)

    def test_input_error_is_value_error(self):
        assert issubclass(InputError, ValueError)

    def test_zero_delay_allowed(self):
        DisplayRequest("T", "content", scroll_delay_ms=0)

    def test_display_scrolling_text_raises_synchronously(self, session, sink):
        with pytest.raises(InputError):
            display_scrolling_text(session, "T", TEN_LINES, max_lines_per_screen=0)
        assert sink.calls == []


# ---------------------------------------------------------------------------
# Fast path
# ---------------------------------------------------------------------------


class TestFastPath:
    """Content that fits renders once and never touches the flag."""

    def test_single_render_open_ended(self, session, sink, fake_sleep):
        asyncio.run(display_scrolling_text(session, "Title", "Fits on one screen"))
        assert sink.calls == [("card", "Title", "Fits on one screen", OPEN_ENDED_DURATION_MS)]
        assert fake_sleep.calls == []

    def test_flag_never_set(self, session, sink, flags):
        asyncio.run(display_scrolling_text(session, "Title", "a\nb\nc"))
        assert sink.flags_seen == [False]
        assert flags.is_active("user-1") is False

    def test_renders_wrapped_lines(self, session, sink):
        content = "Walk to the fountain and count the pigeons there"
        asyncio.run(display_scrolling_text(session, "T", content))
        body = sink.calls[0][2]
        assert body == "Walk to the fountain and count the\npigeons there"

    def test_empty_content_renders_blank_body(self, session, sink, flags):
        asyncio.run(display_scrolling_text(session, "Title only", ""))
        assert sink.calls == [("card", "Title only", "", OPEN_ENDED_DURATION_MS)]
        assert flags.is_active("user-1") is False


# ---------------------------------------------------------------------------
# Scrolling path
# ---------------------------------------------------------------------------


class TestScrollingPath:
    """Content longer than a screen scrolls one line at a time."""

    def test_renders_every_window_in_order(self, session, sink):
        asyncio.run(display_scrolling_text(session, "T", TEN_LINES))
        assert len(sink.cards) == 8
        for position, call in enumerate(sink.cards):
            assert call[1] == "T"
            assert call[2] == "\n".join(
                "line {}".format(i) for i in range(position, position + 3)
            )

    def test_durations(self, session, sink):
        asyncio.run(display_scrolling_text(session, "T", TEN_LINES, scroll_delay_ms=1000))
        durations = [c[3] for c in sink.cards]
        assert durations == [1500] * 7 + [4000]

    def test_sleeps_between_windows_only(self, session, fake_sleep):
        asyncio.run(display_scrolling_text(session, "T", TEN_LINES, scroll_delay_ms=2000))
        assert fake_sleep.calls == [2.0] * 7

    def test_flag_held_during_every_render(self, session, sink):
        asyncio.run(display_scrolling_text(session, "T", TEN_LINES))
        assert sink.flags_seen == [True] * 8

    def test_flag_cleared_after_completion(self, session, flags):
        asyncio.run(display_scrolling_text(session, "T", TEN_LINES))
        assert flags.is_active("user-1") is False

    def test_custom_lines_per_screen(self, session, sink):
        asyncio.run(display_scrolling_text(session, "T", TEN_LINES, max_lines_per_screen=5))
        assert len(sink.cards) == 6
        assert all(len(c[2].split("\n")) == 5 for c in sink.cards)

    def test_run_display_request_directly(self, sink, fake_sleep):
        flags = ScrollFlags()
        request = DisplayRequest("T", TEN_LINES, 36, 4, 10)
        asyncio.run(run_display_request(request, sink, flags, "someone", fake_sleep))
        assert len(sink.cards) == 7
        assert fake_sleep.calls == [0.01] * 6


# ---------------------------------------------------------------------------
# Failure and cancellation
# ---------------------------------------------------------------------------


class TestFailures:
    """The flag is released on every exit path."""

    def test_sink_error_wraps_cause_and_clears_flag(self, make_session, failing_sink, flags):
        session = make_session(display=failing_sink(fail_at=2))
        with pytest.raises(DisplaySinkError) as excinfo:
            asyncio.run(display_scrolling_text(session, "T", TEN_LINES))
        assert excinfo.value.position == 2
        assert isinstance(excinfo.value.__cause__, ConnectionError)
        assert flags.is_active("user-1") is False

    def test_fast_path_sink_error(self, make_session, failing_sink, flags):
        session = make_session(display=failing_sink(fail_at=0))
        with pytest.raises(DisplaySinkError) as excinfo:
            asyncio.run(display_scrolling_text(session, "T", "short"))
        assert excinfo.value.position == 0
        assert flags.is_active("user-1") is False

    def test_cancellation_clears_flag(self, make_session, flags):
        async def scenario():
            blocked = asyncio.Event()

            async def blocking_sleep(seconds):
                blocked.set()
                await asyncio.Event().wait()

            session = make_session()
            session.sleep = blocking_sleep
            task = asyncio.ensure_future(display_scrolling_text(session, "T", TEN_LINES))
            await blocked.wait()
            assert flags.is_active("user-1") is True
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return session

        session = asyncio.run(scenario())
        assert flags.is_active("user-1") is False
        assert len(session.display.cards) == 1


class TestConcurrentUsers:
    """Scrolls for different users interleave without touching each other's flag."""

    def test_two_users_scroll_concurrently(self, make_session, flags):
        seen = {}

        async def scenario():
            alice = make_session("alice")
            bob = make_session("bob")

            async def yielding_sleep(seconds):
                seen.setdefault("both", False)
                if flags.is_active("alice") and flags.is_active("bob"):
                    seen["both"] = True
                await asyncio.sleep(0)

            alice.sleep = yielding_sleep
            bob.sleep = yielding_sleep
            await asyncio.gather(
                display_scrolling_text(alice, "A", TEN_LINES),
                display_scrolling_text(bob, "B", TEN_LINES),
            )
            return alice, bob

        alice, bob = asyncio.run(scenario())
        assert seen["both"] is True
        assert len(alice.display.cards) == 8
        assert len(bob.display.cards) == 8
        assert flags.active_users() == []

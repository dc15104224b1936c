"""Tests for per-user scrolling flags and the session context.

WHY: The flag store is the only shared mutable state in the display
engine, and SessionContext.notify() is how every one-shot producer
respects it. Session teardown must not leak timers or scroll tasks.
"""

from __future__ import annotations

import asyncio
import threading

import pytest

from quest_hud.display.scroller import display_scrolling_text
from quest_hud.display.session import ScrollFlags

TEN_LINES = "\n".join("line {}".format(i) for i in range(10))


class TestScrollFlags:
    """ScrollFlags set/clear/hold semantics."""

    def test_unknown_user_not_active(self):
        assert ScrollFlags().is_active("nobody") is False

    def test_set_active_round_trip(self):
        flags = ScrollFlags()
        flags.set_active("u", True)
        assert flags.is_active("u") is True
        flags.set_active("u", False)
        assert flags.is_active("u") is False

    def test_hold_sets_and_releases(self):
        flags = ScrollFlags()
        with flags.hold("u"):
            assert flags.is_active("u") is True
        assert flags.is_active("u") is False

    def test_hold_releases_on_exception(self):
        flags = ScrollFlags()
        with pytest.raises(RuntimeError):
            with flags.hold("u"):
                raise RuntimeError("boom")
        assert flags.is_active("u") is False

    def test_nested_hold_keeps_flag_until_outer_exits(self, caplog):
        flags = ScrollFlags()
        with flags.hold("u"):
            with caplog.at_level("WARNING"):
                with flags.hold("u"):
                    pass
            assert flags.is_active("u") is True
        assert flags.is_active("u") is False
        assert "Overlapping scroll" in caplog.text

    def test_users_are_independent(self):
        flags = ScrollFlags()
        with flags.hold("a"):
            assert flags.is_active("b") is False
            assert flags.active_users() == ["a"]

    def test_clear(self):
        flags = ScrollFlags()
        flags.set_active("u", True)
        flags.clear("u")
        assert flags.active_users() == []

    def test_thread_safe_holds(self):
        flags = ScrollFlags()
        errors = []

        def worker(user):
            try:
                for _ in range(200):
                    with flags.hold(user):
                        assert flags.is_active(user)
            except AssertionError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=("u{}".format(i % 3),)) for i in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert flags.active_users() == []


class TestNotify:
    """SessionContext.notify() drops one-shot messages while scrolling."""

    def test_renders_when_idle(self, session, sink):
        shown = asyncio.run(session.notify("hello", 3000))
        assert shown is True
        assert sink.calls == [("wall", None, "hello", 3000)]

    def test_dropped_while_scrolling(self, session, sink, flags):
        flags.set_active("user-1", True)
        shown = asyncio.run(session.notify("hello", 3000))
        assert shown is False
        assert sink.calls == []

    def test_other_users_scroll_does_not_block(self, session, sink, flags):
        flags.set_active("someone-else", True)
        assert asyncio.run(session.notify("hello", 3000)) is True

    def test_sink_failure_reported_not_raised(self, make_session, failing_sink):
        session = make_session(display=failing_sink())
        assert asyncio.run(session.notify("hello", 3000)) is False

    def test_notice_during_scroll_is_dropped(self, session, sink):
        async def scenario():
            async def sleep_and_notify(seconds):
                await session.notify("distance notice", 2000)

            session.sleep = sleep_and_notify
            await display_scrolling_text(session, "T", TEN_LINES)

        asyncio.run(scenario())
        assert sink.walls == []
        assert len(sink.cards) == 8


class TestSessionTasks:
    """spawn() and close() manage the session's background work."""

    def test_spawned_task_runs(self, session):
        async def scenario():
            done = []

            async def work():
                done.append(True)

            await session.spawn(work(), name="work")
            return done

        assert asyncio.run(scenario()) == [True]

    def test_close_cancels_in_flight_scroll_and_clears_flag(self, session, flags):
        async def scenario():
            started = asyncio.Event()

            async def blocking_sleep(seconds):
                started.set()
                await asyncio.Event().wait()

            session.sleep = blocking_sleep
            task = session.spawn(display_scrolling_text(session, "T", TEN_LINES))
            await started.wait()
            assert session.is_scrolling
            await session.close()
            return task

        task = asyncio.run(scenario())
        assert task.cancelled()
        assert flags.is_active("user-1") is False
        assert session.pending_tasks == 0
        assert session.closed

    def test_spawn_after_close_raises(self, session):
        async def scenario():
            await session.close()

            async def work():
                return None

            with pytest.raises(RuntimeError):
                session.spawn(work())

        asyncio.run(scenario())

    def test_notify_after_close_is_dropped(self, session, sink):
        async def scenario():
            await session.close()
            return await session.notify("late", 1000)

        assert asyncio.run(scenario()) is False
        assert sink.calls == []

    def test_failed_task_is_logged(self, session, caplog):
        async def scenario():
            async def boom():
                raise ValueError("bad")

            task = session.spawn(boom(), name="boom")
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        with caplog.at_level("ERROR"):
            asyncio.run(scenario())
        assert "boom" in caplog.text

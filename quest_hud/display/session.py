"""Per-user display coordination: scrolling flags and session context.

WHY: Two independent producers write to the same tiny display: a scroll
sequence started by a voice command, and short one-shot messages such as
periodic distance notices. Without coordination a notice lands in the
middle of a scroll and the reader loses their place.

HOW: ScrollFlags is a small store of per-user "scroll in progress" state
that only the scroll scheduler writes (through hold()). SessionContext
bundles everything one connected user needs (display sink, flags,
timers, last known location) and is passed explicitly to every producer
instead of living in module-level maps.

RULES:
- Coordination is best effort and lossy: a one-shot message that finds the
  flag set is dropped, never queued or retried
- The check-then-write race with a scroll starting concurrently is
  accepted; overlapping scrolls for one user are logged as a warning
- hold() always releases, including on exceptions and cancellation
- SessionContext.close() cancels every task the session spawned
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable, Callable, Coroutine, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from quest_hud.core.geo import Location
    from quest_hud.display.scroller import DisplaySink
    from quest_hud.quests.speech import AudioSink

logger = logging.getLogger(__name__)


class ScrollFlags:
    """Store of per-user "scrolling in progress" flags.

    WHY: Other producers must be able to ask "is a scroll running for this
    user?" cheaply before they write to the display.

    HOW: A dict of user id -> number of in-flight scroll sequences. A user
    is scrolling while the count is above zero, so a second overlapping
    sequence cannot clear the flag under the first one. All access goes
    through a threading.Lock because the HTTP layer may read from worker
    threads.

    RULES:
    - set_active()/is_active() mirror the host-facing interface
    - hold() is the only writer used by the scroll scheduler
    - Unknown users are not scrolling
    """

    def __init__(self) -> None:
        self._depth: dict[str, int] = {}
        self._lock = threading.Lock()

    def is_active(self, user_id: str) -> bool:
        with self._lock:
            return self._depth.get(user_id, 0) > 0

    def set_active(self, user_id: str, active: bool) -> None:
        """Force the flag on or off for a user."""
        with self._lock:
            if active:
                self._depth[user_id] = max(1, self._depth.get(user_id, 0))
            else:
                self._depth.pop(user_id, None)

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        """Mark user_id as scrolling for the duration of the block."""
        with self._lock:
            depth = self._depth.get(user_id, 0)
            self._depth[user_id] = depth + 1
        if depth:
            logger.warning(
                "Overlapping scroll sequences for %s; frames may interleave", user_id
            )
        try:
            yield
        finally:
            with self._lock:
                remaining = self._depth.get(user_id, 0) - 1
                if remaining > 0:
                    self._depth[user_id] = remaining
                else:
                    self._depth.pop(user_id, None)

    def clear(self, user_id: str) -> None:
        with self._lock:
            self._depth.pop(user_id, None)

    def active_users(self) -> list[str]:
        with self._lock:
            return sorted(u for u, d in self._depth.items() if d > 0)


@dataclass
class SessionContext:
    """Everything one connected user's producers share.

    Attributes:
        user_id: Host-provided user identifier.
        display: Sink that renders on this user's glasses.
        flags: Shared scrolling flag store (usually one per process).
        audio: Optional text-to-speech sink.
        sleep: Awaitable sleep in seconds; tests inject a fake.
        clock: Monotonic clock in seconds; tests inject a fake.
        location: Last known position, or None.
        last_proximity_notice: Clock time of the last distance notice, or None.
        speaking: True while a TTS utterance is playing (plus release buffer).
        last_speech_at: Clock time the last utterance started, or None.
        speech_release: Pending task that clears speaking, or None.
    """

    user_id: str
    display: DisplaySink
    flags: ScrollFlags
    audio: Optional[AudioSink] = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    clock: Callable[[], float] = time.monotonic
    location: Optional[Location] = None
    last_proximity_notice: Optional[float] = None
    speaking: bool = False
    last_speech_at: Optional[float] = None
    speech_release: Optional[asyncio.Task] = field(default=None, repr=False)
    _tasks: set = field(default_factory=set, repr=False)
    _closed: bool = field(default=False, repr=False)

    @property
    def is_scrolling(self) -> bool:
        return self.flags.is_active(self.user_id)

    @property
    def closed(self) -> bool:
        return self._closed

    async def notify(self, text: str, duration_ms: int) -> bool:
        """Show a one-shot text wall unless a scroll is in progress.

        WHY: Short replies and distance notices must not clobber a quest
        that is scrolling past.

        RULES:
        - Returns True if the message was rendered, False if dropped
        - Dropped messages are logged, never queued
        - Sink failures are logged and reported as not rendered
        """
        if self._closed:
            return False
        if self.is_scrolling:
            logger.info(
                "Dropped notice for %s while scrolling: %.40s", self.user_id, text
            )
            return False
        try:
            await self.display.show_text_wall(text, duration_ms)
        except Exception:
            logger.exception("Failed to show notice for %s", self.user_id)
            return False
        return True

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """Run coro as a task owned by this session.

        The task is cancelled by close(). Unhandled exceptions are logged
        when the task finishes.
        """
        if self._closed:
            coro.close()
            raise RuntimeError("Session {} is closed".format(self.user_id))
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Session task %s for %s failed",
                task.get_name(), self.user_id, exc_info=exc,
            )

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        """Tear down the session: cancel timers and in-flight scrolls."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.flags.clear(self.user_id)
        logger.info("Closed session %s (%d tasks cancelled)", self.user_id, len(tasks))

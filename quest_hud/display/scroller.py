"""Scroll scheduler: render long text on the HUD as timed windows.

WHY: The glasses show at most a few lines and have no input for paging,
so long text has to advance on its own. Each window must stay up long
enough to be read, the last one longer still, and nothing else may write
to the display while the sequence is running.

HOW: display_scrolling_text() validates its input into a DisplayRequest,
wraps the content with wrap_text(), and either renders once (fast path)
or walks a sliding window down the lines one position at a time. Windows
are rendered strictly in order; between windows the coroutine suspends
on the session's sleep callable so the event loop can serve other users.

RULES:
- Fast path (lines <= max_lines_per_screen): one render with the
  open-ended duration sentinel (-1), the scrolling flag is never touched
- Scrolling path: lines - max_lines_per_screen + 1 windows, each exactly
  max_lines_per_screen lines long
- Window dwell: scroll_delay_ms * 1.5, the last one scroll_delay_ms * 4
- Suspend scroll_delay_ms after every window except the last
- The scrolling flag is held for the whole sequence and released on every
  exit path (completion, sink failure, task cancellation)
- Sink failures are not retried; they surface as DisplaySinkError
- Invalid input raises InputError before anything is rendered
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from quest_hud.display.wrap import DEFAULT_MAX_LINE_LENGTH, wrap_text

if TYPE_CHECKING:
    from quest_hud.display.session import ScrollFlags, SessionContext

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

OPEN_ENDED_DURATION_MS = -1
"""Display sink sentinel: keep the card up until something replaces it."""

DEFAULT_MAX_LINES_PER_SCREEN = 3
DEFAULT_SCROLL_DELAY_MS = 1000

_WINDOW_DWELL_FACTOR = 1.5
_LAST_WINDOW_DWELL_FACTOR = 4

SleepFn = Callable[[float], Awaitable[None]]


class InputError(ValueError):
    """Raised when a display request cannot produce sensible windows.

    WHY: A zero line budget or zero lines per screen would loop forever or
    render empty frames. Failing fast gives the caller a clear message.

    RULES:
    - Raised synchronously, before any render or suspension
    - Message names the offending field and value
    """


class DisplaySinkError(Exception):
    """Raised when the host display fails to render a window.

    WHY: Callers need to tell a broken display apart from bugs in their
    own code. The original exception is kept as __cause__.

    RULES:
    - position is the window start line that failed (0 on the fast path)
    - The scrolling flag is already released when this propagates
    """

    def __init__(self, position: int, message: str) -> None:
        self.position = position
        super().__init__(
            "Display sink failed at window {}: {}".format(position, message)
        )


class DisplaySink(ABC):
    """Host-provided renderer for the glasses display.

    WHY: The scroll engine must not know which SDK or transport draws the
    pixels. Anything that can show a titled card and a plain text wall for
    a given time can host it (the HTTP bridge, the terminal preview, tests).

    HOW: Two async methods mirror the host layouts. A duration of
    OPEN_ENDED_DURATION_MS (-1) means "leave displayed until replaced".
    """

    @abstractmethod
    async def show_reference_card(
        self, title: str, body: str, duration_ms: int
    ) -> None:
        """Render a titled card for duration_ms milliseconds."""

    @abstractmethod
    async def show_text_wall(self, text: str, duration_ms: int) -> None:
        """Render an untitled block of text for duration_ms milliseconds."""


@dataclass(frozen=True)
class DisplayRequest:
    """One invocation of the display engine.

    WHY: Bundles everything the scheduler needs so it can be validated in
    one place and passed around unchanged for the whole sequence.

    RULES:
    - max_line_length > 0, max_lines_per_screen > 0, scroll_delay_ms >= 0
    - Construction raises InputError otherwise
    """

    title: str
    content: str
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH
    max_lines_per_screen: int = DEFAULT_MAX_LINES_PER_SCREEN
    scroll_delay_ms: int = DEFAULT_SCROLL_DELAY_MS

    def __post_init__(self) -> None:
        if self.max_line_length <= 0:
            raise InputError(
                "max_line_length must be positive, got {}".format(self.max_line_length)
            )
        if self.max_lines_per_screen <= 0:
            raise InputError(
                "max_lines_per_screen must be positive, got {}".format(
                    self.max_lines_per_screen
                )
            )
        if self.scroll_delay_ms < 0:
            raise InputError(
                "scroll_delay_ms must not be negative, got {}".format(self.scroll_delay_ms)
            )


@dataclass(frozen=True)
class ScrollWindow:
    """A slice of wrapped lines shown as one frame.

    Attributes:
        position: Index of the first line in the window.
        lines: The lines shown, top to bottom.
        duration_ms: How long the host should keep the frame up.
        pause_after_ms: How long the scheduler suspends after rendering
                        before it moves to the next window (0 for the last).
    """

    position: int
    lines: tuple[str, ...]
    duration_ms: int
    pause_after_ms: int

    @property
    def body(self) -> str:
        return "\n".join(self.lines)


def plan_windows(lines: list[str], request: DisplayRequest) -> list[ScrollWindow]:
    """Compute the frames for already-wrapped lines.

    WHY: Separating the plan from the timed rendering lets tests and the
    CLI preview check window boundaries and dwell times without waiting.

    HOW: Content that fits gets one open-ended window. Otherwise one window
    per start position from 0 to len(lines) - max_lines_per_screen.

    RULES:
    - Fast path window: duration OPEN_ENDED_DURATION_MS, no pause
    - Scrolling windows: dwell delay * 1.5 and pause delay, except the last
      (dwell delay * 4, no pause)
    """
    per_screen = request.max_lines_per_screen
    if len(lines) <= per_screen:
        return [ScrollWindow(0, tuple(lines), OPEN_ENDED_DURATION_MS, 0)]

    delay = request.scroll_delay_ms
    total_positions = len(lines) - per_screen + 1
    windows = []
    for position in range(total_positions):
        is_last = position == total_positions - 1
        if is_last:
            duration = delay * _LAST_WINDOW_DWELL_FACTOR
            pause = 0
        else:
            duration = int(round(delay * _WINDOW_DWELL_FACTOR))
            pause = delay
        windows.append(ScrollWindow(
            position=position,
            lines=tuple(lines[position:position + per_screen]),
            duration_ms=duration,
            pause_after_ms=pause,
        ))
    return windows


def build_windows(request: DisplayRequest) -> list[ScrollWindow]:
    """Wrap the request content and plan its frames."""
    return plan_windows(wrap_text(request.content, request.max_line_length), request)


async def _render(
    display: DisplaySink, title: str, window: ScrollWindow
) -> None:
    """Render one window, translating sink failures into DisplaySinkError."""
    try:
        await display.show_reference_card(title, window.body, window.duration_ms)
    except Exception as exc:
        raise DisplaySinkError(window.position, str(exc)) from exc


async def run_display_request(
    request: DisplayRequest,
    display: DisplaySink,
    flags: ScrollFlags,
    user_id: str,
    sleep: SleepFn = asyncio.sleep,
) -> None:
    """Drive one display request to completion.

    WHY: This is the scheduler proper. It is separate from
    display_scrolling_text() so hosts that already hold a DisplayRequest
    (the CLI preview, tests) can run it directly.

    HOW: Wraps the content, takes the fast path when it fits, otherwise
    holds the user's scrolling flag while rendering each window in order
    and suspending between them.

    RULES:
    - Frames for one call are rendered in increasing position, one at a time
    - No suspension happens in the middle of a render
    - Cancellation propagates; the flag is still released

    Args:
        request: Validated display request.
        display: Host display sink.
        flags: Shared per-user scrolling flag store.
        user_id: Whose flag to hold while scrolling.
        sleep: Awaitable sleep in seconds (injectable for tests).
    """
    lines = wrap_text(request.content, request.max_line_length)
    windows = plan_windows(lines, request)

    if len(lines) <= request.max_lines_per_screen:
        await _render(display, request.title, windows[0])
        return

    logger.info(
        "Scrolling %d lines for %s (%d per screen, %d windows, delay %dms)",
        len(lines), user_id, request.max_lines_per_screen, len(windows),
        request.scroll_delay_ms,
    )

    with flags.hold(user_id):
        for window in windows:
            await _render(display, request.title, window)
            if window.pause_after_ms:
                await sleep(window.pause_after_ms / 1000.0)

    logger.debug("Scroll sequence finished for %s", user_id)


def display_scrolling_text(
    session: SessionContext,
    title: str,
    content: str,
    max_lines_per_screen: int = DEFAULT_MAX_LINES_PER_SCREEN,
    scroll_delay_ms: int = DEFAULT_SCROLL_DELAY_MS,
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
) -> Awaitable[None]:
    """Show title + content on a session's display, scrolling if needed.

    WHY: Single entry point for every producer that shows long text
    (quest cards, leaderboards, help). Keeping it in one parameterised
    place means every call site scrolls the same way.

    HOW: A plain function, not a coroutine. The DisplayRequest is built (and
    validated) at call time and the returned awaitable runs the sequence,
    so bad input fails at the call rather than at the first await.

    RULES:
    - Usage: await display_scrolling_text(session, title, content)
    - Raises InputError synchronously for invalid sizes or delays
    - The awaitable raises DisplaySinkError if the host display fails

    Args:
        session: The user's session context (display, flags, sleep).
        title: Card title shown above every window.
        content: Body text; may contain newlines.
        max_lines_per_screen: Lines per frame.
        scroll_delay_ms: Base delay; dwell times are multiples of it.
        max_line_length: Character budget per line.

    Returns:
        Awaitable that completes when the last window has been rendered.
    """
    request = DisplayRequest(
        title=title,
        content=content,
        max_line_length=max_line_length,
        max_lines_per_screen=max_lines_per_screen,
        scroll_delay_ms=scroll_delay_ms,
    )
    return run_display_request(
        request, session.display, session.flags, session.user_id, session.sleep
    )

"""Scrolling text display engine for the glasses HUD.

WHY: Generated quest text rarely fits on a three-line display. This
package holds the one piece of real engineering in the app: wrapping
arbitrary text into display lines and scrolling through them on a timer,
while other producers (voice replies, distance notices) stay off the
screen until the scroll is done.

HOW: wrap.py breaks text into lines, scroller.py drives timed window
renders through a DisplaySink, session.py holds the per-user scrolling
flag and the session context other producers consult.

RULES:
- wrap_text() is pure and never raises for string input
- Only the scroll scheduler sets or clears the scrolling flag
- Producers that show one-shot messages must go through SessionContext.notify
"""

from quest_hud.display.scroller import (
    DisplayRequest,
    DisplaySink,
    DisplaySinkError,
    InputError,
    ScrollWindow,
    build_windows,
    display_scrolling_text,
)
from quest_hud.display.session import ScrollFlags, SessionContext
from quest_hud.display.wrap import wrap_text

__all__ = [
    "DisplayRequest",
    "DisplaySink",
    "DisplaySinkError",
    "InputError",
    "ScrollFlags",
    "ScrollWindow",
    "SessionContext",
    "build_windows",
    "display_scrolling_text",
    "wrap_text",
]

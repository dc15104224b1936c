"""Quest HUD: location-based quest companion for smart glasses.

WHY: A pair of smart glasses can only show three short lines at a time,
but the quests we hand out (generated from nearby places, weather and
an LLM) are paragraphs long. This package turns voice commands and GPS
updates into quests and renders them on the tiny display with timed
scrolling, without two writers clobbering each other.

HOW: Four layers: display (line wrapping + scroll scheduling + per-session
coordination), api (thin async clients for places, weather, directions,
LLM), store (SQLite persistence), quests (voice commands, proximity
notifications, quest selection). The server package exposes the event
bridge the glasses host talks to.

RULES:
- Everything that writes to the display goes through a SessionContext
- The scroll engine is the only code that sets the scrolling flag
- External services are optional; every lookup has a fallback
"""

__version__ = "0.1.0"

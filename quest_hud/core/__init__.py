"""Domain helpers shared by the quest layer.

WHY: Distance maths and the text of every card shown on the glasses are
used by voice commands, proximity notices and the HTTP bridge alike.

HOW: geo.py holds the great-circle maths and distance formatting,
cards.py composes the title/body text for each kind of card.

RULES:
- Pure functions only, no I/O
- Card text is plain text with newlines; wrapping is the display layer's job
"""

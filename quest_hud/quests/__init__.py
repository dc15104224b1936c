"""Quest behaviour on top of the display engine.

service.py decides which quest a user gets and what completing it does;
commands.py, proximity.py and speech.py turn host events into cards,
notices and voice replies for one session.
"""

from quest_hud.quests.commands import Intent, VoiceCommandHandler
from quest_hud.quests.proximity import ProximityMonitor
from quest_hud.quests.service import CompletionResult, QuestOutcome, QuestService
from quest_hud.quests.speech import AudioSink, SpeechDebouncer

__all__ = [
    "AudioSink",
    "CompletionResult",
    "Intent",
    "ProximityMonitor",
    "QuestOutcome",
    "QuestService",
    "SpeechDebouncer",
    "VoiceCommandHandler",
]

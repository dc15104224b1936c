"""Text composition for every card shown on the glasses.

WHY: The same quest card is shown after "new quest" and "current quest",
and distance notices come from both the proximity monitor and the
"how far" command. Keeping the wording in one module keeps them identical.

HOW: Each function returns either a (title, content) pair for the scroll
engine or a single string for a one-shot text wall.

RULES:
- Content uses explicit newlines for paragraph breaks; never pre-wrapped
- Distances are computed by the caller and passed in metres
- User ids longer than 12 characters are truncated on the leaderboard
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from quest_hud.config import NEARBY_THRESHOLD_M
from quest_hud.core.geo import Location, format_distance, haversine_m
from quest_hud.store.database import LeaderboardRow, QuestTemplate, User

LEADERBOARD_TITLE = "🏆 Quest Leaderboard"
_MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}
_MAX_ID_CHARS = 12

HELP_TITLE = "🗣 Voice Commands"
HELP_TEXT = (
    "\"New quest\" - get a quest nearby\n"
    "\"Current quest\" - show it again\n"
    "\"Complete quest\" - claim your points\n"
    "\"How far\" - distance to the quest\n"
    "\"Show leaderboard\" - rankings"
)


def quest_card(
    template: QuestTemplate, user_location: Optional[Location] = None
) -> Tuple[str, str]:
    """Title and body for a quest, with distance when both ends are known."""
    distance_info = ""
    if user_location is not None and template.has_coordinates:
        meters = haversine_m(
            user_location.lat, user_location.lng,
            template.location_lat, template.location_lng,
        )
        distance_info = "\n📏 Distance: {}m away".format(int(round(meters)))

    content = "{}\n\n📍 Location: {}\n{}{}\n\n🏆 Points: {}".format(
        template.description,
        template.location_name,
        template.location_address,
        distance_info,
        template.points,
    )
    return "🎯 {}".format(template.title), content


def leaderboard_card(rows: Sequence[LeaderboardRow]) -> Tuple[str, str]:
    if not rows:
        return LEADERBOARD_TITLE, (
            "No users found yet!\n"
            "Complete some quests to appear on the leaderboard."
        )

    parts: List[str] = []
    for rank, row in enumerate(rows, start=1):
        medal = _MEDALS.get(rank, "{}.".format(rank))
        user_id = row.id
        if len(user_id) > _MAX_ID_CHARS:
            user_id = user_id[:_MAX_ID_CHARS] + "..."
        parts.append("{} {}\n   Points: {}\n".format(medal, user_id, row.total_points))
    return LEADERBOARD_TITLE, "\n".join(parts).strip()


def distance_notice(meters: float) -> str:
    """One-shot text for the distance to the active quest."""
    if meters <= NEARBY_THRESHOLD_M:
        return (
            "🎯 Quest Location Nearby!\n"
            "You're {}m away from your quest destination!".format(int(round(meters)))
        )
    return "📍 Quest Distance: {}\nto your quest destination".format(format_distance(meters))


def welcome_card(user: User) -> str:
    return (
        "🎮 POI Quest App loaded!\n\n"
        "👤 Total Points: {}\n"
        "🏆 Quests Completed: {}\n"
        "🔥 Streak: {} days\n\n"
        "Say 'new quest' to begin your adventure!"
    ).format(user.total_points, user.quests_completed, user.current_streak)


def completion_card(points: int, quest_title: str, user: Optional[User]) -> Tuple[str, str]:
    total = user.total_points if user else 0
    completed = user.quests_completed if user else 0
    streak = user.current_streak if user else 0
    content = (
        "Congratulations! You earned {} points for completing \"{}\"!\n\n"
        "📊 Total Points: {}\n"
        "🏆 Quests Completed: {}\n"
        "🔥 Streak: {} days\n\n"
        "Say 'new quest' for your next adventure."
    ).format(points, quest_title, total, completed, streak)
    return "🎉 Quest Completed!", content

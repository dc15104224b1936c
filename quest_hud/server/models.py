"""Pydantic request/response models for the host event bridge.

WHY: The glasses host posts session events as JSON. Typed schemas give
request validation and an OpenAPI page the host developers can read.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SessionStartRequest(BaseModel):
    user_id: str = Field(min_length=1, description="Host-provided user identifier.")


class TranscriptionEvent(BaseModel):
    """A speech transcription forwarded by the host.

    RULES:
    - Only final transcriptions are acted on
    """

    text: str = Field(description="Transcribed text.")
    is_final: bool = Field(default=True, description="Whether the transcription is final.")


class LocationEvent(BaseModel):
    lat: float = Field(ge=-90, le=90, description="Latitude in degrees.")
    lng: float = Field(ge=-180, le=180, description="Longitude in degrees.")
    accuracy: Optional[float] = Field(default=None, description="Accuracy radius in metres.")
    timestamp: Optional[float] = Field(
        default=None, description="Fix time (Unix epoch seconds), if the host provides it."
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    """Returned when a session starts.

    WHY: The host shows nothing itself, but the stats are handy for
    logging and for hosts with a companion screen.
    """

    user_id: str = Field(description="User identifier.")
    total_points: int = Field(description="Lifetime points.")
    quests_completed: int = Field(description="Number of completed quests.")
    current_streak: int = Field(description="Consecutive days with a completed quest.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "user_id": "alice@example.com",
                "total_points": 350,
                "quests_completed": 3,
                "current_streak": 2,
            }
        ]
    }}


class TranscriptionAccepted(BaseModel):
    user_id: str = Field(description="User identifier.")
    intent: Optional[str] = Field(
        default=None, description="Recognised voice command, if any."
    )
    dispatched: bool = Field(
        description="True if a command was handed to the session for execution."
    )


class LocationResponse(BaseModel):
    user_id: str = Field(description="User identifier.")
    notice_shown: bool = Field(description="True if a distance notice was rendered.")
    distance_m: Optional[float] = Field(
        default=None, description="Metres to the active quest, when known."
    )


class FrameModel(BaseModel):
    kind: str = Field(description="'reference_card' or 'text_wall'.")
    title: Optional[str] = Field(default=None, description="Card title (reference cards only).")
    text: str = Field(description="Rendered body text.")
    duration_ms: int = Field(description="Requested on-screen duration; -1 means until replaced.")


class DisplayResponse(BaseModel):
    """Everything rendered and spoken for a session so far.

    RULES:
    - frames are in render order, oldest first
    """

    user_id: str = Field(description="User identifier.")
    scrolling: bool = Field(description="True while a scroll sequence is running.")
    frames: List[FrameModel] = Field(description="Rendered frames, oldest first.")
    speech: List[str] = Field(description="Spoken utterances, oldest first.")


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    active_sessions: int = Field(description="Number of connected sessions.")

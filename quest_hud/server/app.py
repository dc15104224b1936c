"""FastAPI event bridge between the glasses host and the quest app.

WHY: The glasses host owns the device connection; the quest app only
needs its session events (start, transcription, location, end). An HTTP
surface lets any host forward those events and read back what the app
rendered, with OpenAPI docs for free.

HOW: One module-level app and one Runtime holding the session registry,
the QuestService and the handlers built on it. The lifespan builds the
default runtime (SQLite database, optional provider clients) unless a
service was installed beforehand, and tears every session down on
shutdown. Voice commands run as session tasks so the transcription
endpoint returns 202 immediately and DELETE can cancel an in-flight
scroll.

RULES:
- Error responses use a consistent ErrorResponse schema
- Unknown sessions are 404, a second start for the same user is 409
- Provider keys are optional; without them quests come from stored templates
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from quest_hud import __version__
from quest_hud.api.llm import QuestGenerator
from quest_hud.api.places import PlacesClient
from quest_hud.api.weather import WeatherClient
from quest_hud.config import (
    DATABASE_PATH,
    NOTICE_DURATION_MS,
    SERVER_HOST,
    SERVER_PORT,
    WELCOME_DURATION_MS,
    load_anthropic_key,
    load_places_key,
)
from quest_hud.core.cards import welcome_card
from quest_hud.display.session import SessionContext
from quest_hud.quests.commands import VoiceCommandHandler
from quest_hud.quests.proximity import ProximityMonitor
from quest_hud.quests.service import QuestService
from quest_hud.server.models import (
    DisplayResponse,
    ErrorResponse,
    FrameModel,
    HealthResponse,
    LocationEvent,
    LocationResponse,
    SessionResponse,
    SessionStartRequest,
    TranscriptionAccepted,
    TranscriptionEvent,
)
from quest_hud.server.sessions import SessionRegistry
from quest_hud.store.database import QuestDatabase
from quest_hud.store.seed import seed_sample_quests

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Runtime setup
# ---------------------------------------------------------------------------


class Runtime:
    """Process-wide state shared by the endpoints."""

    def __init__(self) -> None:
        self.registry = SessionRegistry()
        self.service: Optional[QuestService] = None
        self.commands: Optional[VoiceCommandHandler] = None
        self.proximity: Optional[ProximityMonitor] = None

    def install(self, service: QuestService) -> None:
        self.service = service
        self.commands = VoiceCommandHandler(service)
        self.proximity = ProximityMonitor(service)

    def reset(self) -> None:
        self.registry = SessionRegistry()
        self.service = None
        self.commands = None
        self.proximity = None


runtime = Runtime()


async def _build_default_service(stack: AsyncExitStack) -> QuestService:
    """Open the database and whichever provider clients have keys."""
    database = QuestDatabase(DATABASE_PATH)
    stack.callback(database.close)
    seed_sample_quests(database)

    places = None
    try:
        places = await stack.enter_async_context(PlacesClient(load_places_key(), database))
    except ValueError as exc:
        logger.warning("%s Quests will come from stored templates.", exc)

    generator = None
    if places is not None:
        try:
            generator = await stack.enter_async_context(QuestGenerator(load_anthropic_key()))
        except ValueError as exc:
            logger.warning("%s Quest text will use built-in templates.", exc)

    weather = await stack.enter_async_context(WeatherClient())
    return QuestService(database, places=places, generator=generator, weather=weather)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the default runtime if needed; close every session on shutdown."""
    async with AsyncExitStack() as stack:
        if runtime.service is None:
            runtime.install(await _build_default_service(stack))
        yield
        await runtime.registry.close_all()


app = FastAPI(
    lifespan=lifespan,
    title="Quest HUD Event Bridge",
    description=(
        "Receives session events from a smart-glasses host (session start, "
        "speech transcriptions, location fixes, session end) and drives the "
        "location-based quest app. Rendered frames can be read back per session."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_service() -> QuestService:
    if runtime.service is None:
        raise HTTPException(status_code=503, detail="Quest service is not ready")
    return runtime.service


def _get_session(user_id: str) -> SessionContext:
    session = runtime.registry.get(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No session for user: {}".format(user_id))
    return session


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=201,
    tags=["sessions"],
    summary="Start a session",
    description=(
        "Register a connected user, create their record if needed and show "
        "the welcome card with their stats."
    ),
    responses={
        409: {"model": ErrorResponse, "description": "Session already active"},
        503: {"model": ErrorResponse, "description": "Service not ready"},
    },
)
async def start_session(body: SessionStartRequest) -> SessionResponse:
    service = _require_service()
    try:
        session = runtime.registry.create(body.user_id)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    try:
        user = service.register_user(body.user_id)
    except sqlite3.Error:
        logger.exception("Failed to initialise user %s", body.user_id)
        await session.notify("⚠️ Database error. Using offline mode.", NOTICE_DURATION_MS)
        return SessionResponse(
            user_id=body.user_id, total_points=0, quests_completed=0, current_streak=0
        )

    await session.notify(welcome_card(user), WELCOME_DURATION_MS)
    return SessionResponse(
        user_id=user.id,
        total_points=user.total_points,
        quests_completed=user.quests_completed,
        current_streak=user.current_streak,
    )


@app.post(
    "/sessions/{user_id}/transcriptions",
    response_model=TranscriptionAccepted,
    status_code=202,
    tags=["sessions"],
    summary="Forward a transcription",
    description=(
        "Final transcriptions that contain a voice command are executed in "
        "the background on the user's session. Interim transcriptions and "
        "text without a command are accepted and ignored."
    ),
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def post_transcription(user_id: str, body: TranscriptionEvent) -> TranscriptionAccepted:
    session = _get_session(user_id)
    intent = VoiceCommandHandler.parse(body.text)
    if not body.is_final or intent is None:
        return TranscriptionAccepted(
            user_id=user_id, intent=intent.value if intent else None, dispatched=False
        )

    session.spawn(
        runtime.commands.handle(session, body.text),
        name="command-{}-{}".format(intent.value, user_id),
    )
    return TranscriptionAccepted(user_id=user_id, intent=intent.value, dispatched=True)


@app.post(
    "/sessions/{user_id}/locations",
    response_model=LocationResponse,
    tags=["sessions"],
    summary="Forward a location fix",
    description=(
        "Records the user's position and shows a throttled distance notice "
        "when they have an active quest with coordinates."
    ),
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def post_location(user_id: str, body: LocationEvent) -> LocationResponse:
    session = _get_session(user_id)
    check = await runtime.proximity.on_location(
        session, body.lat, body.lng, accuracy=body.accuracy, timestamp=body.timestamp
    )
    return LocationResponse(
        user_id=user_id, notice_shown=check.notice_shown, distance_m=check.distance_m
    )


@app.get(
    "/sessions/{user_id}/display",
    response_model=DisplayResponse,
    tags=["sessions"],
    summary="Read back rendered frames",
    description="Frames and utterances produced for this session so far, oldest first.",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def get_display(user_id: str) -> DisplayResponse:
    session = _get_session(user_id)
    frames = [
        FrameModel(kind=f.kind, title=f.title, text=f.text, duration_ms=f.duration_ms)
        for f in list(session.display.frames)
    ]
    speech = list(session.audio.utterances) if session.audio is not None else []
    return DisplayResponse(
        user_id=user_id, scrolling=session.is_scrolling, frames=frames, speech=speech
    )


@app.delete(
    "/sessions/{user_id}",
    status_code=204,
    tags=["sessions"],
    summary="End a session",
    description="Cancels in-flight scrolls and timers and forgets the session.",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def end_session(user_id: str) -> Response:
    session = runtime.registry.remove(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No session for user: {}".format(user_id))
    await session.close()
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok", version=__version__, active_sessions=len(runtime.registry)
    )


def run_api(host: str = SERVER_HOST, port: int = SERVER_PORT) -> None:
    """Entry point for the quest-hud-api console script."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    uvicorn.run(app, host=host, port=port)

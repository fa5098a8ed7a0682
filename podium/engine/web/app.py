"""FastAPI application for the Podium debate engine."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..config import AppConfig, get_default_config
from ..core import DebateEngine
from ..debates.models import CreateChallengeRequest
from ..tournaments.models import TournamentCreateRequest
from .api import EngineAPI
from .schemas import (
    AcceptRequest,
    AppealRequest,
    RegistrationRequest,
    RematchRequest,
    StatementRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_api(request: Request) -> EngineAPI:
    return request.app.state.api


@router.post("/debates")
async def create_debate(request: CreateChallengeRequest, api: EngineAPI = Depends(get_api)):
    """Open a new challenge."""
    return await api.create_debate(request)


@router.post("/debates/{debate_id}/accept")
async def accept_debate(
    debate_id: str, request: AcceptRequest, api: EngineAPI = Depends(get_api)
):
    return await api.accept_debate(debate_id, request)


@router.post("/debates/{debate_id}/statements")
async def submit_statement(
    debate_id: str, request: StatementRequest, api: EngineAPI = Depends(get_api)
):
    """Submit a statement for the debate's current round."""
    return await api.submit_statement(debate_id, request)


@router.post("/debates/{debate_id}/appeal")
async def request_appeal(
    debate_id: str, request: AppealRequest, api: EngineAPI = Depends(get_api)
):
    return await api.request_appeal(debate_id, request)


@router.post("/debates/{debate_id}/rematch")
async def rematch(debate_id: str, request: RematchRequest, api: EngineAPI = Depends(get_api)):
    """Request, accept or decline a rematch."""
    return await api.rematch(debate_id, request)


@router.post("/debates/{debate_id}/cancel")
async def cancel_debate(debate_id: str, api: EngineAPI = Depends(get_api)):
    return await api.cancel_debate(debate_id)


@router.get("/debates/{debate_id}")
async def get_debate(debate_id: str, api: EngineAPI = Depends(get_api)):
    """Get a debate with its participants and statements."""
    return api.get_debate(debate_id)


@router.post("/tournaments")
async def create_tournament(
    request: TournamentCreateRequest, api: EngineAPI = Depends(get_api)
):
    """Create a new tournament."""
    return await api.create_tournament(request)


@router.post("/tournaments/{tournament_id}/participants")
async def register_participant(
    tournament_id: int, request: RegistrationRequest, api: EngineAPI = Depends(get_api)
):
    return await api.register_participant(tournament_id, request)


@router.post("/tournaments/{tournament_id}/start")
async def start_tournament(tournament_id: int, api: EngineAPI = Depends(get_api)):
    """Start a tournament."""
    return await api.start_tournament(tournament_id)


@router.post("/tournaments/{tournament_id}/advance")
async def advance_tournament(tournament_id: int, api: EngineAPI = Depends(get_api)):
    return await api.advance_tournament(tournament_id)


@router.get("/tournaments/{tournament_id}/bracket")
async def get_bracket(tournament_id: int, api: EngineAPI = Depends(get_api)):
    """Get bracket visualization data."""
    return api.get_bracket(tournament_id)


def get_allowed_origins() -> list[str] | None:
    """Get CORS origins from environment or use development defaults."""
    env_origins = os.environ.get("ALLOWED_ORIGINS")
    if env_origins:
        return [origin.strip() for origin in env_origins.split(",")]
    return None


def create_app(
    engine: DebateEngine | None = None, config: AppConfig | None = None
) -> FastAPI:
    """Build the application around ``engine`` (created from config if omitted)."""
    if engine is None:
        engine = DebateEngine(config or get_default_config())

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncGenerator[None, None]:
        """Retry interrupted verdicts on startup, finish background work on shutdown."""
        results = await engine.aggregator.retry_pending_verdicts()
        if results:
            logger.info(f"Retried verdicts for {len(results)} debate(s)")
        yield
        logger.info("Waiting for background tasks to finish...")
        await engine.drain_background_tasks()

    app = FastAPI(
        title="Podium Debate Engine",
        description="Debate rounds, verdicts, appeals, rematches and tournaments",
        version="1.0.0",
        lifespan=lifespan,
    )

    allowed_origins = get_allowed_origins()
    if allowed_origins:
        logger.info(f"Setting CORS allowed origins: {allowed_origins}")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        # Development: Allow any localhost/127.0.0.1
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.engine = engine
    app.state.api = EngineAPI(engine)
    app.include_router(router)
    return app

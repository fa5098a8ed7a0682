"""HTTP handlers translating engine results into responses."""

import logging
from typing import Any, Awaitable

from fastapi import HTTPException
from pydantic import BaseModel

from ..core import DebateEngine
from ..debates.models import CreateChallengeRequest
from ..errors import ErrorKind, OperationResult
from ..tournaments.models import TournamentCreateRequest
from .schemas import (
    AcceptRequest,
    AppealRequest,
    RegistrationRequest,
    RematchRequest,
    StatementRequest,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NOT_PARTICIPANT: 403,
    ErrorKind.WRONG_ACTOR: 403,
    ErrorKind.NOT_INVITED: 403,
    ErrorKind.INVALID_STATUS: 409,
    ErrorKind.ALREADY_SUBMITTED: 409,
    ErrorKind.NOT_YOUR_TURN: 409,
    ErrorKind.ALREADY_ACCEPTED: 409,
    ErrorKind.ALREADY_APPEALED: 409,
    ErrorKind.REMATCH_PENDING: 409,
    ErrorKind.REMATCH_ALREADY_ACCEPTED: 409,
    ErrorKind.REMATCH_DECLINED: 409,
    ErrorKind.NO_PENDING_REMATCH: 409,
    ErrorKind.REMATCH_IN_PROGRESS: 409,
    ErrorKind.ALREADY_PROCESSED: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.ROUND_NOT_COMPLETE: 409,
    ErrorKind.TOURNAMENT_FULL: 409,
    ErrorKind.ALREADY_REGISTERED: 409,
    ErrorKind.JUDGING_UNAVAILABLE: 503,
    ErrorKind.NO_JUDGES: 503,
    ErrorKind.INTERNAL: 500,
}


def to_response(result: OperationResult) -> dict[str, Any]:
    """Successful results become a JSON body; failures raise HTTPException."""
    if not result.ok:
        raise HTTPException(
            status_code=ERROR_STATUS.get(result.error, 400),
            detail={"error": result.error.value, "message": result.message},
        )
    value = result.value
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return {
        "message": result.message,
        "already_processed": result.already_processed,
        "data": value,
    }


class EngineAPI:
    """FastAPI endpoint handlers for debate and tournament operations."""

    def __init__(self, engine: DebateEngine):
        self.engine = engine

    async def _handle(self, operation: str, pending: Awaitable[OperationResult]) -> dict[str, Any]:
        try:
            return to_response(await pending)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to {operation}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def create_debate(self, request: CreateChallengeRequest) -> dict[str, Any]:
        return await self._handle(
            "create debate", self.engine.debates.create_challenge(request)
        )

    async def accept_debate(self, debate_id: str, request: AcceptRequest) -> dict[str, Any]:
        return await self._handle(
            f"accept debate {debate_id}",
            self.engine.debates.accept_challenge(debate_id, request.user_id),
        )

    async def submit_statement(
        self, debate_id: str, request: StatementRequest
    ) -> dict[str, Any]:
        return await self._handle(
            f"submit statement to {debate_id}",
            self.engine.debates.submit_statement(debate_id, request.user_id, request.content),
        )

    async def request_appeal(self, debate_id: str, request: AppealRequest) -> dict[str, Any]:
        return await self._handle(
            f"appeal debate {debate_id}",
            self.engine.appeals.request_appeal(
                debate_id, request.user_id, request.reason, request.verdict_ids
            ),
        )

    async def rematch(self, debate_id: str, request: RematchRequest) -> dict[str, Any]:
        negotiator = self.engine.rematches
        if request.action == "request":
            pending = negotiator.request_rematch(debate_id, request.user_id)
        else:
            pending = negotiator.respond_to_rematch(
                debate_id, request.user_id, accept=request.action == "accept"
            )
        return await self._handle(f"{request.action} rematch on {debate_id}", pending)

    async def cancel_debate(self, debate_id: str) -> dict[str, Any]:
        return await self._handle(
            f"cancel debate {debate_id}", self.engine.debates.cancel_debate(debate_id)
        )

    def get_debate(self, debate_id: str) -> dict[str, Any]:
        return to_response(self.engine.debates.get_debate_view(debate_id))

    async def create_tournament(self, request: TournamentCreateRequest) -> dict[str, Any]:
        return await self._handle(
            "create tournament", self.engine.tournaments.create_tournament(request)
        )

    async def register_participant(
        self, tournament_id: int, request: RegistrationRequest
    ) -> dict[str, Any]:
        return await self._handle(
            f"register for tournament {tournament_id}",
            self.engine.tournaments.register_participant(tournament_id, request.user_id),
        )

    async def start_tournament(self, tournament_id: int) -> dict[str, Any]:
        return await self._handle(
            f"start tournament {tournament_id}",
            self.engine.tournaments.start_tournament(tournament_id),
        )

    async def advance_tournament(self, tournament_id: int) -> dict[str, Any]:
        return await self._handle(
            f"advance tournament {tournament_id}",
            self.engine.tournaments.advance_tournament_round(tournament_id),
        )

    def get_bracket(self, tournament_id: int) -> dict[str, Any]:
        return to_response(self.engine.tournaments.get_bracket_view(tournament_id))

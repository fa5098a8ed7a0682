"""Debate lifecycle: challenges, statements and cancellation."""

import logging
import sqlite3
import uuid
from datetime import timedelta
from typing import Any, Awaitable, Callable, List

from pydantic import BaseModel

from ..config import DebateRulesConfig
from ..database import utcnow
from ..errors import ConcurrentUpdateError, ErrorKind, OperationResult
from ..notifications import NotificationDispatcher, NotificationType
from ..utils import BackgroundTasks
from .database import DebateStore
from .models import (
    ELIGIBLE_PARTICIPANT_STATUSES,
    ChallengeType,
    CreateChallengeRequest,
    Debate,
    DebateKind,
    DebateParticipant,
    DebateStatus,
    DebateView,
    ParticipantStatus,
    Position,
    Statement,
)
from .progression import RoundOutcome, detect_round_completion
from .round_gate import check_submission

logger = logging.getLogger(__name__)

CompletionHandler = Callable[[str], Awaitable[Any]]

CANCELLABLE_STATUSES = frozenset(
    {DebateStatus.WAITING, DebateStatus.ACTIVE, DebateStatus.COMPLETED}
)


class SubmissionResult(BaseModel):
    """An accepted statement and what it did to the debate."""

    statement: Statement
    outcome: RoundOutcome
    current_round: int
    status: DebateStatus


class DebateManager:
    """Applies debate state transitions, one transaction each."""

    def __init__(
        self,
        store: DebateStore,
        notifier: NotificationDispatcher,
        rules: DebateRulesConfig,
        tasks: BackgroundTasks,
        on_completed: CompletionHandler | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.rules = rules
        self.tasks = tasks
        self.on_completed = on_completed

    def set_completion_handler(self, handler: CompletionHandler) -> None:
        """Set the coroutine that receives debates whose final round completed."""
        self.on_completed = handler

    async def create_challenge(
        self, request: CreateChallengeRequest
    ) -> OperationResult[Debate]:
        """Open a WAITING debate for someone to accept."""
        total_rounds = request.total_rounds or self.rules.default_total_rounds
        if total_rounds > self.rules.max_total_rounds:
            return OperationResult.failure(
                ErrorKind.INVALID_REQUEST,
                f"Debates can have at most {self.rules.max_total_rounds} rounds",
            )
        if request.challenge_type == ChallengeType.TOURNAMENT:
            return OperationResult.failure(
                ErrorKind.INVALID_REQUEST,
                "Tournament debates are created by their tournament",
            )

        invited = [u for u in dict.fromkeys(request.invited_user_ids) if u]
        if request.challenger_id in invited:
            return OperationResult.failure(
                ErrorKind.INVALID_REQUEST, "You cannot invite yourself"
            )
        if request.challenge_type == ChallengeType.DIRECT and len(invited) != 1:
            return OperationResult.failure(
                ErrorKind.INVALID_REQUEST, "A direct challenge names exactly one user"
            )
        if request.challenge_type == ChallengeType.GROUP and len(invited) < 2:
            return OperationResult.failure(
                ErrorKind.INVALID_REQUEST, "A group debate needs at least two invitees"
            )
        if request.challenge_type == ChallengeType.ONE_ON_ONE:
            invited = []

        now = utcnow()
        kind = (
            DebateKind.GROUP
            if request.challenge_type == ChallengeType.GROUP
            else DebateKind.TWO_PARTY
        )
        debate = Debate(
            id=str(uuid.uuid4()),
            topic=request.topic,
            description=request.description,
            category=request.category,
            status=DebateStatus.WAITING,
            challenge_type=request.challenge_type,
            kind=kind,
            total_rounds=total_rounds,
            round_duration_hours=(
                request.round_duration_hours or self.rules.round_duration_hours
            ),
            challenger_id=request.challenger_id,
            challenger_position=request.challenger_position,
            opponent_position=request.challenger_position.opposite,
            invited_user_ids=invited,
            belt_at_stake=request.belt_at_stake,
            created_at=now,
        )

        with self.store.transaction() as conn:
            self.store.insert_debate(conn, debate)
            if kind == DebateKind.GROUP:
                self.store.insert_participant(
                    conn,
                    DebateParticipant(
                        debate_id=debate.id,
                        user_id=request.challenger_id,
                        position=request.challenger_position,
                        status=ParticipantStatus.ACCEPTED,
                        joined_at=now,
                    ),
                )
                for index, user_id in enumerate(invited):
                    position = (
                        request.challenger_position.opposite
                        if index % 2 == 0
                        else request.challenger_position
                    )
                    self.store.insert_participant(
                        conn,
                        DebateParticipant(
                            debate_id=debate.id,
                            user_id=user_id,
                            position=position,
                            status=ParticipantStatus.INVITED,
                        ),
                    )

        if invited:
            await self.notifier.notify_users(
                invited,
                NotificationType.CHALLENGE_RECEIVED,
                "New Challenge",
                f"You have been challenged to debate: {debate.topic}",
                debate_id=debate.id,
            )
        return OperationResult.success(debate, "Challenge created")

    async def accept_challenge(self, debate_id: str, user_id: str) -> OperationResult[Debate]:
        """Accept a WAITING challenge; the debate starts once everyone is in."""
        now = utcnow()
        with self.store.transaction() as conn:
            debate = self.store.fetch_debate(conn, debate_id)
            if debate is None:
                return OperationResult.failure(ErrorKind.NOT_FOUND, "Debate not found")
            if debate.status != DebateStatus.WAITING:
                return OperationResult.failure(
                    ErrorKind.INVALID_STATUS, "This challenge is no longer open"
                )
            if user_id == debate.challenger_id:
                return OperationResult.failure(
                    ErrorKind.WRONG_ACTOR, "You cannot accept your own challenge"
                )

            if debate.is_group:
                result = self._accept_group(conn, debate, user_id, now)
            else:
                result = self._accept_two_party(conn, debate, user_id, now)
            if not result:
                return result
            debate = self.store.fetch_debate(conn, debate_id)

        logger.info(f"{user_id} accepted debate {debate_id} (now {debate.status.value})")
        await self.notifier.notify_users(
            [debate.challenger_id],
            NotificationType.DEBATE_ACCEPTED,
            "Challenge Accepted",
            f"{user_id} accepted your challenge: {debate.topic}",
            debate_id=debate_id,
        )
        if debate.status == DebateStatus.ACTIVE:
            await self._notify_round(debate, self._active_user_ids(debate))
        return OperationResult.success(debate, "Challenge accepted")

    def _accept_two_party(self, conn, debate: Debate, user_id: str, now) -> OperationResult:
        if debate.opponent_id and debate.opponent_id != user_id:
            return OperationResult.failure(
                ErrorKind.WRONG_ACTOR, "This challenge is reserved for another user"
            )
        if (
            debate.challenge_type == ChallengeType.DIRECT
            and not debate.opponent_id
            and user_id not in debate.invited_user_ids
        ):
            return OperationResult.failure(
                ErrorKind.NOT_INVITED, "You were not invited to this debate"
            )

        if not self.store.compare_and_set(
            conn,
            debate.id,
            {"status": DebateStatus.WAITING, "version": debate.version},
            status=DebateStatus.ACTIVE,
            opponent_id=user_id,
            current_round=1,
            started_at=now,
            round_deadline=now + timedelta(hours=debate.round_duration_hours),
        ):
            return OperationResult.failure(
                ErrorKind.CONFLICT, "This challenge was accepted by someone else"
            )
        return OperationResult.success()

    def _accept_group(self, conn, debate: Debate, user_id: str, now) -> OperationResult:
        participant = next(
            (p for p in self.store.fetch_participants(conn, debate.id) if p.user_id == user_id),
            None,
        )
        if participant is None:
            return OperationResult.failure(
                ErrorKind.NOT_INVITED, "You were not invited to this debate"
            )
        if participant.status != ParticipantStatus.INVITED:
            return OperationResult.failure(
                ErrorKind.ALREADY_ACCEPTED, "You have already responded to this invitation"
            )

        self.store.update_participant(
            conn, debate.id, user_id, status=ParticipantStatus.ACCEPTED, joined_at=now
        )
        if self.store.count_participants(conn, debate.id, ParticipantStatus.INVITED) == 0:
            self.store.compare_and_set(
                conn,
                debate.id,
                {"status": DebateStatus.WAITING},
                status=DebateStatus.ACTIVE,
                current_round=1,
                started_at=now,
                round_deadline=now + timedelta(hours=debate.round_duration_hours),
            )
        return OperationResult.success()

    async def submit_statement(
        self, debate_id: str, user_id: str, content: str
    ) -> OperationResult[SubmissionResult]:
        """Submit a statement for the current round.

        The turn check, the insert and round completion happen in one
        transaction. Completing the final round hands the debate to the
        completion handler in the background.
        """
        content = (content or "").strip()
        if not content:
            return OperationResult.failure(
                ErrorKind.EMPTY_CONTENT, "Statement content is required"
            )
        if len(content) > self.rules.max_statement_length:
            return OperationResult.failure(
                ErrorKind.CONTENT_TOO_LONG,
                f"Statements are limited to {self.rules.max_statement_length} characters",
            )

        now = utcnow()
        try:
            with self.store.transaction() as conn:
                debate = self.store.fetch_debate(conn, debate_id)
                if debate is None:
                    return OperationResult.failure(ErrorKind.NOT_FOUND, "Debate not found")

                participants = self.store.fetch_participants(conn, debate_id)
                round_statements = self.store.fetch_statements(
                    conn, debate_id, debate.current_round
                )
                decision = check_submission(debate, user_id, participants, round_statements)
                if not decision:
                    logger.warning(
                        f"Rejected statement from {user_id} on {debate_id}: {decision.message}"
                    )
                    return OperationResult.failure(decision.error, decision.message)

                statement = Statement(
                    id=str(uuid.uuid4()),
                    debate_id=debate_id,
                    author_id=user_id,
                    round=debate.current_round,
                    content=content,
                    created_at=now,
                )
                self.store.insert_statement(conn, statement)

                progress = detect_round_completion(
                    debate, participants, [*round_statements, statement], now
                )
                expected = {"version": debate.version, "status": DebateStatus.ACTIVE}
                if progress.outcome == RoundOutcome.ADVANCED:
                    moved = self.store.compare_and_set(
                        conn,
                        debate_id,
                        expected,
                        current_round=progress.current_round,
                        round_deadline=progress.round_deadline,
                    )
                elif progress.outcome == RoundOutcome.COMPLETED:
                    moved = self.store.compare_and_set(
                        conn,
                        debate_id,
                        expected,
                        status=DebateStatus.COMPLETED,
                        ended_at=now,
                        round_deadline=None,
                    )
                else:
                    moved = True
                if not moved:
                    raise ConcurrentUpdateError(f"Debate {debate_id} changed concurrently")
        except sqlite3.IntegrityError:
            return OperationResult.failure(
                ErrorKind.ALREADY_SUBMITTED,
                "You have already submitted a statement for this round",
            )
        except ConcurrentUpdateError as e:
            logger.warning(str(e))
            return OperationResult.failure(
                ErrorKind.CONFLICT, "The debate changed while submitting, please retry"
            )

        status = (
            DebateStatus.COMPLETED
            if progress.outcome == RoundOutcome.COMPLETED
            else DebateStatus.ACTIVE
        )
        logger.info(
            f"Statement from {user_id} on {debate_id} round {statement.round}: "
            f"{progress.outcome.value}"
        )
        await self._notify_progress(debate, participants, user_id, progress.outcome)

        if progress.outcome == RoundOutcome.COMPLETED and self.on_completed is not None:
            self.tasks.spawn(self.on_completed(debate_id), name=f"verdict-{debate_id}")

        return OperationResult.success(
            SubmissionResult(
                statement=statement,
                outcome=progress.outcome,
                current_round=progress.current_round,
                status=status,
            ),
            "Statement submitted",
        )

    async def cancel_debate(self, debate_id: str) -> OperationResult[Debate]:
        """Administratively cancel a debate that has no verdict yet."""
        with self.store.transaction() as conn:
            debate = self.store.fetch_debate(conn, debate_id)
            if debate is None:
                return OperationResult.failure(ErrorKind.NOT_FOUND, "Debate not found")
            if debate.status not in CANCELLABLE_STATUSES:
                return OperationResult.failure(
                    ErrorKind.INVALID_STATUS,
                    f"A {debate.status.value} debate cannot be cancelled",
                )
            self.store.compare_and_set(
                conn,
                debate_id,
                {"status": debate.status},
                status=DebateStatus.CANCELLED,
                ended_at=utcnow(),
                round_deadline=None,
            )
            participants = self.store.fetch_participants(conn, debate_id)
            debate = self.store.fetch_debate(conn, debate_id)

        logger.info(f"Cancelled debate {debate_id}")
        await self.notifier.notify_users(
            [debate.challenger_id, debate.opponent_id, *(p.user_id for p in participants)],
            NotificationType.DEBATE_CANCELLED,
            "Debate Cancelled",
            f"The debate on {debate.topic} was cancelled.",
            debate_id=debate_id,
        )
        return OperationResult.success(debate, "Debate cancelled")

    def get_debate_view(self, debate_id: str) -> OperationResult[DebateView]:
        view = self.store.get_view(debate_id)
        if view is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "Debate not found")
        return OperationResult.success(view)

    def _active_user_ids(self, debate: Debate) -> List[str]:
        if debate.is_group:
            return [
                p.user_id
                for p in self.store.get_participants(debate.id)
                if p.status in ELIGIBLE_PARTICIPANT_STATUSES
            ]
        return [u for u in (debate.challenger_id, debate.opponent_id) if u]

    async def _notify_round(self, debate: Debate, user_ids: List[str]) -> None:
        await self.notifier.notify_users(
            user_ids,
            NotificationType.NEW_ROUND,
            f"Round {debate.current_round} Started",
            f"Round {debate.current_round} of {debate.total_rounds} is open: {debate.topic}",
            debate_id=debate.id,
        )

    async def _notify_progress(
        self,
        debate: Debate,
        participants: List[DebateParticipant],
        author_id: str,
        outcome: RoundOutcome,
    ) -> None:
        if debate.is_group:
            user_ids = [
                p.user_id for p in participants if p.status in ELIGIBLE_PARTICIPANT_STATUSES
            ]
        else:
            user_ids = [u for u in (debate.challenger_id, debate.opponent_id) if u]
        others = [u for u in user_ids if u != author_id]

        if outcome == RoundOutcome.PENDING:
            await self.notifier.notify_users(
                others,
                NotificationType.OPPONENT_SUBMITTED,
                "New Statement",
                f"{author_id} submitted their round {debate.current_round} statement.",
                debate_id=debate.id,
            )
        elif outcome == RoundOutcome.ADVANCED:
            refreshed = self.store.get_debate(debate.id) or debate
            await self._notify_round(refreshed, user_ids)
        else:
            await self.notifier.notify_users(
                user_ids,
                NotificationType.DEBATE_COMPLETE,
                "Debate Complete",
                "The debate has concluded. Verdicts are being generated!",
                debate_id=debate.id,
            )

    def build_debate(
        self,
        topic: str,
        challenger_id: str,
        opponent_id: str | None,
        kind: DebateKind,
        challenge_type: ChallengeType,
        total_rounds: int,
        round_duration_hours: float,
        category: str = "OTHER",
        status: DebateStatus = DebateStatus.ACTIVE,
        **extra: Any,
    ) -> Debate:
        """Build (without storing) a debate for another component to insert."""
        now = utcnow()
        active = status == DebateStatus.ACTIVE
        return Debate(
            id=str(uuid.uuid4()),
            topic=topic,
            category=category,
            status=status,
            challenge_type=challenge_type,
            kind=kind,
            total_rounds=total_rounds,
            round_duration_hours=round_duration_hours,
            round_deadline=now + timedelta(hours=round_duration_hours) if active else None,
            challenger_id=challenger_id,
            opponent_id=opponent_id,
            challenger_position=extra.pop("challenger_position", Position.FOR),
            opponent_position=extra.pop("opponent_position", Position.AGAINST),
            started_at=now if active else None,
            created_at=now,
            **extra,
        )

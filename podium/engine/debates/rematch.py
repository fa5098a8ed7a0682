"""Rematch negotiation between the loser and the winner of a debate."""

import logging
import uuid

from ..database import utcnow
from ..errors import ErrorKind, OperationResult
from ..notifications import NotificationDispatcher, NotificationType
from .database import DebateStore
from .models import (
    ChallengeType,
    Debate,
    DebateKind,
    DebateStatus,
    RematchStatus,
)

logger = logging.getLogger(__name__)

# Rejection for each non-null rematch status when a new request comes in
_REQUEST_BLOCKED = {
    RematchStatus.PENDING: (ErrorKind.REMATCH_PENDING, "A rematch request is already pending"),
    RematchStatus.ACCEPTED: (
        ErrorKind.REMATCH_ALREADY_ACCEPTED,
        "A rematch has already been accepted",
    ),
    RematchStatus.DECLINED: (ErrorKind.REMATCH_DECLINED, "The rematch request was declined"),
}


class RematchNegotiator:
    """rematch_status moves null -> PENDING -> ACCEPTED | DECLINED and never back."""

    def __init__(self, store: DebateStore, notifier: NotificationDispatcher):
        self.store = store
        self.notifier = notifier

    def _check_decided(self, debate: Debate | None) -> OperationResult | None:
        if debate is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "Debate not found")
        if debate.status != DebateStatus.VERDICT_READY:
            return OperationResult.failure(
                ErrorKind.INVALID_STATUS, "Rematches are only possible after a verdict"
            )
        if debate.is_group or debate.challenge_type == ChallengeType.TOURNAMENT:
            return OperationResult.failure(
                ErrorKind.INVALID_REQUEST, "Group and tournament debates cannot be rematched"
            )
        if debate.winner_id is None:
            return OperationResult.failure(
                ErrorKind.INVALID_REQUEST, "Tied debates cannot be rematched"
            )
        return None

    async def request_rematch(self, debate_id: str, user_id: str) -> OperationResult[Debate]:
        with self.store.transaction() as conn:
            debate = self.store.fetch_debate(conn, debate_id)
            rejection = self._check_decided(debate)
            if rejection is not None:
                return rejection
            if user_id != debate.loser_id:
                return OperationResult.failure(
                    ErrorKind.WRONG_ACTOR, "Only the loser can request a rematch"
                )
            if debate.rematch_status is not None:
                return OperationResult.failure(*_REQUEST_BLOCKED[debate.rematch_status])

            if not self.store.compare_and_set(
                conn,
                debate_id,
                {"rematch_status": None, "status": DebateStatus.VERDICT_READY},
                rematch_status=RematchStatus.PENDING,
                rematch_requested_by=user_id,
                rematch_requested_at=utcnow(),
            ):
                return OperationResult.failure(
                    ErrorKind.REMATCH_PENDING, "A rematch request is already pending"
                )
            debate = self.store.fetch_debate(conn, debate_id)

        logger.info(f"Rematch requested on debate {debate_id} by {user_id}")
        await self.notifier.notify_users(
            [debate.winner_id],
            NotificationType.REMATCH_REQUESTED,
            "Rematch Requested",
            f"{user_id} wants a rematch on: {debate.topic}",
            debate_id=debate_id,
        )
        return OperationResult.success(debate, "Rematch requested")

    async def respond_to_rematch(
        self, debate_id: str, user_id: str, accept: bool
    ) -> OperationResult[Debate]:
        """Accept (returns the new debate) or decline (returns the original)."""
        rematch = None
        with self.store.transaction() as conn:
            debate = self.store.fetch_debate(conn, debate_id)
            rejection = self._check_decided(debate)
            if rejection is not None:
                return rejection
            if user_id != debate.winner_id or user_id == debate.rematch_requested_by:
                return OperationResult.failure(
                    ErrorKind.WRONG_ACTOR, "Only the winner can respond to rematch requests"
                )
            if debate.rematch_status != RematchStatus.PENDING:
                return OperationResult.failure(
                    ErrorKind.NO_PENDING_REMATCH, "No pending rematch request"
                )

            expected = {"rematch_status": RematchStatus.PENDING}
            if accept:
                rematch = self._build_rematch(debate)
                moved = self.store.compare_and_set(
                    conn,
                    debate_id,
                    expected,
                    rematch_status=RematchStatus.ACCEPTED,
                    rematch_debate_id=rematch.id,
                )
                if moved:
                    self.store.insert_debate(conn, rematch)
            else:
                moved = self.store.compare_and_set(
                    conn, debate_id, expected, rematch_status=RematchStatus.DECLINED
                )
            if not moved:
                return OperationResult.failure(
                    ErrorKind.NO_PENDING_REMATCH, "No pending rematch request"
                )
            debate = self.store.fetch_debate(conn, debate_id)

        requester = debate.rematch_requested_by
        if rematch is None:
            logger.info(f"Rematch on debate {debate_id} declined")
            await self.notifier.notify_users(
                [requester],
                NotificationType.REMATCH_DECLINED,
                "Rematch Declined",
                f"Your rematch request on {debate.topic} was declined.",
                debate_id=debate_id,
            )
            return OperationResult.success(debate, "Rematch declined")

        logger.info(f"Rematch on debate {debate_id} accepted as {rematch.id}")
        await self.notifier.notify_users(
            [requester, user_id],
            NotificationType.REMATCH_ACCEPTED,
            "Rematch Accepted",
            f"The rematch on {debate.topic} is ready to start.",
            debate_id=rematch.id,
        )
        return OperationResult.success(rematch, "Rematch accepted")

    def _build_rematch(self, debate: Debate) -> Debate:
        """New WAITING debate: the loser challenges, the winner is preset opponent.

        Each user keeps the position they argued, so the labels follow the
        role swap.
        """
        loser_id = debate.rematch_requested_by or debate.loser_id
        winner_id = debate.challenger_id if loser_id == debate.opponent_id else debate.opponent_id
        return Debate(
            id=str(uuid.uuid4()),
            topic=debate.topic,
            description=debate.description,
            category=debate.category,
            status=DebateStatus.WAITING,
            challenge_type=ChallengeType.DIRECT,
            kind=DebateKind.TWO_PARTY,
            total_rounds=debate.total_rounds,
            round_duration_hours=debate.round_duration_hours,
            challenger_id=loser_id,
            opponent_id=winner_id,
            challenger_position=debate.position_of(loser_id),
            opponent_position=debate.position_of(winner_id),
            invited_user_ids=[winner_id],
            original_debate_id=debate.id,
            created_at=utcnow(),
        )

"""Appeals: one re-judging of a decided debate, requested by the loser."""

import logging
from datetime import timedelta
from typing import Sequence

from ..config import AppealConfig
from ..database import utcnow
from ..debates.database import DebateStore
from ..debates.models import (
    AppealStatus,
    ChallengeType,
    Debate,
    DebateStatus,
    RematchStatus,
)
from ..errors import ErrorKind, OperationResult
from ..notifications import NotificationDispatcher, NotificationType
from ..utils import BackgroundTasks
from .aggregator import VerdictAggregator
from .database import VerdictStore
from .models import AggregateOutcome, VerdictPass

logger = logging.getLogger(__name__)


class AppealHandler:
    """Validates appeal requests and runs the appeal verdict pass."""

    CAS_ATTEMPTS = 3

    def __init__(
        self,
        debates: DebateStore,
        verdicts: VerdictStore,
        aggregator: VerdictAggregator,
        notifier: NotificationDispatcher,
        config: AppealConfig,
        tasks: BackgroundTasks,
    ):
        self.debates = debates
        self.verdicts = verdicts
        self.aggregator = aggregator
        self.notifier = notifier
        self.config = config
        self.tasks = tasks

    def _validate_request(
        self,
        debate: Debate,
        user_id: str,
        contested_verdict_ids: Sequence[int],
        now,
    ) -> OperationResult | None:
        initial_ids = {
            v.id for v in self.verdicts.get_verdicts(debate.id, VerdictPass.INITIAL)
        }
        if not set(contested_verdict_ids) <= initial_ids:
            return OperationResult.failure(
                ErrorKind.INVALID_VERDICTS,
                "Selected verdicts do not belong to this debate",
            )
        if debate.status == DebateStatus.APPEALED:
            return OperationResult.failure(
                ErrorKind.ALREADY_APPEALED, "This debate is already under appeal"
            )
        if debate.status != DebateStatus.VERDICT_READY:
            return OperationResult.failure(
                ErrorKind.INVALID_STATUS, "Only debates with a verdict can be appealed"
            )
        if debate.is_group or debate.challenge_type == ChallengeType.TOURNAMENT:
            return OperationResult.failure(
                ErrorKind.NOT_APPEALABLE, "Tournament and group debates cannot be appealed"
            )
        if debate.winner_id is None:
            return OperationResult.failure(
                ErrorKind.TIE_NOT_APPEALABLE, "Tied debates cannot be appealed"
            )
        if not debate.is_side(user_id):
            return OperationResult.failure(
                ErrorKind.NOT_PARTICIPANT, "You are not a participant in this debate"
            )
        if user_id == debate.winner_id:
            return OperationResult.failure(
                ErrorKind.WRONG_ACTOR, "Only the losing party can appeal a verdict"
            )
        if debate.rematch_status in (RematchStatus.PENDING, RematchStatus.ACCEPTED):
            return OperationResult.failure(
                ErrorKind.REMATCH_IN_PROGRESS,
                "A verdict with a pending or accepted rematch cannot be appealed",
            )
        if debate.appeal_count > 0:
            return OperationResult.failure(
                ErrorKind.ALREADY_APPEALED, "This debate has already been appealed"
            )
        if debate.verdict_date is None or now > debate.verdict_date + timedelta(
            hours=self.config.window_hours
        ):
            return OperationResult.failure(
                ErrorKind.APPEAL_WINDOW_EXPIRED,
                f"Appeals must be filed within {self.config.window_hours:g} hours of the verdict",
            )
        return None

    async def request_appeal(
        self,
        debate_id: str,
        user_id: str,
        reason: str,
        contested_verdict_ids: Sequence[int],
    ) -> OperationResult[Debate]:
        """File the single appeal allowed for a debate and schedule re-judging."""
        reason = (reason or "").strip()
        if len(reason) < self.config.min_reason_length:
            return OperationResult.failure(
                ErrorKind.REASON_TOO_SHORT,
                f"Appeal reason must be at least {self.config.min_reason_length} characters",
            )
        if len(reason) > self.config.max_reason_length:
            return OperationResult.failure(
                ErrorKind.REASON_TOO_LONG,
                f"Appeal reason must be at most {self.config.max_reason_length} characters",
            )
        if not contested_verdict_ids:
            return OperationResult.failure(
                ErrorKind.NO_VERDICTS_SELECTED, "Select at least one verdict to appeal"
            )

        debate = self.debates.get_debate(debate_id)
        if debate is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "Debate not found")

        now = utcnow()
        for _ in range(self.CAS_ATTEMPTS):
            rejection = self._validate_request(debate, user_id, contested_verdict_ids, now)
            if rejection is not None:
                logger.warning(
                    f"Rejected appeal on {debate_id} by {user_id}: {rejection.message}"
                )
                return rejection

            with self.debates.transaction() as conn:
                accepted = self.debates.compare_and_set(
                    conn,
                    debate_id,
                    {
                        "status": DebateStatus.VERDICT_READY,
                        "appeal_count": 0,
                        "version": debate.version,
                    },
                    status=DebateStatus.APPEALED,
                    appeal_status=AppealStatus.PENDING,
                    appeal_count=1,
                    appealed_by=user_id,
                    appealed_at=now,
                    appeal_reason=reason,
                    appealed_verdict_ids=sorted(set(contested_verdict_ids)),
                    original_winner_id=debate.winner_id,
                    winner_id=None,
                )
                debate = self.debates.fetch_debate(conn, debate_id)
            if accepted:
                break
            logger.debug(f"Appeal on {debate_id} raced another update, re-validating")
        else:
            return OperationResult.failure(
                ErrorKind.CONFLICT, "The debate kept changing, please retry the appeal"
            )

        logger.info(f"Appeal filed on debate {debate_id} by {user_id}")
        await self.notifier.notify_users(
            [debate.challenger_id, debate.opponent_id],
            NotificationType.APPEAL_SUBMITTED,
            "Appeal Submitted",
            f"The verdict on {debate.topic} is being re-judged by new judges.",
            debate_id=debate_id,
        )
        self.tasks.spawn(self.respond_to_appeal(debate_id), name=f"appeal-{debate_id}")
        return OperationResult.success(debate, "Appeal submitted")

    async def respond_to_appeal(self, debate_id: str) -> OperationResult[AggregateOutcome]:
        """Run the final appeal pass; its outcome cannot itself be appealed."""
        return await self.aggregator.aggregate(debate_id, VerdictPass.APPEAL)

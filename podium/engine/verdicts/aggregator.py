"""Verdict aggregation: judge a finished debate and record the outcome."""

import logging
import random
import sqlite3
from datetime import timedelta
from typing import Awaitable, Callable, List, Sequence

from ..belts import BeltKeeper, BeltTransferReason
from ..config import JudgingConfig
from ..database import utcnow
from ..debates.database import DebateStore
from ..debates.models import (
    ELIGIBLE_PARTICIPANT_STATUSES,
    AppealStatus,
    Debate,
    DebateParticipant,
    DebateStatus,
)
from ..errors import (
    ConcurrentUpdateError,
    DataIntegrityError,
    ErrorKind,
    JudgingServiceError,
    OperationResult,
)
from ..judges import JudgePool, JudgingRequest, JudgingService, select_judges
from ..judges.base import validate_judge_scores
from ..notifications import NotificationDispatcher, NotificationType
from ..ratings import RatingService
from .database import VerdictStore
from .decision import decide_pass, decide_two_party, judge_decision, score_totals
from .models import AggregateOutcome, Verdict, VerdictDecision, VerdictPass

logger = logging.getLogger(__name__)

VerdictListener = Callable[[Debate, AggregateOutcome], Awaitable[None]]

# Status a debate must be in for each pass to run
PASS_STATUS = {
    VerdictPass.INITIAL: DebateStatus.COMPLETED,
    VerdictPass.APPEAL: DebateStatus.APPEALED,
}

UPHELD_RESOLUTION = (
    "After review by different judges, the original verdict was upheld. "
    "The new judges reached the same conclusion based on the arguments presented."
)
OVERTURNED_RESOLUTION = (
    "After review by different judges, the original verdict has been overturned. "
    "The outcome has been changed accordingly."
)
TIED_RESOLUTION = (
    "After review by different judges, the debate was scored as a tie. "
    "The original rating changes stand."
)


class VerdictAggregator:
    """Runs verdict passes at most once per (debate, pass)."""

    def __init__(
        self,
        debates: DebateStore,
        verdicts: VerdictStore,
        judge_pool: JudgePool,
        judging_service: JudgingService,
        rating_service: RatingService,
        notifier: NotificationDispatcher,
        config: JudgingConfig,
        belts: BeltKeeper | None = None,
        rng: random.Random | None = None,
    ):
        self.debates = debates
        self.verdicts = verdicts
        self.judge_pool = judge_pool
        self.judging_service = judging_service
        self.rating_service = rating_service
        self.notifier = notifier
        self.config = config
        self.belts = belts
        self.rng = rng or random.Random()
        self.verdict_listeners: list[VerdictListener] = []

    def add_verdict_listener(self, listener: VerdictListener) -> None:
        """Add callback invoked after a verdict pass has been committed."""
        self.verdict_listeners.append(listener)
        logger.info("Added verdict listener")

    async def aggregate(
        self, debate_id: str, verdict_pass: VerdictPass = VerdictPass.INITIAL
    ) -> OperationResult[AggregateOutcome]:
        """Judge the debate for ``verdict_pass`` and record the result.

        Calling again once the pass exists is a no-op that returns the stored
        outcome. A judging failure leaves the debate in its previous status
        so the call can be retried.
        """
        debate = self.debates.get_debate(debate_id)
        if debate is None:
            return OperationResult.failure(
                ErrorKind.NOT_FOUND, f"Debate {debate_id} not found"
            )

        existing = self.verdicts.get_verdicts(debate_id, verdict_pass)
        if existing:
            logger.info(
                f"Verdicts for debate {debate_id} ({verdict_pass.value}) already exist"
            )
            return OperationResult.success(
                self._stored_outcome(debate, verdict_pass, existing),
                "Verdicts already generated",
                already_processed=True,
            )

        expected_status = PASS_STATUS[verdict_pass]
        if debate.status != expected_status:
            return OperationResult.failure(
                ErrorKind.INVALID_STATUS,
                f"Debate is {debate.status.value}; "
                f"{verdict_pass.value.lower()} verdicts need {expected_status.value}",
            )

        claimed_at = utcnow()
        stale_before = claimed_at - timedelta(seconds=self.config.claim_timeout_seconds)
        if not self.debates.claim_judging(
            debate_id, expected_status, claimed_at, stale_before
        ):
            logger.warning(f"Verdict generation for debate {debate_id} already claimed")
            return OperationResult.failure(
                ErrorKind.ALREADY_PROCESSED,
                "Verdict generation is already in progress for this debate",
            )

        try:
            return await self._run_pass(debate_id, verdict_pass, expected_status, claimed_at)
        except JudgingServiceError as e:
            self.debates.release_judging_claim(debate_id, claimed_at)
            logger.error(f"Judging failed for debate {debate_id}: {e}")
            return OperationResult.failure(
                ErrorKind.JUDGING_UNAVAILABLE,
                f"The judging service is unavailable, please retry: {e}",
            )
        except DataIntegrityError as e:
            self.debates.release_judging_claim(debate_id, claimed_at)
            logger.error(f"Data integrity failure for debate {debate_id}: {e}")
            return OperationResult.failure(ErrorKind.INTERNAL, str(e))

    async def _run_pass(
        self,
        debate_id: str,
        verdict_pass: VerdictPass,
        expected_status: DebateStatus,
        claimed_at,
    ) -> OperationResult[AggregateOutcome]:
        view = self.debates.get_view(debate_id)
        if view is None:
            raise DataIntegrityError(f"Debate {debate_id} disappeared during judging")
        debate, participants, statements = view.debate, view.participants, view.statements

        participant_ids = self._participant_ids(debate, participants)

        exclude_ids: list[int] = []
        if verdict_pass == VerdictPass.APPEAL:
            exclude_ids = [
                v.judge_id for v in self.verdicts.get_verdicts(debate_id, VerdictPass.INITIAL)
            ]
        judges = select_judges(
            self.judge_pool.list_judges(), self.config.judges_per_pass, exclude_ids, self.rng
        )
        if len(judges) < self.config.judges_per_pass:
            self.debates.release_judging_claim(debate_id, claimed_at)
            logger.error(
                f"Judge pool has {len(judges)} judges, {self.config.judges_per_pass} needed"
            )
            return OperationResult.failure(
                ErrorKind.NO_JUDGES, "Not enough judges are configured"
            )

        request = JudgingRequest(
            debate=debate,
            statements=statements,
            participant_ids=participant_ids,
            judges=judges,
        )
        results = validate_judge_scores(request, await self.judging_service.judge(request))

        now = utcnow()
        if debate.is_group:
            decision, winner_id, totals = VerdictDecision.TIE, None, score_totals(results)
        else:
            decision, winner_id, totals = decide_pass(
                results, debate.challenger_id, debate.opponent_id
            )

        verdicts = [
            Verdict(
                debate_id=debate_id,
                judge_id=result.judge_id,
                verdict_pass=verdict_pass,
                decision=(
                    VerdictDecision.TIE
                    if debate.is_group
                    else judge_decision(result, debate.challenger_id, debate.opponent_id)
                ),
                scores=result.scores,
                reasoning=result.reasoning,
                created_at=now,
            )
            for result in results
        ]

        changes = dict(
            status=DebateStatus.VERDICT_READY,
            winner_id=winner_id,
            verdict_date=now,
            judging_claimed_at=None,
        )
        if verdict_pass == VerdictPass.APPEAL:
            changes.update(self._appeal_resolution(debate, winner_id))

        try:
            with self.debates.transaction() as conn:
                if not self.debates.compare_and_set(
                    conn,
                    debate_id,
                    {"status": expected_status, "judging_claimed_at": claimed_at},
                    **changes,
                ):
                    raise ConcurrentUpdateError(
                        f"Debate {debate_id} changed while it was being judged"
                    )
                self.verdicts.insert_verdicts(conn, verdicts)
                if debate.is_group:
                    self.debates.add_cumulative_scores(conn, debate_id, totals)
                self.judge_pool.record_judged(conn, [judge.id for judge in judges])
        except (ConcurrentUpdateError, sqlite3.IntegrityError) as e:
            return self._lost_commit(debate_id, verdict_pass, claimed_at, e)

        logger.info(
            f"Debate {debate_id} {verdict_pass.value} verdict: {decision.value}"
            f" (totals {totals})"
        )

        debate = self.debates.get_debate(debate_id) or debate
        outcome = AggregateOutcome(
            debate_id=debate_id,
            verdict_pass=verdict_pass,
            decision=decision,
            winner_id=winner_id,
            totals=totals,
            verdicts=self.verdicts.get_verdicts(debate_id, verdict_pass),
        )
        outcome.rating_changes = self._apply_ratings(debate, verdict_pass, winner_id)
        await self._transfer_belt(debate, verdict_pass, winner_id)
        await self._notify_participants(debate, outcome, participant_ids)
        await self._notify_listeners(debate, outcome)
        return OperationResult.success(outcome, f"Verdict: {decision.value}")

    def _participant_ids(
        self, debate: Debate, participants: Sequence[DebateParticipant]
    ) -> List[str]:
        if debate.is_group:
            ids = [
                p.user_id for p in participants if p.status in ELIGIBLE_PARTICIPANT_STATUSES
            ]
            if not ids:
                raise DataIntegrityError(f"Group debate {debate.id} has no participants")
            return ids

        if not debate.opponent_id:
            raise DataIntegrityError(f"Debate {debate.id} reached judging without an opponent")
        return [debate.challenger_id, debate.opponent_id]

    def _appeal_resolution(self, debate: Debate, winner_id: str | None) -> dict:
        if winner_id == debate.original_winner_id:
            return dict(appeal_status=AppealStatus.UPHELD, appeal_resolution=UPHELD_RESOLUTION)
        resolution = OVERTURNED_RESOLUTION if winner_id else TIED_RESOLUTION
        return dict(appeal_status=AppealStatus.OVERTURNED, appeal_resolution=resolution)

    def _lost_commit(
        self,
        debate_id: str,
        verdict_pass: VerdictPass,
        claimed_at,
        error: Exception,
    ) -> OperationResult[AggregateOutcome]:
        """The final compare-and-swap failed: nothing from this pass was kept."""
        self.debates.release_judging_claim(debate_id, claimed_at)
        debate = self.debates.get_debate(debate_id)
        stored = self.verdicts.get_verdicts(debate_id, verdict_pass)
        if debate is not None and stored:
            logger.warning(f"Verdicts for debate {debate_id} were stored by another worker")
            return OperationResult.success(
                self._stored_outcome(debate, verdict_pass, stored),
                "Verdicts already generated",
                already_processed=True,
            )

        status = debate.status.value if debate else "deleted"
        logger.warning(f"Discarded verdict pass for debate {debate_id} ({status}): {error}")
        return OperationResult.failure(
            ErrorKind.CONFLICT, f"Debate became {status} while it was being judged"
        )

    def _stored_outcome(
        self, debate: Debate, verdict_pass: VerdictPass, verdicts: List[Verdict]
    ) -> AggregateOutcome:
        totals: dict[str, float] = {}
        for verdict in verdicts:
            for user_id, score in verdict.scores.items():
                totals[user_id] = totals.get(user_id, 0.0) + score

        decision, winner_id = VerdictDecision.TIE, None
        if not debate.is_group and debate.opponent_id:
            decision = decide_two_party(
                totals.get(debate.challenger_id, 0.0), totals.get(debate.opponent_id, 0.0)
            )
            winner_id = {
                VerdictDecision.CHALLENGER_WINS: debate.challenger_id,
                VerdictDecision.OPPONENT_WINS: debate.opponent_id,
            }.get(decision)

        return AggregateOutcome(
            debate_id=debate.id,
            verdict_pass=verdict_pass,
            decision=decision,
            winner_id=winner_id,
            totals=totals,
            verdicts=verdicts,
        )

    def _apply_ratings(
        self, debate: Debate, verdict_pass: VerdictPass, winner_id: str | None
    ) -> dict[str, int]:
        """Apply rating changes net of any appeal and store them on the debate."""
        if debate.is_group or not debate.opponent_id:
            return {}

        challenger_id, opponent_id = debate.challenger_id, debate.opponent_id
        loser_id = opponent_id if winner_id == challenger_id else challenger_id
        try:
            if verdict_pass == VerdictPass.INITIAL:
                if winner_id is None:
                    changes = self.rating_service.apply_outcome(
                        challenger_id, opponent_id, is_tie=True
                    )
                else:
                    changes = self.rating_service.apply_outcome(winner_id, loser_id)
            else:
                original_winner = debate.original_winner_id
                if winner_id is None or winner_id == original_winner:
                    return {}
                if original_winner is not None:
                    self.rating_service.revert_outcome(
                        original_winner,
                        winner_id,
                        {
                            challenger_id: debate.challenger_rating_change or 0,
                            opponent_id: debate.opponent_rating_change or 0,
                        },
                    )
                changes = self.rating_service.apply_outcome(winner_id, loser_id)
        except Exception as e:
            logger.error(f"Rating update failed for debate {debate.id}: {e}")
            return {}

        with self.debates.transaction() as conn:
            self.debates.compare_and_set(
                conn,
                debate.id,
                {},
                challenger_rating_change=changes.get(challenger_id, 0),
                opponent_rating_change=changes.get(opponent_id, 0),
            )
        return changes

    async def _transfer_belt(
        self, debate: Debate, verdict_pass: VerdictPass, winner_id: str | None
    ) -> None:
        if self.belts is None or winner_id is None or not debate.belt_at_stake:
            return

        reason = BeltTransferReason.DEBATE_WIN
        if verdict_pass == VerdictPass.APPEAL:
            if winner_id == debate.original_winner_id:
                return
            reason = BeltTransferReason.APPEAL_OVERTURNED

        transfer = self.belts.process_transfer_after_debate(debate, winner_id, reason)
        if transfer is not None:
            await self.notifier.notify_users(
                [transfer.to_user_id, transfer.from_user_id],
                NotificationType.BELT_TRANSFERRED,
                "Belt Transferred",
                f"The {transfer.category} belt now belongs to {transfer.to_user_id}.",
                debate_id=debate.id,
            )

    async def _notify_participants(
        self, debate: Debate, outcome: AggregateOutcome, participant_ids: List[str]
    ) -> None:
        if debate.is_group:
            await self.notifier.notify_users(
                participant_ids,
                NotificationType.VERDICT_READY,
                "Verdict Ready",
                f"The judges have scored the debate on {debate.topic}.",
                debate_id=debate.id,
            )
            return

        if outcome.verdict_pass == VerdictPass.APPEAL:
            await self.notifier.notify_users(
                participant_ids,
                NotificationType.APPEAL_RESOLVED,
                "Appeal Resolved",
                debate.appeal_resolution or "The appeal verdict is ready.",
                debate_id=debate.id,
            )

        if outcome.winner_id is None:
            await self.notifier.notify_users(
                participant_ids,
                NotificationType.DEBATE_TIED,
                "Debate Tied",
                f"The debate on {debate.topic} ended in a tie.",
                debate_id=debate.id,
            )
            return

        await self.notifier.notify_users(
            [outcome.winner_id],
            NotificationType.DEBATE_WON,
            "You Won!",
            f"You won the debate on {debate.topic}.",
            debate_id=debate.id,
        )
        await self.notifier.notify_users(
            [uid for uid in participant_ids if uid != outcome.winner_id],
            NotificationType.DEBATE_LOST,
            "Debate Lost",
            f"You lost the debate on {debate.topic}.",
            debate_id=debate.id,
        )

    async def _notify_listeners(self, debate: Debate, outcome: AggregateOutcome) -> None:
        for listener in self.verdict_listeners:
            try:
                await listener(debate, outcome)
            except Exception as e:
                logger.error(f"Verdict listener failed for debate {debate.id}: {e}")

    async def retry_pending_verdicts(self) -> List[OperationResult[AggregateOutcome]]:
        """Re-run aggregation for finished debates whose pass never completed."""
        stale_before = utcnow() - timedelta(seconds=self.config.claim_timeout_seconds)
        results = []
        for debate in self.debates.list_debates_by_status(
            [DebateStatus.COMPLETED, DebateStatus.APPEALED]
        ):
            if debate.judging_claimed_at and debate.judging_claimed_at >= stale_before:
                continue
            verdict_pass = (
                VerdictPass.INITIAL
                if debate.status == DebateStatus.COMPLETED
                else VerdictPass.APPEAL
            )
            logger.info(f"Retrying {verdict_pass.value} verdicts for debate {debate.id}")
            results.append(await self.aggregate(debate.id, verdict_pass))
        return results

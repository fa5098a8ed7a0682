"""King-of-the-hill elimination: rank by cumulative score and cut the bottom."""

import logging
import math
from typing import List, Sequence

from ..config import TournamentConfig
from ..database import utcnow
from ..debates.database import DebateStore
from ..debates.models import Debate, DebateStatus, ParticipantStatus
from ..errors import ErrorKind, OperationResult
from ..notifications import NotificationDispatcher, NotificationType
from ..verdicts.database import VerdictStore
from ..verdicts.models import VerdictPass
from .database import TournamentStore
from .models import (
    CONTENDING_STATUSES,
    EliminationResult,
    MatchStatus,
    RoundStatus,
    TournamentParticipant,
    TournamentStatus,
)

logger = logging.getLogger(__name__)

_UNSEEDED = 10**9


def elimination_count(active_count: int, fraction: float) -> int:
    """Nominal number cut from ``active_count``: floor, at least one."""
    if active_count <= 1:
        return 0
    return max(1, math.floor(active_count * fraction))


def rank_participants(
    participants: Sequence[TournamentParticipant],
) -> List[TournamentParticipant]:
    """Best first: higher cumulative score, then better (lower) seed."""
    return sorted(
        participants,
        key=lambda p: (
            -p.cumulative_score,
            p.seed if p.seed is not None else _UNSEEDED,
        ),
    )


def select_eliminated(
    participants: Sequence[TournamentParticipant], fraction: float
) -> List[TournamentParticipant]:
    """Pick who drops this round.

    Everyone scoring at or below the cut score goes, so a tie at the cut line
    can eliminate more than the nominal count. If that would remove the whole
    field, the nominal count is cut by seed instead.
    """
    ranked = rank_participants(participants)
    count = elimination_count(len(ranked), fraction)
    if count == 0:
        return []

    cut_score = ranked[len(ranked) - count].cumulative_score
    eliminated = [p for p in ranked if p.cumulative_score <= cut_score]
    if len(eliminated) >= len(ranked):
        eliminated = ranked[len(ranked) - count :]
    return eliminated


def projected_rounds(
    active_count: int, fraction: float, head_to_head_final: bool = False
) -> int:
    """Rounds still needed to get from ``active_count`` to one champion."""
    rounds = 0
    while active_count > 1:
        if head_to_head_final and active_count == 2:
            return rounds + 1
        active_count -= elimination_count(active_count, fraction)
        rounds += 1
    return rounds


class EliminationEngine:
    """Runs the at-most-once elimination pass of a king-of-the-hill round."""

    def __init__(
        self,
        store: TournamentStore,
        debates: DebateStore,
        verdicts: VerdictStore,
        notifier: NotificationDispatcher,
        config: TournamentConfig,
    ):
        self.store = store
        self.debates = debates
        self.verdicts = verdicts
        self.notifier = notifier
        self.config = config

    def _round_debate(self, tournament_id: int, round_number: int) -> Debate | None:
        for match in self.store.get_matches(tournament_id, round_number):
            if match.debate_id:
                return self.debates.get_debate(match.debate_id)
        return None

    async def eliminate(
        self, tournament_id: int, round_number: int
    ) -> OperationResult[EliminationResult]:
        """Apply the round's scores and cut the bottom of the field.

        The round row moves IN_PROGRESS -> ELIMINATING -> COMPLETED inside one
        transaction; a second caller finds it claimed and gets
        ALREADY_PROCESSED.
        """
        tournament_round = self.store.get_round(tournament_id, round_number)
        if tournament_round is None:
            return OperationResult.failure(
                ErrorKind.NOT_FOUND, f"Round {round_number} not found"
            )
        if tournament_round.status != RoundStatus.IN_PROGRESS:
            return OperationResult.failure(
                ErrorKind.ALREADY_PROCESSED,
                f"Round {round_number} has already been eliminated",
            )

        debate = self._round_debate(tournament_id, round_number)
        if debate is None or debate.status != DebateStatus.VERDICT_READY:
            return OperationResult.failure(
                ErrorKind.ROUND_NOT_COMPLETE, f"Round {round_number} has no verdict yet"
            )

        totals: dict[str, float] = {}
        for verdict in self.verdicts.get_verdicts(debate.id, VerdictPass.INITIAL):
            for user_id, score in verdict.scores.items():
                totals[user_id] = totals.get(user_id, 0.0) + score

        with self.store.transaction() as conn:
            tournament = self.store.fetch_tournament(conn, tournament_id)
            if tournament is None or tournament.status != TournamentStatus.IN_PROGRESS:
                return OperationResult.failure(
                    ErrorKind.INVALID_STATUS, "Tournament is not in progress"
                )
            if not self.store.set_round_status(
                conn,
                tournament_id,
                round_number,
                RoundStatus.IN_PROGRESS,
                RoundStatus.ELIMINATING,
            ):
                logger.warning(
                    f"Elimination for round {round_number} of tournament "
                    f"{tournament_id} already claimed"
                )
                return OperationResult.failure(
                    ErrorKind.ALREADY_PROCESSED,
                    f"Round {round_number} has already been eliminated",
                )

            self.store.add_cumulative_scores(conn, tournament_id, totals)
            standings = [
                p
                for p in self.store.fetch_participants(conn, tournament_id)
                if p.status in CONTENDING_STATUSES
            ]
            ranked = rank_participants(standings)

            if not debate.is_group and debate.winner_id is not None:
                eliminated = [p for p in standings if p.user_id == debate.loser_id]
                reasons = {p.user_id: f"Lost the round {round_number} final" for p in eliminated}
            else:
                eliminated = select_eliminated(standings, self.config.elimination_fraction)
                reasons = {
                    p.user_id: (
                        f"Ranked {ranked.index(p) + 1} of {len(ranked)} with a "
                        f"cumulative score of {p.cumulative_score:g} in round {round_number}"
                    )
                    for p in eliminated
                }

            eliminated_ids = [p.user_id for p in eliminated]
            for user_id in eliminated_ids:
                self.store.eliminate_participant(
                    conn, tournament_id, user_id, round_number, reasons[user_id]
                )
                if debate.is_group:
                    self.debates.update_participant(
                        conn,
                        debate.id,
                        user_id,
                        status=ParticipantStatus.ELIMINATED,
                        elimination_round=round_number,
                    )

            remaining = [p.user_id for p in ranked if p.user_id not in eliminated_ids]
            champion_id = remaining[0] if len(remaining) == 1 else None
            # The round's match records the round leader
            for match in self.store.fetch_matches(conn, tournament_id, round_number):
                self.store.update_match(
                    conn,
                    match.id,
                    status=MatchStatus.COMPLETED,
                    winner_user_id=remaining[0] if remaining else None,
                )

            if champion_id is not None:
                self.store.update_tournament(
                    conn,
                    tournament_id,
                    status=TournamentStatus.COMPLETED,
                    winner_user_id=champion_id,
                    completed_at=utcnow(),
                    total_rounds=round_number,
                )
            else:
                self.store.update_tournament(
                    conn,
                    tournament_id,
                    total_rounds=round_number
                    + projected_rounds(
                        len(remaining),
                        self.config.elimination_fraction,
                        self.config.koth_head_to_head_final,
                    ),
                )
            self.store.set_round_status(
                conn,
                tournament_id,
                round_number,
                RoundStatus.ELIMINATING,
                RoundStatus.COMPLETED,
            )

        logger.info(
            f"Round {round_number} of tournament {tournament_id}: eliminated "
            f"{eliminated_ids}, {len(remaining)} remaining"
        )
        await self.notifier.notify_users(
            eliminated_ids,
            NotificationType.TOURNAMENT_ELIMINATED,
            "Eliminated",
            f"You were eliminated from {tournament.name} in round {round_number}.",
            tournament_id=tournament_id,
        )
        if champion_id is not None:
            logger.info(f"Tournament {tournament_id} won by {champion_id}")
            await self.notifier.notify_users(
                [champion_id],
                NotificationType.TOURNAMENT_WON,
                "Tournament Champion",
                f"You won {tournament.name}!",
                tournament_id=tournament_id,
            )
        return OperationResult.success(
            EliminationResult(
                round_number=round_number,
                active=remaining,
                eliminated=eliminated_ids,
                champion_id=champion_id,
            ),
            f"Round {round_number} eliminated",
        )

"""Round generation for bracket and king-of-the-hill tournaments."""

import logging
import math
import sqlite3
from typing import List, Mapping, Sequence

from ..config import TournamentConfig
from ..database import utcnow
from ..debates.database import DebateStore
from ..debates.manager import DebateManager
from ..debates.models import (
    ChallengeType,
    Debate,
    DebateKind,
    DebateParticipant,
    ParticipantStatus,
    Position,
)
from ..errors import ErrorKind, OperationResult
from ..notifications import NotificationDispatcher, NotificationType
from .database import TournamentStore
from .models import (
    CONTENDING_STATUSES,
    MatchStatus,
    RoundStatus,
    Tournament,
    TournamentFormat,
    TournamentMatch,
    TournamentParticipant,
    TournamentStatus,
)

logger = logging.getLogger(__name__)

Pairing = tuple[str, str | None]


def bracket_total_rounds(participant_count: int) -> int:
    """Rounds of single elimination needed for ``participant_count`` entrants."""
    if participant_count < 2:
        return 0
    return math.ceil(math.log2(participant_count))


def pair_first_round(seeded_user_ids: Sequence[str]) -> List[Pairing]:
    """Pair seed 1 with seed N, 2 with N-1 and so on.

    ``seeded_user_ids`` is ordered best seed first. With an odd count the best
    seed gets the bye, paired with ``None``.
    """
    entrants = list(seeded_user_ids)
    pairs: List[Pairing] = []
    if len(entrants) % 2:
        pairs.append((entrants.pop(0), None))
    while entrants:
        pairs.append((entrants.pop(0), entrants.pop()))
    return pairs


def pair_winners(winner_ids: Sequence[str], seeds: Mapping[str, int]) -> List[Pairing]:
    """Pair previous-round winners in match order; odd counts bye the best seed."""
    entrants = list(winner_ids)
    pairs: List[Pairing] = []
    if len(entrants) % 2:
        best = min(entrants, key=lambda user_id: seeds.get(user_id, math.inf))
        entrants.remove(best)
        pairs.append((best, None))
    pairs.extend(zip(entrants[0::2], entrants[1::2]))
    return pairs


class MatchGenerator:
    """Creates the matches and debates of a tournament round.

    Each round is generated by a single writer: the round row is inserted
    first and its UNIQUE (tournament_id, round_number) constraint turns any
    concurrent attempt into an ALREADY_PROCESSED failure.
    """

    def __init__(
        self,
        store: TournamentStore,
        debates: DebateStore,
        debate_manager: DebateManager,
        notifier: NotificationDispatcher,
        config: TournamentConfig,
    ):
        self.store = store
        self.debates = debates
        self.debate_manager = debate_manager
        self.notifier = notifier
        self.config = config

    async def generate_next_round(
        self, tournament_id: int, round_number: int
    ) -> OperationResult[List[Debate]]:
        with self.store.transaction() as conn:
            tournament = self.store.fetch_tournament(conn, tournament_id)
            rejection = self._check_can_generate(conn, tournament, round_number)
            if rejection is not None:
                return rejection

            contenders = [
                p
                for p in self.store.fetch_participants(conn, tournament_id)
                if p.status in CONTENDING_STATUSES
            ]
            if len(contenders) < 2:
                return OperationResult.failure(
                    ErrorKind.NOT_ENOUGH_PARTICIPANTS,
                    f"Round {round_number} needs at least 2 remaining participants",
                )

            try:
                self.store.insert_round(conn, tournament_id, round_number)
            except sqlite3.IntegrityError:
                logger.warning(
                    f"Round {round_number} of tournament {tournament_id} already generated"
                )
                return OperationResult.failure(
                    ErrorKind.ALREADY_PROCESSED,
                    f"Round {round_number} has already been generated",
                )

            if tournament.format == TournamentFormat.BRACKET:
                debates = self._generate_bracket_round(conn, tournament, round_number, contenders)
            else:
                debates = self._generate_koth_round(conn, tournament, round_number, contenders)
            self.store.update_tournament(conn, tournament_id, current_round=round_number)

        logger.info(
            f"Generated round {round_number} of tournament {tournament_id} "
            f"with {len(debates)} debate(s)"
        )
        await self.notifier.notify_users(
            [p.user_id for p in contenders],
            NotificationType.TOURNAMENT_ROUND,
            f"Tournament Round {round_number}",
            f"Round {round_number} of {tournament.name} has started.",
            tournament_id=tournament_id,
        )
        return OperationResult.success(debates, f"Round {round_number} generated")

    def _check_can_generate(
        self, conn: sqlite3.Connection, tournament: Tournament | None, round_number: int
    ) -> OperationResult | None:
        if tournament is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "Tournament not found")
        if tournament.status != TournamentStatus.IN_PROGRESS:
            return OperationResult.failure(
                ErrorKind.INVALID_STATUS,
                f"Tournament is {tournament.status.value}, not IN_PROGRESS",
            )
        if round_number > 1:
            previous = self.store.fetch_round(conn, tournament.id, round_number - 1)
            if previous is None or previous.status != RoundStatus.COMPLETED:
                return OperationResult.failure(
                    ErrorKind.ROUND_NOT_COMPLETE,
                    f"Round {round_number - 1} is not complete",
                )
        return None

    def _generate_bracket_round(
        self,
        conn: sqlite3.Connection,
        tournament: Tournament,
        round_number: int,
        contenders: List[TournamentParticipant],
    ) -> List[Debate]:
        seeds = {p.user_id: p.seed for p in contenders if p.seed is not None}
        if round_number == 1:
            pairs = pair_first_round([p.user_id for p in contenders])
        else:
            contending = {p.user_id for p in contenders}
            winners = [
                m.winner_user_id
                for m in self.store.fetch_matches(conn, tournament.id, round_number - 1)
                if m.winner_user_id in contending
            ]
            pairs = pair_winners(winners, seeds)

        debates = []
        for match_number, (first, second) in enumerate(pairs, start=1):
            if second is None:
                self.store.insert_match(
                    conn,
                    TournamentMatch(
                        tournament_id=tournament.id,
                        round_number=round_number,
                        match_number=match_number,
                        participant1_user_id=first,
                        winner_user_id=first,
                        status=MatchStatus.BYE,
                    ),
                )
                logger.info(f"Bye for {first} in round {round_number}")
                continue
            debates.append(
                self._create_match_debate(
                    conn,
                    tournament,
                    round_number,
                    match_number,
                    first,
                    second,
                    tournament.match_rounds,
                )
            )
        return debates

    def _generate_koth_round(
        self,
        conn: sqlite3.Connection,
        tournament: Tournament,
        round_number: int,
        contenders: List[TournamentParticipant],
    ) -> List[Debate]:
        if self.config.koth_head_to_head_final and len(contenders) == 2:
            first, second = contenders
            return [
                self._create_match_debate(
                    conn,
                    tournament,
                    round_number,
                    1,
                    first.user_id,
                    second.user_id,
                    self.config.final_rounds,
                )
            ]

        leader = contenders[0].user_id
        match_id = self.store.insert_match(
            conn,
            TournamentMatch(
                tournament_id=tournament.id,
                round_number=round_number,
                match_number=1,
                participant1_user_id=leader,
                status=MatchStatus.PENDING,
            ),
        )
        # Statements of a KOTH round are all tagged round 1 of its debate
        debate = self.debate_manager.build_debate(
            topic=tournament.topic,
            challenger_id=leader,
            opponent_id=None,
            kind=DebateKind.GROUP,
            challenge_type=ChallengeType.TOURNAMENT,
            total_rounds=1,
            round_duration_hours=tournament.round_duration_hours,
            category=tournament.category,
            tournament_match_id=match_id,
        )
        self.debates.insert_debate(conn, debate)
        now = utcnow()
        for index, participant in enumerate(contenders):
            self.debates.insert_participant(
                conn,
                DebateParticipant(
                    debate_id=debate.id,
                    user_id=participant.user_id,
                    position=Position.FOR if index % 2 == 0 else Position.AGAINST,
                    status=ParticipantStatus.ACTIVE,
                    joined_at=now,
                ),
            )
        self.store.update_match(
            conn, match_id, debate_id=debate.id, status=MatchStatus.IN_PROGRESS
        )
        return [debate]

    def _create_match_debate(
        self,
        conn: sqlite3.Connection,
        tournament: Tournament,
        round_number: int,
        match_number: int,
        first: str,
        second: str,
        total_rounds: int,
    ) -> Debate:
        match_id = self.store.insert_match(
            conn,
            TournamentMatch(
                tournament_id=tournament.id,
                round_number=round_number,
                match_number=match_number,
                participant1_user_id=first,
                participant2_user_id=second,
                status=MatchStatus.PENDING,
            ),
        )
        debate = self.debate_manager.build_debate(
            topic=tournament.topic,
            challenger_id=first,
            opponent_id=second,
            kind=DebateKind.TWO_PARTY,
            challenge_type=ChallengeType.TOURNAMENT,
            total_rounds=total_rounds,
            round_duration_hours=tournament.round_duration_hours,
            category=tournament.category,
            tournament_match_id=match_id,
        )
        self.debates.insert_debate(conn, debate)
        self.store.update_match(
            conn, match_id, debate_id=debate.id, status=MatchStatus.IN_PROGRESS
        )
        return debate

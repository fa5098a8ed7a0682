"""Tournament management: registration, seeding and round progression."""

import logging
import sqlite3
from typing import List

from ..config import TournamentConfig
from ..database import utcnow
from ..debates.manager import CANCELLABLE_STATUSES, DebateManager
from ..debates.models import Debate
from ..errors import ErrorKind, OperationResult
from ..notifications import NotificationDispatcher, NotificationType
from ..ratings import RatingService
from .database import TournamentStore
from .elimination import EliminationEngine, projected_rounds
from .match_generation import MatchGenerator, bracket_total_rounds
from .models import (
    CONTENDING_STATUSES,
    BracketData,
    MatchStatus,
    RoundAdvance,
    RoundStatus,
    Tournament,
    TournamentCreateRequest,
    TournamentFormat,
    TournamentParticipant,
    TournamentParticipantStatus,
    TournamentStatus,
)

logger = logging.getLogger(__name__)

_STARTABLE_STATUSES = (TournamentStatus.UPCOMING, TournamentStatus.REGISTRATION_OPEN)
_FINISHED_STATUSES = (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED)
_SETTLED_MATCH_STATUSES = (MatchStatus.COMPLETED, MatchStatus.BYE)


class TournamentManager:
    """Manages tournament creation, progression, and bracket generation."""

    def __init__(
        self,
        store: TournamentStore,
        generator: MatchGenerator,
        elimination: EliminationEngine,
        debate_manager: DebateManager,
        rating_service: RatingService,
        notifier: NotificationDispatcher,
        config: TournamentConfig,
    ):
        self.store = store
        self.generator = generator
        self.elimination = elimination
        self.debate_manager = debate_manager
        self.rating_service = rating_service
        self.notifier = notifier
        self.config = config

    def _not_found(self) -> OperationResult:
        return OperationResult.failure(ErrorKind.NOT_FOUND, "Tournament not found")

    async def create_tournament(
        self, request: TournamentCreateRequest
    ) -> OperationResult[Tournament]:
        logger.info(f"Creating tournament: {request.name} ({request.format.value})")
        tournament = Tournament(
            name=request.name,
            topic=request.topic,
            format=request.format,
            status=(
                TournamentStatus.REGISTRATION_OPEN
                if request.open_registration
                else TournamentStatus.UPCOMING
            ),
            max_participants=request.max_participants,
            match_rounds=request.match_rounds or self.config.match_rounds,
            round_duration_hours=(
                request.round_duration_hours or self.config.round_duration_hours
            ),
            category=request.category or self.config.category,
            created_at=utcnow(),
        )
        tournament_id = self.store.create_tournament(tournament)
        return OperationResult.success(
            self.store.get_tournament(tournament_id),
            f"Tournament '{request.name}' created",
        )

    async def open_registration(self, tournament_id: int) -> OperationResult[Tournament]:
        with self.store.transaction() as conn:
            if self.store.fetch_tournament(conn, tournament_id) is None:
                return self._not_found()
            opened = self.store.update_tournament(
                conn,
                tournament_id,
                {"status": TournamentStatus.UPCOMING},
                status=TournamentStatus.REGISTRATION_OPEN,
            )
            tournament = self.store.fetch_tournament(conn, tournament_id)
        if not opened:
            return OperationResult.failure(
                ErrorKind.INVALID_STATUS,
                f"Registration cannot open for a {tournament.status.value} tournament",
            )
        logger.info(f"Opened registration for tournament {tournament_id}")
        return OperationResult.success(tournament, "Registration opened")

    async def register_participant(
        self, tournament_id: int, user_id: str
    ) -> OperationResult[TournamentParticipant]:
        with self.store.transaction() as conn:
            tournament = self.store.fetch_tournament(conn, tournament_id)
            if tournament is None:
                return self._not_found()
            if tournament.status != TournamentStatus.REGISTRATION_OPEN:
                return OperationResult.failure(
                    ErrorKind.INVALID_STATUS, "Registration is not open for this tournament"
                )
            participants = self.store.fetch_participants(conn, tournament_id)
            if any(p.user_id == user_id for p in participants):
                return OperationResult.failure(
                    ErrorKind.ALREADY_REGISTERED, "You are already registered"
                )
            if len(participants) >= tournament.max_participants:
                return OperationResult.failure(
                    ErrorKind.TOURNAMENT_FULL,
                    f"Tournament is full ({tournament.max_participants} participants)",
                )
            try:
                self.store.insert_participant(
                    conn,
                    TournamentParticipant(
                        tournament_id=tournament_id,
                        user_id=user_id,
                        status=TournamentParticipantStatus.REGISTERED,
                        registered_at=utcnow(),
                    ),
                )
            except sqlite3.IntegrityError:
                return OperationResult.failure(
                    ErrorKind.ALREADY_REGISTERED, "You are already registered"
                )
            participant = next(
                p
                for p in self.store.fetch_participants(conn, tournament_id)
                if p.user_id == user_id
            )

        logger.info(f"Registered {user_id} for tournament {tournament_id}")
        return OperationResult.success(participant, "Registered")

    async def start_tournament(self, tournament_id: int) -> OperationResult[RoundAdvance]:
        """Seed by rating, compute the round count and generate round 1."""
        with self.store.transaction() as conn:
            tournament = self.store.fetch_tournament(conn, tournament_id)
            if tournament is None:
                return self._not_found()
            if tournament.status not in _STARTABLE_STATUSES:
                return OperationResult.failure(
                    ErrorKind.INVALID_STATUS,
                    f"A {tournament.status.value} tournament cannot be started",
                )
            participants = self.store.fetch_participants(conn, tournament_id)
            if len(participants) < 2:
                return OperationResult.failure(
                    ErrorKind.NOT_ENOUGH_PARTICIPANTS,
                    "A tournament needs at least 2 participants",
                )

            # Registration order (participants arrive ordered by id) breaks rating ties
            seeded = sorted(
                participants,
                key=lambda p: -self.rating_service.get_rating(p.user_id),
            )
            for seed, participant in enumerate(seeded, start=1):
                self.store.update_participant(
                    conn,
                    tournament_id,
                    participant.user_id,
                    seed=seed,
                    status=TournamentParticipantStatus.ACTIVE,
                )

            if tournament.format == TournamentFormat.BRACKET:
                total_rounds = bracket_total_rounds(len(seeded))
            else:
                total_rounds = projected_rounds(
                    len(seeded),
                    self.config.elimination_fraction,
                    self.config.koth_head_to_head_final,
                )
            self.store.update_tournament(
                conn,
                tournament_id,
                {"status": tournament.status},
                status=TournamentStatus.IN_PROGRESS,
                started_at=utcnow(),
                total_rounds=total_rounds,
            )

        logger.info(
            f"Started tournament {tournament_id} with {len(seeded)} participants, "
            f"{total_rounds} rounds"
        )
        await self.notifier.notify_users(
            [p.user_id for p in seeded],
            NotificationType.TOURNAMENT_STARTED,
            "Tournament Started",
            f"{tournament.name} has started with {len(seeded)} participants.",
            tournament_id=tournament_id,
        )
        generated = await self.generator.generate_next_round(tournament_id, 1)
        if not generated:
            return generated
        return OperationResult.success(
            RoundAdvance(tournament_id=tournament_id, round_number=1, debates=generated.value),
            "Tournament started",
        )

    async def record_match_result(
        self, match_id: int, debate: Debate, winner_id: str | None
    ) -> OperationResult[RoundAdvance]:
        """Record a bracket match result, eliminate the loser and advance.

        A tied match goes to the better seed.
        """
        match = self.store.get_match(match_id)
        if match is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "Match not found")
        pair = (match.participant1_user_id, match.participant2_user_id)

        with self.store.transaction() as conn:
            if winner_id is None:
                seeds = {
                    p.user_id: p.seed
                    for p in self.store.fetch_participants(conn, match.tournament_id)
                }
                winner_id = min(pair, key=lambda user_id: seeds.get(user_id) or 10**9)
                logger.info(f"Tied match {match_id} goes to better seed {winner_id}")
            loser_id = pair[1] if winner_id == pair[0] else pair[0]

            recorded = self.store.update_match(
                conn,
                match_id,
                {"status": MatchStatus.IN_PROGRESS},
                status=MatchStatus.COMPLETED,
                winner_user_id=winner_id,
            )
            if recorded:
                self.store.eliminate_participant(
                    conn,
                    match.tournament_id,
                    loser_id,
                    match.round_number,
                    f"Lost round {match.round_number} match to {winner_id}",
                )
        if not recorded:
            logger.warning(f"Result for match {match_id} already recorded")
            return OperationResult.failure(
                ErrorKind.ALREADY_PROCESSED, "Match result already recorded"
            )

        logger.info(f"Match {match_id} (debate {debate.id}): {winner_id} beats {loser_id}")
        tournament = self.store.get_tournament(match.tournament_id)
        await self.notifier.notify_users(
            [loser_id],
            NotificationType.TOURNAMENT_ELIMINATED,
            "Eliminated",
            f"You were eliminated from {tournament.name} in round {match.round_number}.",
            tournament_id=match.tournament_id,
        )
        return await self.advance_tournament_round(match.tournament_id)

    async def advance_tournament_round(
        self, tournament_id: int
    ) -> OperationResult[RoundAdvance]:
        """Close the current round and start the next one or crown the champion."""
        tournament = self.store.get_tournament(tournament_id)
        if tournament is None:
            return self._not_found()
        if tournament.status != TournamentStatus.IN_PROGRESS:
            return OperationResult.failure(
                ErrorKind.INVALID_STATUS,
                f"Tournament is {tournament.status.value}, not IN_PROGRESS",
            )
        round_number = tournament.current_round

        eliminated: List[str] = []
        if tournament.format == TournamentFormat.BRACKET:
            closed = await self._close_bracket_round(tournament, round_number)
        else:
            closed = await self.elimination.eliminate(tournament_id, round_number)
            if closed:
                eliminated = closed.value.eliminated
        if not closed and closed.error != ErrorKind.ALREADY_PROCESSED:
            return closed

        tournament = self.store.get_tournament(tournament_id)
        if tournament.status == TournamentStatus.COMPLETED:
            return OperationResult.success(
                RoundAdvance(
                    tournament_id=tournament_id,
                    round_number=round_number,
                    eliminated=eliminated,
                    champion_id=tournament.winner_user_id,
                    completed=True,
                ),
                "Tournament completed",
                already_processed=not closed,
            )

        generated = await self.generator.generate_next_round(tournament_id, round_number + 1)
        if generated:
            return OperationResult.success(
                RoundAdvance(
                    tournament_id=tournament_id,
                    round_number=round_number + 1,
                    debates=generated.value,
                    eliminated=eliminated,
                ),
                f"Advanced to round {round_number + 1}",
            )
        contended = (ErrorKind.ALREADY_PROCESSED, ErrorKind.ROUND_NOT_COMPLETE)
        if not closed and generated.error in contended:
            # Another writer owns this round transition
            return OperationResult.failure(
                ErrorKind.ALREADY_PROCESSED,
                f"Round {round_number} is already being advanced",
            )
        return generated

    async def _close_bracket_round(
        self, tournament: Tournament, round_number: int
    ) -> OperationResult:
        matches = self.store.get_matches(tournament.id, round_number)
        if not matches or any(m.status not in _SETTLED_MATCH_STATUSES for m in matches):
            return OperationResult.failure(
                ErrorKind.ROUND_NOT_COMPLETE, f"Round {round_number} still has open matches"
            )

        winners = [m.winner_user_id for m in matches]
        champion_id = winners[0] if len(winners) == 1 else None
        with self.store.transaction() as conn:
            if not self.store.set_round_status(
                conn,
                tournament.id,
                round_number,
                RoundStatus.IN_PROGRESS,
                RoundStatus.COMPLETED,
            ):
                return OperationResult.failure(
                    ErrorKind.ALREADY_PROCESSED, f"Round {round_number} already closed"
                )
            if champion_id is not None:
                self.store.update_tournament(
                    conn,
                    tournament.id,
                    status=TournamentStatus.COMPLETED,
                    winner_user_id=champion_id,
                    completed_at=utcnow(),
                )

        logger.info(f"Closed round {round_number} of tournament {tournament.id}")
        if champion_id is not None:
            logger.info(f"Tournament {tournament.id} won by {champion_id}")
            await self.notifier.notify_users(
                [champion_id],
                NotificationType.TOURNAMENT_WON,
                "Tournament Champion",
                f"You won {tournament.name}!",
                tournament_id=tournament.id,
            )
        return OperationResult.success(winners)

    async def cancel_tournament(self, tournament_id: int) -> OperationResult[Tournament]:
        """Cancel the tournament and every debate it still has in flight."""
        with self.store.transaction() as conn:
            tournament = self.store.fetch_tournament(conn, tournament_id)
            if tournament is None:
                return self._not_found()
            if tournament.status in _FINISHED_STATUSES:
                return OperationResult.failure(
                    ErrorKind.INVALID_STATUS,
                    f"A {tournament.status.value} tournament cannot be cancelled",
                )
            self.store.update_tournament(
                conn,
                tournament_id,
                {"status": tournament.status},
                status=TournamentStatus.CANCELLED,
                completed_at=utcnow(),
            )
            tournament = self.store.fetch_tournament(conn, tournament_id)
            open_debate_ids = [
                m.debate_id
                for m in self.store.fetch_matches(conn, tournament_id)
                if m.debate_id and m.status == MatchStatus.IN_PROGRESS
            ]

        for debate_id in open_debate_ids:
            debate = self.debate_manager.store.get_debate(debate_id)
            if debate is not None and debate.status in CANCELLABLE_STATUSES:
                await self.debate_manager.cancel_debate(debate_id)

        logger.info(
            f"Cancelled tournament {tournament_id} and {len(open_debate_ids)} open debate(s)"
        )
        return OperationResult.success(tournament, "Tournament cancelled")

    def get_tournament(self, tournament_id: int) -> OperationResult[Tournament]:
        tournament = self.store.get_tournament(tournament_id)
        if tournament is None:
            return self._not_found()
        return OperationResult.success(tournament)

    def get_bracket_view(self, tournament_id: int) -> OperationResult[BracketData]:
        """Get bracket visualization data."""
        bracket = self.store.get_bracket_data(tournament_id)
        if bracket is None:
            return self._not_found()
        return OperationResult.success(bracket)

    def remaining_participants(self, tournament_id: int) -> List[TournamentParticipant]:
        return [
            p
            for p in self.store.get_participants(tournament_id)
            if p.status in CONTENDING_STATUSES
        ]

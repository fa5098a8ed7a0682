"""Tournament integration with the verdict pipeline."""

import logging

from ..debates.models import ChallengeType, Debate
from ..verdicts import AggregateOutcome, VerdictAggregator, VerdictPass
from .manager import TournamentManager
from .models import TournamentFormat, TournamentStatus

logger = logging.getLogger(__name__)


class TournamentVerdictCallback:
    """Handles tournament-specific verdict callbacks."""

    def __init__(self, tournament_manager: TournamentManager):
        self.tournament_manager = tournament_manager

    async def on_verdict(self, debate: Debate, outcome: AggregateOutcome) -> None:
        """Feed an initial verdict on a tournament debate back into its tournament."""
        if (
            debate.challenge_type != ChallengeType.TOURNAMENT
            or debate.tournament_match_id is None
            or outcome.verdict_pass != VerdictPass.INITIAL
        ):
            return

        store = self.tournament_manager.store
        match = store.get_match(debate.tournament_match_id)
        if match is None:
            logger.error(
                f"Debate {debate.id} points at missing tournament match "
                f"{debate.tournament_match_id}"
            )
            return
        tournament = store.get_tournament(match.tournament_id)
        if tournament is None or tournament.status != TournamentStatus.IN_PROGRESS:
            logger.info(
                f"Ignoring verdict for debate {debate.id}: tournament "
                f"{match.tournament_id} is not in progress"
            )
            return

        if tournament.format == TournamentFormat.BRACKET:
            result = await self.tournament_manager.record_match_result(
                match.id, debate, outcome.winner_id
            )
        else:
            result = await self.tournament_manager.advance_tournament_round(tournament.id)

        if result:
            logger.info(f"Tournament {tournament.id} updated after debate {debate.id}")
        else:
            logger.info(
                f"Tournament {tournament.id} not advanced after debate {debate.id}: "
                f"{result.message}"
            )


def register_tournament_callbacks(
    aggregator: VerdictAggregator, tournament_manager: TournamentManager
) -> TournamentVerdictCallback:
    """Register the tournament callback on the verdict aggregator."""
    callback = TournamentVerdictCallback(tournament_manager)
    aggregator.add_verdict_listener(callback.on_verdict)
    logger.info("Registered tournament verdict callback")
    return callback

"""Bracket and king-of-the-hill tournaments."""

from .database import TournamentStore
from .debate_integration import TournamentVerdictCallback, register_tournament_callbacks
from .elimination import (
    EliminationEngine,
    elimination_count,
    projected_rounds,
    select_eliminated,
)
from .manager import TournamentManager
from .match_generation import (
    MatchGenerator,
    bracket_total_rounds,
    pair_first_round,
    pair_winners,
)
from .models import (
    BracketData,
    EliminationResult,
    MatchStatus,
    RoundAdvance,
    RoundStatus,
    Tournament,
    TournamentCreateRequest,
    TournamentFormat,
    TournamentMatch,
    TournamentParticipant,
    TournamentParticipantStatus,
    TournamentRound,
    TournamentStatus,
)

__all__ = [
    "BracketData",
    "EliminationEngine",
    "EliminationResult",
    "MatchGenerator",
    "MatchStatus",
    "RoundAdvance",
    "RoundStatus",
    "Tournament",
    "TournamentCreateRequest",
    "TournamentFormat",
    "TournamentManager",
    "TournamentMatch",
    "TournamentParticipant",
    "TournamentParticipantStatus",
    "TournamentRound",
    "TournamentStatus",
    "TournamentStore",
    "TournamentVerdictCallback",
    "bracket_total_rounds",
    "elimination_count",
    "pair_first_round",
    "pair_winners",
    "projected_rounds",
    "register_tournament_callbacks",
    "select_eliminated",
]

"""Tournament system data models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from ..debates.models import Debate


class TournamentFormat(Enum):
    """How participants advance between rounds."""

    BRACKET = "BRACKET"  # single elimination, pairwise matches
    KING_OF_THE_HILL = "KING_OF_THE_HILL"  # everyone in one group debate, bottom quartile cut


class TournamentStatus(Enum):
    """Tournament execution status."""

    UPCOMING = "UPCOMING"
    REGISTRATION_OPEN = "REGISTRATION_OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TournamentParticipantStatus(Enum):
    REGISTERED = "REGISTERED"
    ACTIVE = "ACTIVE"
    ELIMINATED = "ELIMINATED"


# Participants still in contention
CONTENDING_STATUSES = frozenset(
    {TournamentParticipantStatus.REGISTERED, TournamentParticipantStatus.ACTIVE}
)


class RoundStatus(Enum):
    IN_PROGRESS = "IN_PROGRESS"
    ELIMINATING = "ELIMINATING"
    COMPLETED = "COMPLETED"


class MatchStatus(Enum):
    """Individual match status."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    BYE = "BYE"


class TournamentCreateRequest(BaseModel):
    """Request to create a new tournament."""

    name: str = Field(..., description="Tournament name")
    topic: str = Field(..., description="Topic argued in every tournament debate")
    format: TournamentFormat = Field(default=TournamentFormat.BRACKET)
    max_participants: int = Field(default=16, description="Registration cap")
    match_rounds: int | None = Field(
        default=None, description="Argument rounds per bracket match"
    )
    round_duration_hours: float | None = Field(default=None)
    category: str | None = Field(default=None, description="Category of tournament debates")
    open_registration: bool = Field(
        default=True, description="Open registration immediately instead of UPCOMING"
    )

    @field_validator("max_participants")
    @classmethod
    def validate_max_participants(cls, v):
        if not 2 <= v <= 128:
            raise ValueError("max_participants must be between 2 and 128")
        return v


class Tournament(BaseModel):
    """Complete tournament information."""

    id: int | None = None
    name: str
    topic: str
    format: TournamentFormat
    status: TournamentStatus
    max_participants: int
    current_round: int = 0
    total_rounds: int = 0  # recomputed after every KOTH elimination
    match_rounds: int
    round_duration_hours: float
    category: str = "OTHER"
    winner_user_id: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class TournamentParticipant(BaseModel):
    """Tournament participant."""

    id: int | None = None
    tournament_id: int
    user_id: str
    seed: int | None = None  # assigned when the tournament starts
    status: TournamentParticipantStatus
    cumulative_score: float = 0.0
    elimination_round: int | None = None  # set once, when eliminated
    elimination_reason: str | None = None
    registered_at: datetime | None = None


class TournamentRound(BaseModel):
    id: int | None = None
    tournament_id: int
    round_number: int
    status: RoundStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None


class TournamentMatch(BaseModel):
    """One pairing (or KOTH group debate) in a round."""

    id: int | None = None
    tournament_id: int
    round_number: int
    match_number: int
    participant1_user_id: str
    participant2_user_id: str | None = None  # NULL for byes and group debates
    debate_id: str | None = None
    winner_user_id: str | None = None
    status: MatchStatus


class BracketData(BaseModel):
    """Tournament bracket visualization data."""

    tournament: Tournament
    participants: list[TournamentParticipant]
    rounds: list[TournamentRound]
    matches: list[TournamentMatch]


class EliminationResult(BaseModel):
    round_number: int
    active: list[str]
    eliminated: list[str]
    champion_id: str | None = None


class RoundAdvance(BaseModel):
    """What advancing a tournament did."""

    tournament_id: int
    round_number: int
    debates: list[Debate] = Field(default_factory=list)
    eliminated: list[str] = Field(default_factory=list)
    champion_id: str | None = None
    completed: bool = False

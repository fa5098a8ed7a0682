"""Debate data models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class DebateStatus(Enum):
    """Debate lifecycle status."""

    WAITING = "WAITING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    VERDICT_READY = "VERDICT_READY"
    APPEALED = "APPEALED"
    CANCELLED = "CANCELLED"


class ChallengeType(Enum):
    """How the debate was created."""

    ONE_ON_ONE = "ONE_ON_ONE"  # open challenge, anyone may accept
    DIRECT = "DIRECT"  # only invited users may accept
    GROUP = "GROUP"
    TOURNAMENT = "TOURNAMENT"


class DebateKind(Enum):
    """Shape of a debate: two fixed sides or a parallel-turn group."""

    TWO_PARTY = "TWO_PARTY"
    GROUP = "GROUP"


class Position(Enum):
    """Side argued by a participant."""

    FOR = "FOR"
    AGAINST = "AGAINST"

    @property
    def opposite(self) -> "Position":
        return Position.AGAINST if self is Position.FOR else Position.FOR


class ParticipantStatus(Enum):
    """Status of a participant in a group debate."""

    INVITED = "INVITED"
    ACCEPTED = "ACCEPTED"
    ACTIVE = "ACTIVE"
    ELIMINATED = "ELIMINATED"
    DECLINED = "DECLINED"


# Participants who may still argue in a group debate.
ELIGIBLE_PARTICIPANT_STATUSES = frozenset(
    {ParticipantStatus.ACTIVE, ParticipantStatus.ACCEPTED}
)


class RematchStatus(Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class AppealStatus(Enum):
    PENDING = "PENDING"
    UPHELD = "UPHELD"  # appeal pass confirmed the original result
    OVERTURNED = "OVERTURNED"


class Debate(BaseModel):
    """A debate and all of its lifecycle state."""

    id: str
    topic: str
    description: str | None = None
    category: str = "OTHER"
    status: DebateStatus
    challenge_type: ChallengeType
    kind: DebateKind
    current_round: int = 1
    total_rounds: int
    round_duration_hours: float
    round_deadline: datetime | None = None
    challenger_id: str
    opponent_id: str | None = None
    challenger_position: Position = Position.FOR
    opponent_position: Position = Position.AGAINST
    invited_user_ids: list[str] = Field(default_factory=list)
    winner_id: str | None = None
    verdict_date: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    rematch_requested_by: str | None = None
    rematch_requested_at: datetime | None = None
    rematch_status: RematchStatus | None = None
    rematch_debate_id: str | None = None
    original_debate_id: str | None = None

    appeal_status: AppealStatus | None = None
    appeal_count: int = 0
    appealed_by: str | None = None
    appealed_at: datetime | None = None
    appeal_reason: str | None = None
    appealed_verdict_ids: list[int] = Field(default_factory=list)
    original_winner_id: str | None = None
    appeal_resolution: str | None = None

    challenger_rating_change: int | None = None
    opponent_rating_change: int | None = None
    belt_at_stake: bool = False
    tournament_match_id: int | None = None
    judging_claimed_at: datetime | None = None
    version: int = 0
    created_at: datetime

    @property
    def is_group(self) -> bool:
        return self.kind == DebateKind.GROUP

    @property
    def loser_id(self) -> str | None:
        """The other side of a decided two-party debate."""
        if self.winner_id is None or self.is_group:
            return None
        if self.winner_id == self.challenger_id:
            return self.opponent_id
        return self.challenger_id

    def is_side(self, user_id: str) -> bool:
        """True if user is the challenger or the opponent."""
        return user_id in (self.challenger_id, self.opponent_id)

    def position_of(self, user_id: str) -> Position | None:
        if user_id == self.challenger_id:
            return self.challenger_position
        if user_id == self.opponent_id:
            return self.opponent_position
        return None


class DebateParticipant(BaseModel):
    """Membership of a user in a group debate."""

    id: int | None = None
    debate_id: str
    user_id: str
    position: Position = Position.FOR
    status: ParticipantStatus
    elimination_round: int | None = None
    cumulative_score: float = 0.0
    joined_at: datetime | None = None


class Statement(BaseModel):
    """One participant's argument for one round."""

    id: str
    debate_id: str
    author_id: str
    round: int
    content: str
    created_at: datetime


class CreateChallengeRequest(BaseModel):
    """Request to open a new debate challenge."""

    challenger_id: str = Field(..., description="User creating the challenge")
    topic: str = Field(..., description="Debate topic")
    description: str | None = Field(default=None, description="Optional framing")
    category: str = Field(default="OTHER", description="Debate category")
    challenge_type: ChallengeType = Field(default=ChallengeType.ONE_ON_ONE)
    challenger_position: Position = Field(default=Position.FOR)
    total_rounds: int | None = Field(
        default=None, description="Argument rounds (config default when omitted)"
    )
    round_duration_hours: float | None = Field(default=None)
    invited_user_ids: list[str] = Field(
        default_factory=list, description="Invitees for DIRECT and GROUP challenges"
    )
    belt_at_stake: bool = Field(default=False)

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v):
        if not v.strip():
            raise ValueError("Topic must not be empty")
        return v.strip()

    @field_validator("total_rounds")
    @classmethod
    def validate_total_rounds(cls, v):
        if v is not None and v < 1:
            raise ValueError("total_rounds must be positive")
        return v


class DebateView(BaseModel):
    """A debate with its participants and statements."""

    debate: Debate
    participants: list[DebateParticipant]
    statements: list[Statement]

"""Round completion detection."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Sequence

from .kinds import rules_for
from .models import Debate, DebateParticipant, Statement


class RoundOutcome(Enum):
    PENDING = "pending"  # still waiting on at least one eligible participant
    ADVANCED = "advanced"
    COMPLETED = "completed"  # final round done, verdict phase begins


@dataclass(frozen=True)
class RoundProgress:
    outcome: RoundOutcome
    current_round: int
    round_deadline: datetime | None = None


def detect_round_completion(
    debate: Debate,
    participants: Sequence[DebateParticipant],
    statements: Sequence[Statement],
    now: datetime,
) -> RoundProgress:
    """Work out what the debate's current round state implies.

    A round with missing submissions is never complete; deadlines play no
    part here.
    """
    round_statements = [s for s in statements if s.round == debate.current_round]
    if not rules_for(debate).is_round_complete(debate, participants, round_statements):
        return RoundProgress(RoundOutcome.PENDING, debate.current_round, debate.round_deadline)

    if debate.current_round < debate.total_rounds:
        return RoundProgress(
            RoundOutcome.ADVANCED,
            debate.current_round + 1,
            now + timedelta(hours=debate.round_duration_hours),
        )

    return RoundProgress(RoundOutcome.COMPLETED, debate.current_round, None)

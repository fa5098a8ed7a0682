"""Turn legality: may this user submit a statement right now?"""

from dataclasses import dataclass
from typing import Sequence

from ..errors import ErrorKind
from .kinds import rules_for
from .models import Debate, DebateParticipant, DebateStatus, Statement


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    error: ErrorKind | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = GateDecision(allowed=True)


def check_submission(
    debate: Debate,
    user_id: str,
    participants: Sequence[DebateParticipant],
    statements: Sequence[Statement],
) -> GateDecision:
    """Decide whether ``user_id`` may submit for ``debate.current_round``.

    ``statements`` may hold statements of any round; only those of the
    current round are considered. Never raises and performs no I/O.
    """
    if debate.status != DebateStatus.ACTIVE:
        return GateDecision(False, ErrorKind.INVALID_STATUS, "Debate is not active")

    rules = rules_for(debate)
    if user_id not in rules.eligible_authors(debate, participants):
        return GateDecision(
            False,
            ErrorKind.NOT_PARTICIPANT,
            "You are not a participant in this debate",
        )

    round_statements = [s for s in statements if s.round == debate.current_round]
    if any(s.author_id == user_id for s in round_statements):
        return GateDecision(
            False,
            ErrorKind.ALREADY_SUBMITTED,
            "You have already submitted a statement for this round",
        )

    violation = rules.turn_violation(debate, user_id, round_statements)
    if violation:
        return GateDecision(False, ErrorKind.NOT_YOUR_TURN, violation)

    return ALLOWED


def can_submit(
    debate: Debate,
    user_id: str,
    participants: Sequence[DebateParticipant] = (),
    statements: Sequence[Statement] = (),
) -> bool:
    return check_submission(debate, user_id, participants, statements).allowed

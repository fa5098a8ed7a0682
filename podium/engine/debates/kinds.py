"""Per-kind rules for who argues in a round and when a round is complete."""

from abc import ABC, abstractmethod
from typing import Sequence

from .models import (
    ELIGIBLE_PARTICIPANT_STATUSES,
    Debate,
    DebateKind,
    DebateParticipant,
    Statement,
)


class DebateKindRules(ABC):
    """Shared interface of the two debate shapes."""

    kind: DebateKind

    @abstractmethod
    def eligible_authors(
        self, debate: Debate, participants: Sequence[DebateParticipant]
    ) -> list[str]:
        """Users expected to submit a statement in the current round."""

    @abstractmethod
    def turn_violation(
        self, debate: Debate, user_id: str, round_statements: Sequence[Statement]
    ) -> str | None:
        """Return a rejection message if it is not ``user_id``'s turn."""

    def is_round_complete(
        self,
        debate: Debate,
        participants: Sequence[DebateParticipant],
        round_statements: Sequence[Statement],
    ) -> bool:
        """Every eligible author has an explicit statement this round."""
        eligible = self.eligible_authors(debate, participants)
        if not eligible:
            return False
        submitted = {s.author_id for s in round_statements}
        return all(user_id in submitted for user_id in eligible)


class TwoPartyRules(DebateKindRules):
    """Challenger against opponent, alternating within a round."""

    kind = DebateKind.TWO_PARTY

    def eligible_authors(self, debate, participants):
        return [u for u in (debate.challenger_id, debate.opponent_id) if u]

    def turn_violation(self, debate, user_id, round_statements):
        if not round_statements:
            return None

        other_id = (
            debate.opponent_id if user_id == debate.challenger_id else debate.challenger_id
        )
        authors = {s.author_id for s in round_statements}
        if other_id in authors and user_id not in authors:
            return None
        return "It is not your turn in this round"

    def is_round_complete(self, debate, participants, round_statements):
        if debate.opponent_id is None:
            return False
        return super().is_round_complete(debate, participants, round_statements)


class GroupRules(DebateKindRules):
    """Parallel turns: any eligible participant may submit once per round."""

    kind = DebateKind.GROUP

    def eligible_authors(self, debate, participants):
        return [
            p.user_id for p in participants if p.status in ELIGIBLE_PARTICIPANT_STATUSES
        ]

    def turn_violation(self, debate, user_id, round_statements):
        return None


_RULES: dict[DebateKind, DebateKindRules] = {
    DebateKind.TWO_PARTY: TwoPartyRules(),
    DebateKind.GROUP: GroupRules(),
}


def rules_for(debate: Debate) -> DebateKindRules:
    return _RULES[debate.kind]

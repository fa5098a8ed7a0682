"""Verdict data models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class VerdictDecision(Enum):
    CHALLENGER_WINS = "CHALLENGER_WINS"
    OPPONENT_WINS = "OPPONENT_WINS"
    TIE = "TIE"


class VerdictPass(Enum):
    """Judging pass: the initial verdict or the single appeal re-judging."""

    INITIAL = "INITIAL"
    APPEAL = "APPEAL"


class Verdict(BaseModel):
    """One judge's verdict for one pass."""

    id: int | None = None
    debate_id: str
    judge_id: int
    verdict_pass: VerdictPass
    decision: VerdictDecision
    scores: dict[str, float]
    reasoning: str = ""
    created_at: datetime | None = None


class AggregateOutcome(BaseModel):
    """Result of aggregating one verdict pass."""

    debate_id: str
    verdict_pass: VerdictPass
    decision: VerdictDecision
    winner_id: str | None = None
    totals: dict[str, float]
    verdicts: list[Verdict]
    rating_changes: dict[str, int] = {}

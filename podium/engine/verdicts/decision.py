"""Decision rules turning judge scores into an outcome."""

from typing import Iterable, Sequence

from ..judges.base import JudgeScore
from .models import VerdictDecision


def score_totals(results: Iterable[JudgeScore]) -> dict[str, float]:
    """Sum each participant's scores across judges."""
    totals: dict[str, float] = {}
    for result in results:
        for user_id, score in result.scores.items():
            totals[user_id] = totals.get(user_id, 0.0) + score
    return totals


def decide_two_party(
    challenger_score: float, opponent_score: float
) -> VerdictDecision:
    if challenger_score > opponent_score:
        return VerdictDecision.CHALLENGER_WINS
    if opponent_score > challenger_score:
        return VerdictDecision.OPPONENT_WINS
    return VerdictDecision.TIE


def decide_pass(
    results: Sequence[JudgeScore], challenger_id: str, opponent_id: str
) -> tuple[VerdictDecision, str | None, dict[str, float]]:
    """Higher total across all judges wins; equal totals are a tie.

    Returns the decision, the winner's user id (None on a tie) and the totals.
    """
    totals = score_totals(results)
    decision = decide_two_party(
        totals.get(challenger_id, 0.0), totals.get(opponent_id, 0.0)
    )
    winner_id = {
        VerdictDecision.CHALLENGER_WINS: challenger_id,
        VerdictDecision.OPPONENT_WINS: opponent_id,
    }.get(decision)
    return decision, winner_id, totals


def judge_decision(result: JudgeScore, challenger_id: str, opponent_id: str) -> VerdictDecision:
    """The decision implied by a single judge's own scores."""
    return decide_two_party(
        result.scores.get(challenger_id, 0.0), result.scores.get(opponent_id, 0.0)
    )

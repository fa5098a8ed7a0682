"""Judging service interface and result validation."""

from abc import ABC, abstractmethod
from typing import List

from pydantic import BaseModel, Field

from ..debates.models import Debate, Statement
from ..errors import JudgingServiceError


class Judge(BaseModel):
    """A judge persona from the judge pool."""

    id: int
    name: str
    personality: str = "balanced"
    system_prompt: str = ""
    debates_judged: int = 0


class JudgeScore(BaseModel):
    """One judge's scores for every participant, out of 100."""

    judge_id: int
    scores: dict[str, float] = Field(..., description="user_id -> score in [0, 100]")
    reasoning: str = ""


class JudgingRequest(BaseModel):
    """Everything the judging service needs to score a debate."""

    debate: Debate
    statements: List[Statement]
    participant_ids: List[str]
    judges: List[Judge]


class JudgingService(ABC):
    """External scorer returning one score set per requested judge."""

    @abstractmethod
    async def judge(self, request: JudgingRequest) -> List[JudgeScore]:
        """Score the debate; raise JudgingServiceError on failure."""


def validate_judge_scores(
    request: JudgingRequest, results: List[JudgeScore]
) -> List[JudgeScore]:
    """Check that results cover exactly the requested judges and participants.

    Results are returned in the order the judges were requested.
    """
    expected_ids = [judge.id for judge in request.judges]
    by_judge: dict[int, JudgeScore] = {}
    for result in results:
        if result.judge_id not in expected_ids:
            raise JudgingServiceError(f"Unexpected judge {result.judge_id} in results")
        if result.judge_id in by_judge:
            raise JudgingServiceError(f"Duplicate result for judge {result.judge_id}")
        by_judge[result.judge_id] = result

    missing = [judge_id for judge_id in expected_ids if judge_id not in by_judge]
    if missing:
        raise JudgingServiceError(f"Missing results for judges {missing}")

    participants = set(request.participant_ids)
    for result in by_judge.values():
        if set(result.scores) != participants:
            raise JudgingServiceError(
                f"Judge {result.judge_id} scored {sorted(result.scores)}, "
                f"expected {sorted(participants)}"
            )
        for user_id, score in result.scores.items():
            if not 0 <= score <= 100:
                raise JudgingServiceError(
                    f"Judge {result.judge_id} gave {user_id} out-of-range score {score}"
                )

    return [by_judge[judge_id] for judge_id in expected_ids]

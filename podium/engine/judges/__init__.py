"""Judge pool and judging services."""

from .base import Judge, JudgeScore, JudgingRequest, JudgingService, validate_judge_scores
from .openai_judge import OpenAIJudgingService
from .selection import JudgePool, select_judges

__all__ = [
    "Judge",
    "JudgePool",
    "JudgeScore",
    "JudgingRequest",
    "JudgingService",
    "OpenAIJudgingService",
    "select_judges",
    "validate_judge_scores",
]

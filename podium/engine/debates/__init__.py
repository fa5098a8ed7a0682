"""Debates: data models, turn rules and lifecycle management."""

from .models import (
    AppealStatus,
    ChallengeType,
    CreateChallengeRequest,
    Debate,
    DebateKind,
    DebateParticipant,
    DebateStatus,
    DebateView,
    ParticipantStatus,
    Position,
    RematchStatus,
    Statement,
)
from .progression import RoundOutcome, RoundProgress, detect_round_completion
from .round_gate import GateDecision, can_submit, check_submission

__all__ = [
    "AppealStatus",
    "ChallengeType",
    "CreateChallengeRequest",
    "Debate",
    "DebateKind",
    "DebateParticipant",
    "DebateStatus",
    "DebateView",
    "GateDecision",
    "ParticipantStatus",
    "Position",
    "RematchStatus",
    "RoundOutcome",
    "RoundProgress",
    "Statement",
    "can_submit",
    "check_submission",
    "detect_round_completion",
]

"""Verdict aggregation and appeals."""

from .aggregator import VerdictAggregator, VerdictListener
from .appeals import AppealHandler
from .database import VerdictStore
from .models import AggregateOutcome, Verdict, VerdictDecision, VerdictPass

__all__ = [
    "AggregateOutcome",
    "AppealHandler",
    "Verdict",
    "VerdictAggregator",
    "VerdictDecision",
    "VerdictListener",
    "VerdictPass",
    "VerdictStore",
]

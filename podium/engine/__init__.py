"""Podium debate engine: round gating, verdicts, appeals, rematches and tournaments."""

from .core import DebateEngine
from .errors import ErrorKind, OperationResult

__all__ = ["DebateEngine", "ErrorKind", "OperationResult"]

"""Error taxonomy and operation results shared by every engine component."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Reason an engine operation was rejected."""

    NOT_FOUND = "not_found"
    INVALID_STATUS = "invalid_status"
    NOT_PARTICIPANT = "not_participant"
    WRONG_ACTOR = "wrong_actor"
    ALREADY_SUBMITTED = "already_submitted"
    NOT_YOUR_TURN = "not_your_turn"
    EMPTY_CONTENT = "empty_content"
    CONTENT_TOO_LONG = "content_too_long"
    NOT_INVITED = "not_invited"
    ALREADY_ACCEPTED = "already_accepted"
    ALREADY_APPEALED = "already_appealed"
    APPEAL_WINDOW_EXPIRED = "appeal_window_expired"
    REASON_TOO_SHORT = "reason_too_short"
    REASON_TOO_LONG = "reason_too_long"
    NO_VERDICTS_SELECTED = "no_verdicts_selected"
    INVALID_VERDICTS = "invalid_verdicts"
    TIE_NOT_APPEALABLE = "tie_not_appealable"
    NOT_APPEALABLE = "not_appealable"
    REMATCH_PENDING = "rematch_pending"
    REMATCH_ALREADY_ACCEPTED = "rematch_already_accepted"
    REMATCH_DECLINED = "rematch_declined"
    NO_PENDING_REMATCH = "no_pending_rematch"
    REMATCH_IN_PROGRESS = "rematch_in_progress"
    ALREADY_PROCESSED = "already_processed"
    CONFLICT = "conflict"
    ROUND_NOT_COMPLETE = "round_not_complete"
    NOT_ENOUGH_PARTICIPANTS = "not_enough_participants"
    TOURNAMENT_FULL = "tournament_full"
    ALREADY_REGISTERED = "already_registered"
    INVALID_REQUEST = "invalid_request"
    JUDGING_UNAVAILABLE = "judging_unavailable"
    NO_JUDGES = "no_judges"
    INTERNAL = "internal"


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a public engine operation.

    ``already_processed`` marks an idempotent no-op: another writer (or an
    earlier call) already performed the work and ``value`` holds its result.
    """

    ok: bool
    value: T | None = None
    error: ErrorKind | None = None
    message: str = ""
    already_processed: bool = False

    @classmethod
    def success(
        cls, value: T | None = None, message: str = "", already_processed: bool = False
    ) -> "OperationResult[T]":
        return cls(
            ok=True, value=value, message=message, already_processed=already_processed
        )

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "OperationResult[T]":
        return cls(ok=False, error=error, message=message)

    def __bool__(self) -> bool:
        return self.ok


class DebateEngineError(Exception):
    """Base class for internal engine failures."""


class JudgingServiceError(DebateEngineError):
    """The external judging service failed or returned an unusable result."""


class DataIntegrityError(DebateEngineError):
    """Related rows that the invariants guarantee are missing or inconsistent."""


class ConcurrentUpdateError(DebateEngineError):
    """A compare-and-swap lost to another writer."""

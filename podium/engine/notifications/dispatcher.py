"""Fire-and-forget notification delivery for debate state transitions."""

import logging
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Iterable, List

from pydantic import BaseModel, Field

from ..database import SQLiteStore, to_db_time, utcnow

logger = logging.getLogger(__name__)


class NotificationType(Enum):
    CHALLENGE_RECEIVED = "CHALLENGE_RECEIVED"
    DEBATE_ACCEPTED = "DEBATE_ACCEPTED"
    DEBATE_CANCELLED = "DEBATE_CANCELLED"
    OPPONENT_SUBMITTED = "OPPONENT_SUBMITTED"
    NEW_ROUND = "NEW_ROUND"
    DEBATE_COMPLETE = "DEBATE_COMPLETE"
    DEBATE_WON = "DEBATE_WON"
    DEBATE_LOST = "DEBATE_LOST"
    DEBATE_TIED = "DEBATE_TIED"
    VERDICT_READY = "VERDICT_READY"
    APPEAL_SUBMITTED = "APPEAL_SUBMITTED"
    APPEAL_RESOLVED = "APPEAL_RESOLVED"
    REMATCH_REQUESTED = "REMATCH_REQUESTED"
    REMATCH_ACCEPTED = "REMATCH_ACCEPTED"
    REMATCH_DECLINED = "REMATCH_DECLINED"
    BELT_TRANSFERRED = "BELT_TRANSFERRED"
    TOURNAMENT_STARTED = "TOURNAMENT_STARTED"
    TOURNAMENT_ROUND = "TOURNAMENT_ROUND"
    TOURNAMENT_ELIMINATED = "TOURNAMENT_ELIMINATED"
    TOURNAMENT_WON = "TOURNAMENT_WON"


class Notification(BaseModel):
    """A single notification addressed to one user."""

    user_id: str
    type: NotificationType
    title: str
    message: str
    debate_id: str | None = None
    tournament_id: int | None = None
    created_at: datetime = Field(default_factory=utcnow)


NotificationListener = Callable[[Notification], Awaitable[None]]


class NotificationDispatcher:
    """Delivers notifications to registered listeners.

    A failing listener is logged and skipped; delivery never fails the
    state transition that triggered it.
    """

    def __init__(self):
        self.listeners: list[NotificationListener] = []

    def add_listener(self, listener: NotificationListener) -> None:
        self.listeners.append(listener)
        logger.info("Added notification listener")

    async def notify(self, notification: Notification) -> None:
        for listener in self.listeners:
            try:
                await listener(notification)
            except Exception as e:
                logger.error(
                    f"Notification listener failed for {notification.type.value} "
                    f"to {notification.user_id}: {e}"
                )

    async def notify_users(
        self,
        user_ids: Iterable[str | None],
        type: NotificationType,
        title: str,
        message: str,
        debate_id: str | None = None,
        tournament_id: int | None = None,
    ) -> None:
        """Send the same notification to each distinct, non-empty user id."""
        seen: set[str] = set()
        for user_id in user_ids:
            if not user_id or user_id in seen:
                continue
            seen.add(user_id)
            await self.notify(
                Notification(
                    user_id=user_id,
                    type=type,
                    title=title,
                    message=message,
                    debate_id=debate_id,
                    tournament_id=tournament_id,
                )
            )


class SQLiteNotificationSink(SQLiteStore):
    """Listener that stores notifications in the notifications table."""

    async def __call__(self, notification: Notification) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO notifications (
                    user_id, type, debate_id, tournament_id, title, message, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    notification.user_id,
                    notification.type.value,
                    notification.debate_id,
                    notification.tournament_id,
                    notification.title,
                    notification.message,
                    to_db_time(notification.created_at),
                ),
            )

    def list_for_user(self, user_id: str) -> List[Notification]:
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT user_id, type, debate_id, tournament_id, title, message, created_at
                FROM notifications WHERE user_id = ? ORDER BY id
                """,
                (user_id,),
            ).fetchall()
            return [Notification(**dict(row)) for row in rows]

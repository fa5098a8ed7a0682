"""Skill rating updates driven by verdict outcomes."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel

from ..database import DatabaseManager, SQLiteStore, to_db_time, utcnow

logger = logging.getLogger(__name__)


class UserRating(BaseModel):
    user_id: str
    rating: int
    debates_won: int = 0
    debates_lost: int = 0
    debates_tied: int = 0
    updated_at: datetime | None = None


class RatingService(ABC):
    """External collaborator that owns the rating formula."""

    @abstractmethod
    def apply_outcome(
        self, winner_id: str | None, loser_id: str | None, is_tie: bool = False
    ) -> dict[str, int]:
        """Apply a debate outcome and return the rating delta per user.

        For a tie pass both users as ``winner_id``/``loser_id`` with
        ``is_tie=True``.
        """

    @abstractmethod
    def revert_outcome(
        self, winner_id: str, loser_id: str, changes: dict[str, int]
    ) -> None:
        """Undo a previously applied decided outcome."""

    @abstractmethod
    def get_rating(self, user_id: str) -> int:
        """Current rating of a user."""


def calculate_elo_change(
    player_rating: int, opponent_rating: int, result: float, k_factor: int = 32
) -> int:
    """Rating change for ``player`` given a result of 1 (win), 0.5 or 0."""
    expected_score = 1 / (1 + 10 ** ((opponent_rating - player_rating) / 400))
    return round(k_factor * (result - expected_score))


class EloRatingService(SQLiteStore, RatingService):
    """Elo ratings stored in the user_ratings table.

    Ties leave ratings untouched and only count the tie.
    """

    def __init__(
        self, database: DatabaseManager, k_factor: int = 32, initial_rating: int = 1200
    ):
        super().__init__(database)
        self.k_factor = k_factor
        self.initial_rating = initial_rating

    def _ensure_user(self, conn, user_id: str) -> int:
        conn.execute(
            """
            INSERT OR IGNORE INTO user_ratings (user_id, rating, updated_at)
            VALUES (?, ?, ?)
            """,
            (user_id, self.initial_rating, to_db_time(utcnow())),
        )
        row = conn.execute(
            "SELECT rating FROM user_ratings WHERE user_id = ?", (user_id,)
        ).fetchone()
        return row["rating"]

    def _adjust(self, conn, user_id: str, delta: int, column: str, count: int) -> None:
        conn.execute(
            f"""
            UPDATE user_ratings
            SET rating = rating + ?, {column} = {column} + ?, updated_at = ?
            WHERE user_id = ?
            """,
            (delta, count, to_db_time(utcnow()), user_id),
        )

    def apply_outcome(self, winner_id, loser_id, is_tie=False):
        with self.transaction() as conn:
            if is_tie:
                for user_id in (winner_id, loser_id):
                    if user_id:
                        self._ensure_user(conn, user_id)
                        self._adjust(conn, user_id, 0, "debates_tied", 1)
                logger.info(f"Recorded tie between {winner_id} and {loser_id}")
                return {}

            if not winner_id or not loser_id:
                raise ValueError("A decided outcome needs both a winner and a loser")

            winner_rating = self._ensure_user(conn, winner_id)
            loser_rating = self._ensure_user(conn, loser_id)
            change = calculate_elo_change(
                winner_rating, loser_rating, 1.0, self.k_factor
            )
            self._adjust(conn, winner_id, change, "debates_won", 1)
            self._adjust(conn, loser_id, -change, "debates_lost", 1)

        logger.info(f"Rating update: {winner_id} +{change}, {loser_id} -{change}")
        return {winner_id: change, loser_id: -change}

    def revert_outcome(self, winner_id, loser_id, changes):
        with self.transaction() as conn:
            self._ensure_user(conn, winner_id)
            self._ensure_user(conn, loser_id)
            self._adjust(conn, winner_id, -changes.get(winner_id, 0), "debates_won", -1)
            self._adjust(conn, loser_id, -changes.get(loser_id, 0), "debates_lost", -1)
        logger.info(f"Reverted rating changes {changes}")

    def get_rating(self, user_id):
        return self.get_user_rating(user_id).rating

    def get_user_rating(self, user_id: str) -> UserRating:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM user_ratings WHERE user_id = ?", (user_id,)
            ).fetchone()
            if not row:
                return UserRating(user_id=user_id, rating=self.initial_rating)
            return UserRating(**dict(row))

"""Tournament database operations."""

import logging
import sqlite3
from typing import Any, List

from ..database import SQLiteStore, to_db_time, utcnow
from ..debates.database import to_db_value
from .models import (
    BracketData,
    RoundStatus,
    Tournament,
    TournamentMatch,
    TournamentParticipant,
    TournamentParticipantStatus,
    TournamentRound,
)

logger = logging.getLogger(__name__)


def _row_to_tournament(row: sqlite3.Row) -> Tournament:
    return Tournament(**dict(row))


def _row_to_participant(row: sqlite3.Row) -> TournamentParticipant:
    return TournamentParticipant(**dict(row))


def _row_to_round(row: sqlite3.Row) -> TournamentRound:
    return TournamentRound(**dict(row))


def _row_to_match(row: sqlite3.Row) -> TournamentMatch:
    return TournamentMatch(**dict(row))


def _update(
    conn: sqlite3.Connection,
    table: str,
    where: dict[str, Any],
    changes: dict[str, Any],
) -> bool:
    """UPDATE ``table`` with ``changes`` where every ``where`` column matches."""
    set_clauses = [f"{column} = ?" for column in changes]
    params: List[Any] = [to_db_value(value) for value in changes.values()]
    where_clauses = []
    for column, value in where.items():
        if value is None:
            where_clauses.append(f"{column} IS NULL")
        else:
            where_clauses.append(f"{column} = ?")
            params.append(to_db_value(value))
    cursor = conn.execute(
        f"UPDATE {table} SET {', '.join(set_clauses)} WHERE {' AND '.join(where_clauses)}",
        params,
    )
    return cursor.rowcount > 0


class TournamentStore(SQLiteStore):
    """Manages SQLite database operations for tournaments."""

    def create_tournament(self, tournament: Tournament) -> int:
        """Create a new tournament and return its ID."""
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tournaments (
                    name, topic, format, status, max_participants, current_round,
                    total_rounds, match_rounds, round_duration_hours, category, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    tournament.name,
                    tournament.topic,
                    tournament.format.value,
                    tournament.status.value,
                    tournament.max_participants,
                    tournament.current_round,
                    tournament.total_rounds,
                    tournament.match_rounds,
                    tournament.round_duration_hours,
                    tournament.category,
                    to_db_time(tournament.created_at or utcnow()),
                ),
            )
            tournament_id = cursor.lastrowid
            if tournament_id is None:
                raise RuntimeError("Failed to get tournament ID from database")

        logger.info(f"Created tournament {tournament_id}: {tournament.name}")
        return tournament_id

    def fetch_tournament(
        self, conn: sqlite3.Connection, tournament_id: int
    ) -> Tournament | None:
        row = conn.execute(
            "SELECT * FROM tournaments WHERE id = ?", (tournament_id,)
        ).fetchone()
        return _row_to_tournament(row) if row else None

    def get_tournament(self, tournament_id: int) -> Tournament | None:
        """Get tournament by ID."""
        with self._get_connection() as conn:
            return self.fetch_tournament(conn, tournament_id)

    def list_tournaments(self, limit: int | None = None, offset: int = 0) -> List[Tournament]:
        query = "SELECT * FROM tournaments ORDER BY created_at DESC, id DESC"
        params: List[Any] = []
        if limit:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        with self._get_connection() as conn:
            return [_row_to_tournament(row) for row in conn.execute(query, params)]

    def update_tournament(
        self,
        conn: sqlite3.Connection,
        tournament_id: int,
        expected: dict[str, Any] | None = None,
        **changes: Any,
    ) -> bool:
        """Update tournament columns, optionally only if ``expected`` still holds."""
        where = {"id": tournament_id, **(expected or {})}
        return _update(conn, "tournaments", where, changes)

    def insert_participant(
        self, conn: sqlite3.Connection, participant: TournamentParticipant
    ) -> None:
        """Register a participant; a duplicate user raises sqlite3.IntegrityError."""
        conn.execute(
            """
            INSERT INTO tournament_participants (
                tournament_id, user_id, seed, status, cumulative_score, registered_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                participant.tournament_id,
                participant.user_id,
                participant.seed,
                participant.status.value,
                participant.cumulative_score,
                to_db_time(participant.registered_at or utcnow()),
            ),
        )

    def fetch_participants(
        self, conn: sqlite3.Connection, tournament_id: int
    ) -> List[TournamentParticipant]:
        """Participants ordered by seed, unseeded ones in registration order."""
        rows = conn.execute(
            """
            SELECT * FROM tournament_participants WHERE tournament_id = ?
            ORDER BY seed IS NULL, seed, id
            """,
            (tournament_id,),
        ).fetchall()
        return [_row_to_participant(row) for row in rows]

    def get_participants(self, tournament_id: int) -> List[TournamentParticipant]:
        with self._get_connection() as conn:
            return self.fetch_participants(conn, tournament_id)

    def update_participant(
        self,
        conn: sqlite3.Connection,
        tournament_id: int,
        user_id: str,
        expected: dict[str, Any] | None = None,
        **changes: Any,
    ) -> bool:
        where = {"tournament_id": tournament_id, "user_id": user_id, **(expected or {})}
        return _update(conn, "tournament_participants", where, changes)

    def eliminate_participant(
        self,
        conn: sqlite3.Connection,
        tournament_id: int,
        user_id: str,
        round_number: int,
        reason: str,
    ) -> bool:
        """Eliminate once; an already eliminated participant is left untouched."""
        return self.update_participant(
            conn,
            tournament_id,
            user_id,
            {"elimination_round": None},
            status=TournamentParticipantStatus.ELIMINATED,
            elimination_round=round_number,
            elimination_reason=reason,
        )

    def add_cumulative_scores(
        self, conn: sqlite3.Connection, tournament_id: int, totals: dict[str, float]
    ) -> None:
        for user_id, total in totals.items():
            conn.execute(
                """
                UPDATE tournament_participants
                SET cumulative_score = cumulative_score + ?
                WHERE tournament_id = ? AND user_id = ? AND status != ?
                """,
                (total, tournament_id, user_id, TournamentParticipantStatus.ELIMINATED.value),
            )

    def insert_round(self, conn: sqlite3.Connection, tournament_id: int, round_number: int) -> None:
        """Insert a round row; raises sqlite3.IntegrityError if it already exists."""
        conn.execute(
            """
            INSERT INTO tournament_rounds (tournament_id, round_number, status, started_at)
            VALUES (?, ?, ?, ?)
            """,
            (tournament_id, round_number, RoundStatus.IN_PROGRESS.value, to_db_time(utcnow())),
        )

    def fetch_round(
        self, conn: sqlite3.Connection, tournament_id: int, round_number: int
    ) -> TournamentRound | None:
        row = conn.execute(
            """
            SELECT * FROM tournament_rounds WHERE tournament_id = ? AND round_number = ?
            """,
            (tournament_id, round_number),
        ).fetchone()
        return _row_to_round(row) if row else None

    def get_round(self, tournament_id: int, round_number: int) -> TournamentRound | None:
        with self._get_connection() as conn:
            return self.fetch_round(conn, tournament_id, round_number)

    def set_round_status(
        self,
        conn: sqlite3.Connection,
        tournament_id: int,
        round_number: int,
        expected: RoundStatus,
        status: RoundStatus,
    ) -> bool:
        """Move a round from ``expected`` to ``status``; False if it was not there."""
        changes: dict[str, Any] = {"status": status}
        if status == RoundStatus.COMPLETED:
            changes["completed_at"] = utcnow()
        return _update(
            conn,
            "tournament_rounds",
            {"tournament_id": tournament_id, "round_number": round_number, "status": expected},
            changes,
        )

    def insert_match(self, conn: sqlite3.Connection, match: TournamentMatch) -> int:
        cursor = conn.execute(
            """
            INSERT INTO tournament_matches (
                tournament_id, round_number, match_number, participant1_user_id,
                participant2_user_id, debate_id, winner_user_id, status
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                match.tournament_id,
                match.round_number,
                match.match_number,
                match.participant1_user_id,
                match.participant2_user_id,
                match.debate_id,
                match.winner_user_id,
                match.status.value,
            ),
        )
        return cursor.lastrowid

    def update_match(
        self,
        conn: sqlite3.Connection,
        match_id: int,
        expected: dict[str, Any] | None = None,
        **changes: Any,
    ) -> bool:
        return _update(conn, "tournament_matches", {"id": match_id, **(expected or {})}, changes)

    def fetch_matches(
        self, conn: sqlite3.Connection, tournament_id: int, round_number: int | None = None
    ) -> List[TournamentMatch]:
        if round_number is None:
            rows = conn.execute(
                """
                SELECT * FROM tournament_matches WHERE tournament_id = ?
                ORDER BY round_number, match_number
                """,
                (tournament_id,),
            ).fetchall()
        else:
            rows = conn.execute(
                """
                SELECT * FROM tournament_matches
                WHERE tournament_id = ? AND round_number = ?
                ORDER BY match_number
                """,
                (tournament_id, round_number),
            ).fetchall()
        return [_row_to_match(row) for row in rows]

    def get_matches(
        self, tournament_id: int, round_number: int | None = None
    ) -> List[TournamentMatch]:
        with self._get_connection() as conn:
            return self.fetch_matches(conn, tournament_id, round_number)

    def get_match(self, match_id: int) -> TournamentMatch | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM tournament_matches WHERE id = ?", (match_id,)
            ).fetchone()
            return _row_to_match(row) if row else None

    def get_bracket_data(self, tournament_id: int) -> BracketData | None:
        """Get complete bracket data for visualization."""
        with self._get_connection() as conn:
            tournament = self.fetch_tournament(conn, tournament_id)
            if not tournament:
                return None
            rounds = conn.execute(
                """
                SELECT * FROM tournament_rounds WHERE tournament_id = ?
                ORDER BY round_number
                """,
                (tournament_id,),
            ).fetchall()
            return BracketData(
                tournament=tournament,
                participants=self.fetch_participants(conn, tournament_id),
                rounds=[_row_to_round(row) for row in rounds],
                matches=self.fetch_matches(conn, tournament_id),
            )

"""Debate database operations."""

import json
import logging
import sqlite3
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List

from ..database import SQLiteStore, from_db_json, to_db_time
from .models import (
    Debate,
    DebateParticipant,
    DebateStatus,
    DebateView,
    ParticipantStatus,
    Statement,
)

logger = logging.getLogger(__name__)

DEBATE_COLUMNS = tuple(Debate.model_fields)


def to_db_value(value: Any) -> Any:
    """Convert a model value into its SQLite representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_db_time(value)
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    if isinstance(value, bool):
        return int(value)
    return value


def _row_to_debate(row: sqlite3.Row) -> Debate:
    data = dict(row)
    data["invited_user_ids"] = from_db_json(data["invited_user_ids"], [])
    data["appealed_verdict_ids"] = from_db_json(data["appealed_verdict_ids"], [])
    return Debate(**data)


def _row_to_participant(row: sqlite3.Row) -> DebateParticipant:
    return DebateParticipant(**dict(row))


def _row_to_statement(row: sqlite3.Row) -> Statement:
    return Statement(**dict(row))


class DebateStore(SQLiteStore):
    """Reads and writes debates, participants and statements.

    Methods taking ``conn`` run inside the caller's transaction; the others
    open their own connection.
    """

    def insert_debate(self, conn: sqlite3.Connection, debate: Debate) -> None:
        placeholders = ", ".join("?" for _ in DEBATE_COLUMNS)
        conn.execute(
            f"INSERT INTO debates ({', '.join(DEBATE_COLUMNS)}) VALUES ({placeholders})",
            [to_db_value(getattr(debate, column)) for column in DEBATE_COLUMNS],
        )
        logger.info(f"Created debate {debate.id}: {debate.topic}")

    def insert_participant(
        self, conn: sqlite3.Connection, participant: DebateParticipant
    ) -> None:
        conn.execute(
            """
            INSERT INTO debate_participants (
                debate_id, user_id, position, status, elimination_round,
                cumulative_score, joined_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                participant.debate_id,
                participant.user_id,
                participant.position.value,
                participant.status.value,
                participant.elimination_round,
                participant.cumulative_score,
                to_db_time(participant.joined_at),
            ),
        )

    def insert_statement(self, conn: sqlite3.Connection, statement: Statement) -> None:
        """Insert a statement; raises sqlite3.IntegrityError on a duplicate round."""
        conn.execute(
            """
            INSERT INTO statements (id, debate_id, author_id, round, content, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                statement.id,
                statement.debate_id,
                statement.author_id,
                statement.round,
                statement.content,
                to_db_time(statement.created_at),
            ),
        )

    def fetch_debate(self, conn: sqlite3.Connection, debate_id: str) -> Debate | None:
        row = conn.execute("SELECT * FROM debates WHERE id = ?", (debate_id,)).fetchone()
        return _row_to_debate(row) if row else None

    def fetch_participants(
        self, conn: sqlite3.Connection, debate_id: str
    ) -> List[DebateParticipant]:
        rows = conn.execute(
            "SELECT * FROM debate_participants WHERE debate_id = ? ORDER BY id",
            (debate_id,),
        ).fetchall()
        return [_row_to_participant(row) for row in rows]

    def fetch_statements(
        self, conn: sqlite3.Connection, debate_id: str, round_number: int | None = None
    ) -> List[Statement]:
        if round_number is None:
            rows = conn.execute(
                """
                SELECT * FROM statements WHERE debate_id = ?
                ORDER BY round, created_at
                """,
                (debate_id,),
            ).fetchall()
        else:
            rows = conn.execute(
                """
                SELECT * FROM statements WHERE debate_id = ? AND round = ?
                ORDER BY created_at
                """,
                (debate_id, round_number),
            ).fetchall()
        return [_row_to_statement(row) for row in rows]

    def compare_and_set(
        self,
        conn: sqlite3.Connection,
        debate_id: str,
        expected: dict[str, Any],
        **changes: Any,
    ) -> bool:
        """Apply ``changes`` only if every ``expected`` column still matches.

        ``None`` in ``expected`` matches SQL NULL. Bumps ``version`` and
        returns whether a row was updated.
        """
        set_clauses = [f"{column} = ?" for column in changes]
        set_clauses.append("version = version + 1")
        params: List[Any] = [to_db_value(value) for value in changes.values()]

        where_clauses = ["id = ?"]
        params.append(debate_id)
        for column, value in expected.items():
            if value is None:
                where_clauses.append(f"{column} IS NULL")
            else:
                where_clauses.append(f"{column} = ?")
                params.append(to_db_value(value))

        cursor = conn.execute(
            f"UPDATE debates SET {', '.join(set_clauses)} WHERE {' AND '.join(where_clauses)}",
            params,
        )
        return cursor.rowcount > 0

    def claim_judging(
        self,
        debate_id: str,
        status: DebateStatus,
        claimed_at: datetime,
        stale_before: datetime,
    ) -> bool:
        """Take the judging claim if it is free or stale and status matches."""
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE debates
                SET judging_claimed_at = ?, version = version + 1
                WHERE id = ? AND status = ?
                  AND (judging_claimed_at IS NULL OR judging_claimed_at < ?)
                """,
                (
                    to_db_time(claimed_at),
                    debate_id,
                    status.value,
                    to_db_time(stale_before),
                ),
            )
            return cursor.rowcount > 0

    def release_judging_claim(self, debate_id: str, claimed_at: datetime) -> bool:
        """Drop our claim; a claim taken over by someone else is left alone."""
        with self.transaction() as conn:
            return self.compare_and_set(
                conn,
                debate_id,
                {"judging_claimed_at": claimed_at},
                judging_claimed_at=None,
            )

    def update_participant(
        self, conn: sqlite3.Connection, debate_id: str, user_id: str, **changes: Any
    ) -> bool:
        set_clauses = [f"{column} = ?" for column in changes]
        params = [to_db_value(value) for value in changes.values()]
        params.extend([debate_id, user_id])
        cursor = conn.execute(
            f"""
            UPDATE debate_participants SET {', '.join(set_clauses)}
            WHERE debate_id = ? AND user_id = ?
            """,
            params,
        )
        return cursor.rowcount > 0

    def add_cumulative_scores(
        self, conn: sqlite3.Connection, debate_id: str, totals: dict[str, float]
    ) -> None:
        for user_id, total in totals.items():
            conn.execute(
                """
                UPDATE debate_participants
                SET cumulative_score = cumulative_score + ?
                WHERE debate_id = ? AND user_id = ?
                """,
                (total, debate_id, user_id),
            )

    def get_debate(self, debate_id: str) -> Debate | None:
        """Get debate by ID."""
        with self._get_connection() as conn:
            return self.fetch_debate(conn, debate_id)

    def get_participants(self, debate_id: str) -> List[DebateParticipant]:
        with self._get_connection() as conn:
            return self.fetch_participants(conn, debate_id)

    def get_statements(
        self, debate_id: str, round_number: int | None = None
    ) -> List[Statement]:
        with self._get_connection() as conn:
            return self.fetch_statements(conn, debate_id, round_number)

    def get_view(self, debate_id: str) -> DebateView | None:
        """Get a debate with participants and statements."""
        with self._get_connection() as conn:
            debate = self.fetch_debate(conn, debate_id)
            if not debate:
                return None
            return DebateView(
                debate=debate,
                participants=self.fetch_participants(conn, debate_id),
                statements=self.fetch_statements(conn, debate_id),
            )

    def list_debates_by_status(self, statuses: Iterable[DebateStatus]) -> List[Debate]:
        values = [status.value for status in statuses]
        if not values:
            return []
        placeholders = ", ".join("?" for _ in values)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM debates WHERE status IN ({placeholders}) ORDER BY created_at",
                values,
            ).fetchall()
            return [_row_to_debate(row) for row in rows]

    def count_participants(
        self, conn: sqlite3.Connection, debate_id: str, status: ParticipantStatus
    ) -> int:
        row = conn.execute(
            """
            SELECT COUNT(*) AS count FROM debate_participants
            WHERE debate_id = ? AND status = ?
            """,
            (debate_id, status.value),
        ).fetchone()
        return row["count"]

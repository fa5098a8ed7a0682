"""Verdict database operations."""

import json
import sqlite3
from typing import Iterable, List

from ..database import SQLiteStore, to_db_time
from .models import Verdict, VerdictPass


def _row_to_verdict(row: sqlite3.Row) -> Verdict:
    data = dict(row)
    data["scores"] = json.loads(data["scores"])
    return Verdict(**data)


class VerdictStore(SQLiteStore):
    """Reads and writes verdict rows."""

    def insert_verdicts(self, conn: sqlite3.Connection, verdicts: Iterable[Verdict]) -> None:
        """Insert a whole pass; a duplicate (debate, judge, pass) raises IntegrityError."""
        for verdict in verdicts:
            conn.execute(
                """
                INSERT INTO verdicts (
                    debate_id, judge_id, verdict_pass, decision, scores, reasoning, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    verdict.debate_id,
                    verdict.judge_id,
                    verdict.verdict_pass.value,
                    verdict.decision.value,
                    json.dumps(verdict.scores),
                    verdict.reasoning,
                    to_db_time(verdict.created_at),
                ),
            )

    def fetch_verdicts(
        self,
        conn: sqlite3.Connection,
        debate_id: str,
        verdict_pass: VerdictPass | None = None,
    ) -> List[Verdict]:
        if verdict_pass is None:
            rows = conn.execute(
                "SELECT * FROM verdicts WHERE debate_id = ? ORDER BY id", (debate_id,)
            ).fetchall()
        else:
            rows = conn.execute(
                """
                SELECT * FROM verdicts WHERE debate_id = ? AND verdict_pass = ?
                ORDER BY id
                """,
                (debate_id, verdict_pass.value),
            ).fetchall()
        return [_row_to_verdict(row) for row in rows]

    def get_verdicts(
        self, debate_id: str, verdict_pass: VerdictPass | None = None
    ) -> List[Verdict]:
        with self._get_connection() as conn:
            return self.fetch_verdicts(conn, debate_id, verdict_pass)

"""Judge pool storage and per-pass judge selection."""

import logging
import random
import sqlite3
from typing import Iterable, List, Sequence

from ..config import JudgeProfile
from ..database import SQLiteStore, to_db_time, utcnow
from .base import Judge

logger = logging.getLogger(__name__)


class JudgePool(SQLiteStore):
    """The judges table."""

    def seed(self, profiles: Iterable[JudgeProfile]) -> int:
        """Insert profiles whose names are not in the pool yet."""
        added = 0
        with self.transaction() as conn:
            for profile in profiles:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO judges (name, personality, system_prompt, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        profile.name,
                        profile.personality,
                        profile.system_prompt,
                        to_db_time(utcnow()),
                    ),
                )
                added += cursor.rowcount
        if added:
            logger.info(f"Seeded {added} judges into the pool")
        return added

    def list_judges(self) -> List[Judge]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM judges ORDER BY id").fetchall()
            return [Judge(**dict(row)) for row in rows]

    def get_judges(self, judge_ids: Sequence[int]) -> List[Judge]:
        """Judges by id, in the order given."""
        if not judge_ids:
            return []
        placeholders = ", ".join("?" for _ in judge_ids)
        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM judges WHERE id IN ({placeholders})", list(judge_ids)
            ).fetchall()
        by_id = {row["id"]: Judge(**dict(row)) for row in rows}
        return [by_id[judge_id] for judge_id in judge_ids if judge_id in by_id]

    def record_judged(self, conn: sqlite3.Connection, judge_ids: Iterable[int]) -> None:
        for judge_id in judge_ids:
            conn.execute(
                "UPDATE judges SET debates_judged = debates_judged + 1 WHERE id = ?",
                (judge_id,),
            )


def select_judges(
    pool: Sequence[Judge],
    count: int,
    exclude_ids: Iterable[int] = (),
    rng: random.Random | None = None,
) -> List[Judge]:
    """Pick ``count`` random judges, preferring ones not in ``exclude_ids``.

    Falls back to the whole pool when too few fresh judges remain. Returns
    fewer than ``count`` only if the pool itself is smaller.
    """
    rng = rng or random.Random()
    excluded = set(exclude_ids)
    fresh = [judge for judge in pool if judge.id not in excluded]
    candidates = fresh if len(fresh) >= count else list(pool)
    if candidates is not fresh and excluded:
        logger.warning(
            f"Only {len(fresh)} unused judges available, selecting from the full pool"
        )
    return rng.sample(candidates, min(count, len(candidates)))

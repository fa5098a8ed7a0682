"""Category belts: ownership transferred by decided debates."""

import logging
from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel

from ..database import SQLiteStore, to_db_time, utcnow
from ..debates.models import Debate

logger = logging.getLogger(__name__)


class BeltTransferReason(Enum):
    DEBATE_WIN = "DEBATE_WIN"
    VACANT_CLAIM = "VACANT_CLAIM"
    APPEAL_OVERTURNED = "APPEAL_OVERTURNED"
    TOURNAMENT_WIN = "TOURNAMENT_WIN"


class Belt(BaseModel):
    id: int
    category: str
    name: str
    holder_id: str | None = None
    acquired_at: datetime | None = None
    times_defended: int = 0
    successful_defenses: int = 0


class BeltTransfer(BaseModel):
    belt_id: int
    category: str
    from_user_id: str | None
    to_user_id: str
    reason: BeltTransferReason
    debate_id: str | None = None
    days_held: int = 0


class BeltKeeper(SQLiteStore):
    """Keeps one belt per category and its transfer history."""

    def create_belt(self, category: str, name: str, holder_id: str | None = None) -> Belt:
        now = utcnow()
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO belts (category, name, holder_id, acquired_at)
                VALUES (?, ?, ?, ?)
                """,
                (category, name, holder_id, to_db_time(now) if holder_id else None),
            )
        logger.info(f"Created belt {name} for category {category}")
        belt = self.get_belt(category)
        if belt is None:
            raise RuntimeError(f"Failed to create belt for category {category}")
        return belt

    def get_belt(self, category: str) -> Belt | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM belts WHERE category = ?", (category,)
            ).fetchone()
            return Belt(**dict(row)) if row else None

    def get_history(self, category: str) -> List[BeltTransfer]:
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT h.*, b.category FROM belt_history h
                JOIN belts b ON b.id = h.belt_id
                WHERE b.category = ? ORDER BY h.id
                """,
                (category,),
            ).fetchall()
            return [BeltTransfer(**dict(row)) for row in rows]

    def process_transfer_after_debate(
        self,
        debate: Debate,
        winner_id: str,
        reason: BeltTransferReason = BeltTransferReason.DEBATE_WIN,
    ) -> BeltTransfer | None:
        """Move the debate category's belt to ``winner_id`` if it was at stake.

        A holder who wins has defended the belt. Returns the transfer, or
        None when ownership did not change.
        """
        if not debate.belt_at_stake:
            return None

        belt = self.get_belt(debate.category)
        if belt is None:
            logger.warning(
                f"Debate {debate.id} staked a belt but category {debate.category} has none"
            )
            return None

        now = utcnow()
        with self.transaction() as conn:
            if belt.holder_id == winner_id:
                conn.execute(
                    """
                    UPDATE belts
                    SET times_defended = times_defended + 1,
                        successful_defenses = successful_defenses + 1
                    WHERE id = ?
                    """,
                    (belt.id,),
                )
                logger.info(f"{winner_id} defended the {belt.name} belt")
                return None

            if belt.holder_id is None:
                reason = BeltTransferReason.VACANT_CLAIM
            elif not debate.is_side(belt.holder_id):
                logger.warning(
                    f"Belt holder {belt.holder_id} did not take part in debate {debate.id}"
                )
                return None

            days_held = 0
            if belt.acquired_at is not None:
                days_held = max(0, (now - belt.acquired_at).days)

            transfer = BeltTransfer(
                belt_id=belt.id,
                category=belt.category,
                from_user_id=belt.holder_id,
                to_user_id=winner_id,
                reason=reason,
                debate_id=debate.id,
                days_held=days_held,
            )
            conn.execute(
                """
                UPDATE belts
                SET holder_id = ?, acquired_at = ?,
                    times_defended = times_defended + ?
                WHERE id = ?
                """,
                (winner_id, to_db_time(now), 1 if belt.holder_id else 0, belt.id),
            )
            conn.execute(
                """
                INSERT INTO belt_history (
                    belt_id, from_user_id, to_user_id, reason, debate_id,
                    days_held, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    belt.id,
                    transfer.from_user_id,
                    transfer.to_user_id,
                    transfer.reason.value,
                    transfer.debate_id,
                    transfer.days_held,
                    to_db_time(now),
                ),
            )

        logger.info(
            f"Belt {belt.name} transferred from {transfer.from_user_id} to {winner_id}"
        )
        return transfer

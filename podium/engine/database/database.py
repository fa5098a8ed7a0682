"""SQLite connection handling shared by the engine's stores."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from .schema import SchemaManager

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def to_db_time(value: datetime | None) -> str | None:
    """Serialize a datetime as an ISO-8601 UTC string for storage."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # Fixed width so stored timestamps compare correctly as text
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_json(raw: str | None, default: Any) -> Any:
    return json.loads(raw) if raw else default


class DatabaseManager:
    """Owns the SQLite file: schema initialization and connection factories.

    Writes go through :meth:`transaction`, which opens the transaction with
    ``BEGIN IMMEDIATE`` so the write lock is taken before any read that a
    compare-and-swap depends on.
    """

    def __init__(
        self,
        db_path: str | Path = "podium.db",
        busy_timeout: float = 30.0,
        schema_manager: SchemaManager | None = None,
    ):
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self.schema_manager = schema_manager or SchemaManager()
        self._init_database()

    def _init_database(self) -> None:
        """Initialize the database with required tables using schema manager."""
        if not self.schema_manager.validate_schema_files():
            raise RuntimeError("Database schema validation failed - missing schema files")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.transaction() as conn:
            self.schema_manager.initialize_database_schema(conn.cursor())
        logger.info(f"Database initialized at {self.db_path}")

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(
                self.db_path, timeout=self.busy_timeout, isolation_level=None
            )
            conn.row_factory = sqlite3.Row  # Enable column access by name
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside one immediate transaction; roll back on any error."""
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")


class SQLiteStore:
    """Base class for the per-domain stores sharing one DatabaseManager."""

    def __init__(self, database: DatabaseManager):
        self.database = database

    def _get_connection(self):
        return self.database.get_connection()

    def transaction(self):
        return self.database.transaction()

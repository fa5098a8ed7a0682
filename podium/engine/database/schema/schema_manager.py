"""Schema manager for organizing and executing database schema files."""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)


# Columns the engine cannot run without. A database created by an older
# schema that lacks any of them is rejected at startup rather than degrading.
REQUIRED_COLUMNS: dict[str, set[str]] = {
    "debates": {
        "status",
        "kind",
        "current_round",
        "total_rounds",
        "winner_id",
        "verdict_date",
        "rematch_status",
        "rematch_debate_id",
        "original_debate_id",
        "appeal_count",
        "judging_claimed_at",
        "version",
    },
    "debate_participants": {"status", "elimination_round", "cumulative_score"},
    "statements": {"debate_id", "author_id", "round"},
    "verdicts": {"debate_id", "judge_id", "verdict_pass", "scores"},
    "tournament_participants": {
        "status",
        "cumulative_score",
        "elimination_round",
        "seed",
    },
    "tournament_rounds": {"round_number", "status"},
    "tournament_matches": {"round_number", "debate_id", "winner_user_id", "status"},
}


class SchemaError(RuntimeError):
    """The database schema is missing tables or columns the engine needs."""


class SchemaManager:
    """Manages database schema creation from organized SQL files."""

    def __init__(self, schema_dir: Path | None = None):
        """Initialize schema manager with schema directory path."""
        if schema_dir is None:
            schema_dir = Path(__file__).parent

        self.schema_dir = schema_dir
        self.tables_dir = schema_dir / "tables"

        # Define the order of table creation to handle dependencies
        self.table_creation_order = [
            "user_ratings.sql",
            "judges.sql",
            "debates.sql",
            "debate_participants.sql",
            "statements.sql",
            "verdicts.sql",
            "notifications.sql",
            "belts.sql",
            "tournaments.sql",
            "tournament_participants.sql",
            "tournament_rounds.sql",
            "tournament_matches.sql",
            "indexes.sql",  # Create indexes last
        ]

    def load_schema_file(self, filename: str) -> str:
        """Load SQL content from a schema file."""
        file_path = self.tables_dir / filename

        if not file_path.exists():
            raise FileNotFoundError(f"Schema file not found: {file_path}")

        return file_path.read_text(encoding="utf-8")

    def execute_schema_file(self, cursor: sqlite3.Cursor, filename: str) -> None:
        """Execute SQL from a single schema file."""
        try:
            sql_content = self.load_schema_file(filename)

            # Handle files that may contain multiple statements
            statements = [stmt.strip() for stmt in sql_content.split(";") if stmt.strip()]

            for statement in statements:
                cursor.execute(statement)

            logger.debug(f"Executed schema file: {filename}")

        except Exception as e:
            logger.error(f"Failed to execute schema file {filename}: {e}")
            raise

    def initialize_database_schema(self, cursor: sqlite3.Cursor) -> None:
        """Initialize complete database schema by executing all schema files in order."""
        logger.info("Initializing database schema from files")

        for filename in self.table_creation_order:
            self.execute_schema_file(cursor, filename)

        self.verify_required_columns(cursor)
        logger.info("Database schema initialization completed successfully")

    def verify_required_columns(self, cursor: sqlite3.Cursor) -> None:
        """Raise SchemaError when a required table or column is absent."""
        problems = []
        for table, columns in REQUIRED_COLUMNS.items():
            cursor.execute(f"PRAGMA table_info({table})")
            present = {row[1] for row in cursor.fetchall()}
            if not present:
                problems.append(f"table {table} is missing")
                continue
            missing = sorted(columns - present)
            if missing:
                problems.append(f"{table} lacks columns {missing}")

        if problems:
            logger.error(f"Database schema is incompatible: {problems}")
            raise SchemaError(f"Database schema is incompatible: {'; '.join(problems)}")

    def validate_schema_files(self) -> bool:
        """Validate that all expected schema files exist."""
        missing_files = []

        for filename in self.table_creation_order:
            file_path = self.tables_dir / filename
            if not file_path.exists():
                missing_files.append(filename)

        if missing_files:
            logger.error(f"Missing schema files: {missing_files}")
            return False

        logger.info("All schema files validated successfully")
        return True

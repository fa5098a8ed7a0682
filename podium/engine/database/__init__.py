"""Database management module."""

from .database import DatabaseManager, SQLiteStore, from_db_json, to_db_time, utcnow
from .schema import SchemaError, SchemaManager

__all__ = [
    "DatabaseManager",
    "SQLiteStore",
    "SchemaError",
    "SchemaManager",
    "from_db_json",
    "to_db_time",
    "utcnow",
]

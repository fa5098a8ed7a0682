"""SQL schema files and their loader."""

from .schema_manager import REQUIRED_COLUMNS, SchemaError, SchemaManager

__all__ = ["REQUIRED_COLUMNS", "SchemaError", "SchemaManager"]

"""Storage layer: asyncpg connection pool and table schema."""

from trend_tracker.storage.database import Database
from trend_tracker.storage.schema import SCHEMA_SQL, create_tables

__all__ = ["Database", "create_tables", "SCHEMA_SQL"]

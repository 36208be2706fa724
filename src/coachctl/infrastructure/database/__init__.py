"""SQLite database engine, schema, and ID counters via SQLAlchemy Core."""

from coachctl.infrastructure.database.counters import next_sequential_id
from coachctl.infrastructure.database.engine import (
    create_db_engine,
    init_database,
    init_schema,
)
from coachctl.infrastructure.database.schema import audit_log, metadata
from coachctl.infrastructure.database.unit_of_work import UnitOfWork

__all__ = [
    "UnitOfWork",
    "audit_log",
    "create_db_engine",
    "init_database",
    "init_schema",
    "metadata",
    "next_sequential_id",
]

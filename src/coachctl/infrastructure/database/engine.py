"""Database engine setup for SQLite with WAL mode.

The DB is stored at {workspace_root}/.coachctl/coachctl.db. SQLAlchemy
Core (not ORM) is used: every dispatched event is one short transaction
and there is no object graph worth mapping.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from coachctl.infrastructure.database.counters import seed_counters
from coachctl.infrastructure.database.schema import metadata

DATA_DIRNAME = ".coachctl"
DB_FILENAME = "coachctl.db"


def create_db_engine(db_path: Path | None = None) -> Engine:
    """Create a SQLite engine with foreign keys on (in-memory when *db_path* is None)."""
    url = f"sqlite:///{db_path}" if db_path is not None else "sqlite://"
    engine = create_engine(url, echo=False)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        if db_path is not None:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_schema(engine: Engine) -> Engine:
    """Create all tables and seed the ID counters. Idempotent."""
    metadata.create_all(engine)
    with engine.begin() as conn:
        seed_counters(conn)
    return engine


def init_database(workspace_root: Path) -> Engine:
    """Initialize the database at ``{workspace_root}/.coachctl/coachctl.db``.

    Creates the ``.coachctl/`` directory (and its ``plugins/`` folder),
    all tables, and the counter rows. Safe to call on an existing workspace.
    """
    data_dir = workspace_root / DATA_DIRNAME
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "plugins").mkdir(exist_ok=True)
    return init_schema(create_db_engine(data_dir / DB_FILENAME))

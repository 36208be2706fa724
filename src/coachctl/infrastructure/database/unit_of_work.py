"""Reentrant transaction scope shared by the repositories.

Every repository write goes through :meth:`UnitOfWork.begin`. The
outermost ``begin()`` opens a real transaction; nested calls join it, so
a caller can group several repository calls into one atomic commit.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine


class UnitOfWork:
    """Transaction scope over one engine (not thread-safe; one per workspace)."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._conn: Connection | None = None

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def active(self) -> bool:
        return self._conn is not None

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        """Open (or join) a transaction; commit on success, roll back on error."""
        if self._conn is not None:
            yield self._conn
            return
        with self._engine.begin() as conn:
            self._conn = conn
            try:
                yield conn
            finally:
                self._conn = None

    @contextmanager
    def read(self) -> Iterator[Connection]:
        """Connection for reads; sees pending writes when inside ``begin()``."""
        if self._conn is not None:
            yield self._conn
            return
        with self._engine.connect() as conn:
            yield conn
